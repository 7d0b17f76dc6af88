"""Forward target read from the environment."""

from __future__ import annotations

from .config import TargetSettings
from .interface import TargetStore


class EnvTargetStore(TargetStore):
    """Reads ``FORWARDER_TARGET_ADDRESS`` afresh on every call.

    Nothing is cached, so a changed value applies to the next decision.
    """

    def get_target_address(self) -> str:
        return TargetSettings().target_address.strip()
