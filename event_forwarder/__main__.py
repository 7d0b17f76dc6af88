"""Entry point for the event forwarder package.

Usage::

    python -m event_forwarder run    # watch the inbox and serve the control API
    python -m event_forwarder test   # send one manual test event and exit
"""

from __future__ import annotations

import asyncio
import sys

from .config import ServiceConfig
from .logging import setup_logging
from .service import ForwarderService


async def _manual_test(service: ForwarderService) -> bool:
    await service.provider.start()
    try:
        result = await service.run_manual_test()
    finally:
        await service.provider.stop()
    print(result.message)
    return result.ok


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in ("run", "test"):
        print("Usage: python -m event_forwarder <run|test>", file=sys.stderr)
        sys.exit(1)

    config = ServiceConfig()
    service = ForwarderService(config)

    if sys.argv[1] == "run":
        asyncio.run(service.run())
    else:
        setup_logging(json=config.log_json, level=config.log_level, service=config.name)
        ok = asyncio.run(_manual_test(service))
        sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
