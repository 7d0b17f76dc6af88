"""Event Forwarder — turns inbox arrivals into calendar invitations.

Public API re-exported here for convenience::

    from event_forwarder import ForwarderService, MailboxProvider, ServiceConfig
"""

from .attachments import AttachmentTransferer
from .classifier import DeletionClassifier
from .config import ForwarderConfig, GraphConfig, ServiceConfig, TargetSettings
from .control import create_control_app
from .forwarder import EventForwarder
from .graph_client import GraphAuthError, GraphClient
from .graph_provider import AttachmentUnavailableError, GraphEventHandle, GraphMailboxProvider
from .interface import EventHandle, MailboxProvider, TargetStore
from .logging import setup_logging
from .models import (
    ArrivalOutcome,
    Attachment,
    EventDraft,
    EventOutcome,
    Forward,
    ForwardDecision,
    ForwardRequest,
    InboundItem,
    ManualTestResult,
    MeetingRequest,
    Message,
    Participant,
    ParticipantKind,
    PauseStatus,
    ServiceStatus,
    Skip,
    to_forward_request,
)
from .pause import PauseGate
from .resolver import AddressResolver
from .service import ForwarderService
from .target import EnvTargetStore
from .watcher import InboxWatcher

__all__ = [
    "AddressResolver",
    "ArrivalOutcome",
    "Attachment",
    "AttachmentTransferer",
    "AttachmentUnavailableError",
    "DeletionClassifier",
    "EnvTargetStore",
    "EventDraft",
    "EventForwarder",
    "EventHandle",
    "EventOutcome",
    "Forward",
    "ForwardDecision",
    "ForwardRequest",
    "ForwarderConfig",
    "ForwarderService",
    "GraphAuthError",
    "GraphClient",
    "GraphConfig",
    "GraphEventHandle",
    "GraphMailboxProvider",
    "InboundItem",
    "InboxWatcher",
    "MailboxProvider",
    "ManualTestResult",
    "MeetingRequest",
    "Message",
    "Participant",
    "ParticipantKind",
    "PauseGate",
    "PauseStatus",
    "ServiceConfig",
    "ServiceStatus",
    "Skip",
    "TargetSettings",
    "TargetStore",
    "create_control_app",
    "setup_logging",
    "to_forward_request",
]
