"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class DispatchMode(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"
    BROADCAST = "broadcast"


class FallbackBehavior(str, Enum):
    INTERNAL_ONLY = "internal_only"
    MANUAL = "manual"


class AssigneeType(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class CraftsmanRole(str, Enum):
    OWNER = "owner"
    TRAINEE = "trainee"


class OrderState(str, Enum):
    UNASSIGNED = "unassigned"
    BROADCASTING = "broadcasting"
    ASSIGNED_INTERNAL = "assigned_internal"
    ASSIGNED_EXTERNAL = "assigned_external"
    EXPIRED = "expired"


class OfferStatus(str, Enum):
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class SkipReason(str, Enum):
    NO_SETTINGS = "no_settings"
    MODE_NOT_AUTO = "mode_not_auto"
    NO_CANDIDATES = "no_candidates"
    PERSISTENCE_ERROR = "persistence_error"
    ALREADY_ASSIGNED = "already_assigned"
    BROADCAST_PENDING = "broadcast_pending"
    TIMEOUT = "timeout"
    ENGINE_ERROR = "engine_error"


class AcceptOutcome(str, Enum):
    ACCEPTED = "accepted"
    ALREADY_RESOLVED = "already_resolved"


class Actor(str, Enum):
    """Who performed an assignment write."""

    ENGINE = "engine"
    BROADCAST = "broadcast"
    ADMIN = "admin"
