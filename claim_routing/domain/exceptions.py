"""Domain exceptions for the routing engine.

None of these may escape the order-creation path; the engine use case turns
them into an ``Assignment`` result. The HTTP layer maps the ones that reach
explicit operator/partner endpoints onto status codes.
"""


class RoutingError(Exception):
    """Base class for routing engine errors."""


class ConfigurationAbsent(RoutingError):
    """No active assignment settings apply to the (profession, zip prefix)."""


class ModeMismatch(RoutingError):
    """Settings exist but their dispatch mode does not allow this path."""


class NoCandidates(RoutingError):
    """The candidate finder produced nobody."""


class StalePreconditionFailure(RoutingError):
    """A guarded write was rejected because the order changed concurrently."""

    def __init__(self, order_id: str, message: str | None = None):
        self.order_id = order_id
        super().__init__(message or f"Order {order_id} changed since the decision was made")


class PersistenceFailure(RoutingError):
    """Storage unreachable or a write failed."""


class CandidateQueryUnsupported(RoutingError):
    """The storage layer cannot evaluate a containment query."""


class OfferNotFound(RoutingError):
    """The candidate holds no broadcast offer for the order."""


class OrderNotFound(RoutingError):
    """The order does not exist."""


class AssigneeNotFound(RoutingError):
    """The requested craftsman or partner is not in the directory."""
