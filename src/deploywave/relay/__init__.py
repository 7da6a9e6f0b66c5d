from .handler import (
    ExecutionLookupError,
    SecretLookupError,
    InvalidEventError,
    ReportedStatus,
    StatusRelayEvent,
    StatusReport,
    lambda_handler,
    relay_state_change,
)
from .repository import StatusDeliveryError, client_for_host
from .settings import RelaySettings

__all__ = [
    "ExecutionLookupError", "SecretLookupError", "InvalidEventError", "ReportedStatus", "StatusRelayEvent", "StatusReport",
    "lambda_handler", "relay_state_change", "StatusDeliveryError", "client_for_host", "RelaySettings",
]
