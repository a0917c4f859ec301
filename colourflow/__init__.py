"""colourflow: colour record service and synthetic telemetry workflow."""

from .config import ColourflowConfig, load_config
from .errors import ClientError, InternalError, Outcome, RecordServiceError, RequestFailed
from .gateway import ApiGateway
from .persistence import Colour, ColourRecord, Precondition, get_store
from .service import RecordService, build_service
from .telemetry import Telemetry, configure_logging
from .transports import get_transport
from .workflow import RunOutcome, RunStatus, WorkflowDriver

__version__ = "0.1.0"
__all__ = [
    "ApiGateway",
    "ClientError",
    "Colour",
    "ColourRecord",
    "ColourflowConfig",
    "InternalError",
    "Outcome",
    "Precondition",
    "RecordService",
    "RecordServiceError",
    "RequestFailed",
    "RunOutcome",
    "RunStatus",
    "Telemetry",
    "WorkflowDriver",
    "build_service",
    "configure_logging",
    "get_store",
    "get_transport",
    "load_config",
]
