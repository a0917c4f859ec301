"""Default values shared across colourflow."""

DEFAULT_SERVICE_NAME = "ToolsDemo"
DEFAULT_TABLE_NAME = "ToolsDemoTable"
DEFAULT_METRICS_NAMESPACE = "DemoNamespace"
CORRELATION_INDEX = "CorrelationId"

DEFAULT_LOG_EXPIRY_DAYS = 30

DEFAULT_ITERATIONS = 20
DEFAULT_RUN_TIMEOUT_SECONDS = 15 * 60
DEFAULT_CALL_TIMEOUT_SECONDS = 29.0

DEFAULT_FAILURE_PROBABILITY = 0.1
DEFAULT_COLOUR_PROBABILITY = 0.5

# Per-function timeouts of the HTTP routing layer.
WRITE_TIMEOUT_SECONDS = 5.0
READ_TIMEOUT_SECONDS = 3.0
DELETE_TIMEOUT_SECONDS = 5.0
