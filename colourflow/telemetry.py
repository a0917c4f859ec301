"""Structured logging, metrics and trace annotations for colourflow.

Every service operation runs inside an :class:`OperationScope` obtained from a
:class:`Telemetry` instance. The scope carries the correlation token and the
request id so that log lines, metric metadata and trace annotations emitted
during the call can be grouped afterwards.

Usage::

    configure_logging(level="DEBUG", service_name="ToolsDemo")
    telemetry = Telemetry(service_name="ToolsDemo")
    with telemetry.scope("CreateFnc", request_id) as scope:
        scope.bind_correlation_id(correlation_id)
        scope.logger.info("Colour", extra={"data": "RED"})
        scope.single_metric("RED", dimensions={"feature": "colourPicker"})
"""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from .constants import DEFAULT_METRICS_NAMESPACE, DEFAULT_SERVICE_NAME

ROOT_LOGGER = "colourflow"


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON lines including appended keys."""

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": "WARN" if record.levelname == "WARNING" else record.levelname,
            "message": record.getMessage(),
            "service": self.service_name,
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "logger": record.name,
        }
        if hasattr(record, "structured"):
            entry.update(record.structured)
        if record.exc_info and record.exc_info[0] is not None:
            entry["error"] = {
                "name": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }
        return json.dumps(entry, default=str)


def configure_logging(
    level: str = "INFO",
    stream: Any = None,
    service_name: str = DEFAULT_SERVICE_NAME,
) -> logging.Logger:
    """Configure the ``colourflow`` logger hierarchy with JSON output."""

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter(service_name=service_name))
    root.addHandler(handler)
    root.propagate = False
    return root


class AppendKeysAdapter(logging.LoggerAdapter):
    """Logger adapter that merges persistent keys into every record."""

    def process(self, msg, kwargs):
        extra = kwargs.pop("extra", None) or {}
        kwargs["extra"] = {"structured": {**self.extra, **extra}}
        return msg, kwargs


class MetricDatum(BaseModel):
    name: str
    value: float = 1
    unit: str = "Count"
    dimensions: Dict[str, str] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))


class MetricSink(Protocol):
    """Destination for emitted metrics."""

    def emit(self, namespace: str, datum: MetricDatum) -> None:
        """Publish a single metric datum."""


class InMemoryMetricSink:
    """Keep emitted metrics in memory for inspection."""

    def __init__(self) -> None:
        self.data: List[MetricDatum] = []

    def emit(self, namespace: str, datum: MetricDatum) -> None:
        self.data.append(datum)

    def count(self, name: str, **dimensions: str) -> float:
        return sum(
            d.value
            for d in self.data
            if d.name == name
            and all(d.dimensions.get(k) == v for k, v in dimensions.items())
        )

    def names(self) -> List[str]:
        return [d.name for d in self.data]


class LoggingMetricSink:
    """Write metrics as embedded-metric-format JSON log lines."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logging.getLogger(f"{ROOT_LOGGER}.metrics")

    def emit(self, namespace: str, datum: MetricDatum) -> None:
        document = {
            "_aws": {
                "Timestamp": datum.timestamp,
                "CloudWatchMetrics": [
                    {
                        "Namespace": namespace,
                        "Dimensions": [sorted(datum.dimensions)],
                        "Metrics": [{"Name": datum.name, "Unit": datum.unit}],
                    }
                ],
            },
            datum.name: datum.value,
            **datum.dimensions,
            **datum.metadata,
        }
        self._log.info(json.dumps(document, default=str))


class TraceSegment(BaseModel):
    name: str
    annotations: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    start_time: float = Field(default_factory=time.time)
    end_time: Optional[float] = None


class TraceSink(Protocol):
    """Destination for closed trace segments."""

    def export(self, segment: TraceSegment) -> None:
        """Publish a finished segment."""


class InMemoryTraceSink:
    """Keep exported segments in memory for inspection."""

    def __init__(self) -> None:
        self.segments: List[TraceSegment] = []

    def export(self, segment: TraceSegment) -> None:
        self.segments.append(segment)

    def find(self, key: str, value: Any) -> List[TraceSegment]:
        return [s for s in self.segments if s.annotations.get(key) == value]


class LoggingTraceSink:
    """Write each closed segment as one JSON log line."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logging.getLogger(f"{ROOT_LOGGER}.trace")

    def export(self, segment: TraceSegment) -> None:
        self._log.debug(segment.model_dump_json())


class Tracer:
    """Open trace segments and hand them to a sink once they close.

    The tracer holds no reference to a segment after :meth:`end_segment`.
    """

    def __init__(self, sink: Optional[TraceSink] = None) -> None:
        self.sink = sink or LoggingTraceSink()

    def begin_segment(self, name: str) -> TraceSegment:
        return TraceSegment(name=name)

    def end_segment(self, segment: TraceSegment) -> None:
        segment.end_time = time.time()
        self.sink.export(segment)


class OperationScope:
    """Telemetry handles for one operation invocation."""

    def __init__(
        self,
        telemetry: "Telemetry",
        function_name: str,
        request_id: str,
    ) -> None:
        self._telemetry = telemetry
        self.function_name = function_name
        self.request_id = request_id
        self.correlation_id: Optional[str] = None
        self.segment = telemetry.tracer.begin_segment(function_name)
        self.logger = AppendKeysAdapter(
            logging.getLogger(f"{ROOT_LOGGER}.{function_name}"),
            {"function_name": function_name, "function_request_id": request_id},
        )
        self._dimensions: Dict[str, str] = {}
        self._metadata: Dict[str, Any] = {}
        self._pending: List[MetricDatum] = []

    def __enter__(self) -> "OperationScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            self.segment.error = str(exc)
        self.flush()
        self._telemetry.tracer.end_segment(self.segment)

    def bind_correlation_id(self, correlation_id: str) -> None:
        """Attach the correlation token to logs, metrics and the trace."""
        self.correlation_id = correlation_id
        self.put_annotation("correlationId", correlation_id)
        self.append_keys(correlationId=correlation_id)
        self.add_metadata("correlationId", correlation_id)

    def append_keys(self, **keys: Any) -> None:
        self.logger.extra = {**self.logger.extra, **keys}

    def put_annotation(self, key: str, value: Any) -> None:
        self.segment.annotations[key] = value

    def add_metadata(self, key: str, value: Any) -> None:
        self._metadata[key] = value

    def add_dimension(self, name: str, value: str) -> None:
        self._dimensions[name] = value

    def add_metric(self, name: str, value: float = 1, unit: str = "Count") -> None:
        """Buffer a metric that is published when the scope closes."""
        self._pending.append(MetricDatum(name=name, value=value, unit=unit))

    def single_metric(
        self,
        name: str,
        value: float = 1,
        unit: str = "Count",
        dimensions: Optional[Dict[str, str]] = None,
    ) -> None:
        """Publish a metric immediately with its own dimension set."""
        datum = MetricDatum(
            name=name,
            value=value,
            unit=unit,
            dimensions={**self._telemetry.default_dimensions, **(dimensions or {})},
            metadata=dict(self._metadata),
        )
        self._telemetry.publish(datum)

    def flush(self) -> None:
        pending, self._pending = self._pending, []
        for datum in pending:
            datum.dimensions = {
                **self._telemetry.default_dimensions,
                **self._dimensions,
            }
            datum.metadata = dict(self._metadata)
            self._telemetry.publish(datum)


class Telemetry:
    """Factory for operation scopes sharing one metric sink and tracer."""

    def __init__(
        self,
        metric_sink: Optional[MetricSink] = None,
        tracer: Optional[Tracer] = None,
        service_name: str = DEFAULT_SERVICE_NAME,
        namespace: str = DEFAULT_METRICS_NAMESPACE,
    ) -> None:
        self.metric_sink = metric_sink or LoggingMetricSink()
        self.tracer = tracer or Tracer()
        self.service_name = service_name.upper()
        self.namespace = namespace
        self._warm: set[str] = set()

    @property
    def default_dimensions(self) -> Dict[str, str]:
        return {"service": self.service_name}

    def publish(self, datum: MetricDatum) -> None:
        self.metric_sink.emit(self.namespace, datum)

    def scope(self, function_name: str, request_id: str) -> OperationScope:
        """Open a scope for one invocation of ``function_name``."""
        scope = OperationScope(self, function_name, request_id)
        scope.put_annotation("Service", self.service_name)
        if function_name not in self._warm:
            self._warm.add(function_name)
            scope.put_annotation("ColdStart", True)
            scope.single_metric(
                "ColdStart", dimensions={"function_name": function_name}
            )
        return scope
