import io
import json
import logging

from colourflow.telemetry import (
    InMemoryMetricSink,
    InMemoryTraceSink,
    LoggingMetricSink,
    Telemetry,
    Tracer,
    configure_logging,
)


def test_scope_flushes_buffered_metrics_with_dimensions():
    sink = InMemoryMetricSink()
    telemetry = Telemetry(metric_sink=sink, service_name="demo")

    with telemetry.scope("ReadFnc", "req-1") as scope:
        scope.bind_correlation_id("batch")
        scope.add_dimension("function_name", "ReadFnc")
        scope.add_metric("WARNING")
        assert "WARNING" not in sink.names()

    warning = [d for d in sink.data if d.name == "WARNING"][0]
    assert warning.dimensions == {"service": "DEMO", "function_name": "ReadFnc"}
    assert warning.metadata == {"correlationId": "batch"}


def test_cold_start_only_once_per_function():
    sink = InMemoryMetricSink()
    telemetry = Telemetry(metric_sink=sink)

    for request_id in ("a", "b"):
        with telemetry.scope("CreateFnc", request_id):
            pass
    with telemetry.scope("ReadFnc", "c"):
        pass

    assert sink.count("ColdStart", function_name="CreateFnc") == 1
    assert sink.count("ColdStart") == 2


def test_scope_records_error_on_trace_segment():
    traces = InMemoryTraceSink()
    telemetry = Telemetry(metric_sink=InMemoryMetricSink(), tracer=Tracer(traces))

    try:
        with telemetry.scope("DeleteFnc", "req-1") as scope:
            scope.bind_correlation_id("batch")
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    segment = traces.find("correlationId", "batch")[0]
    assert segment.error == "boom"
    assert segment.annotations["Service"] == "TOOLSDEMO"
    assert segment.end_time is not None


def test_closed_segments_are_exported_not_retained():
    stream = io.StringIO()
    configure_logging(level="DEBUG", stream=stream)
    telemetry = Telemetry(metric_sink=InMemoryMetricSink())

    for n in range(50):
        with telemetry.scope("ReadFnc", f"req-{n}") as scope:
            scope.bind_correlation_id("batch")

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    exported = [json.loads(e["message"]) for e in lines if e["logger"] == "colourflow.trace"]
    assert len(exported) == 50
    assert exported[-1]["annotations"]["correlationId"] == "batch"
    assert not hasattr(telemetry.tracer, "segments")


def test_json_log_lines_include_appended_keys():
    stream = io.StringIO()
    configure_logging(level="DEBUG", stream=stream, service_name="ToolsDemo")
    telemetry = Telemetry(metric_sink=InMemoryMetricSink())

    with telemetry.scope("CreateFnc", "req-1") as scope:
        scope.bind_correlation_id("batch")
        scope.logger.warning("Missing colour choice", extra={"data": {"isRed": False}})

    entries = [json.loads(line) for line in stream.getvalue().splitlines()]
    entry = [e for e in entries if e["logger"] == "colourflow.CreateFnc"][-1]
    assert entry["level"] == "WARN"
    assert entry["message"] == "Missing colour choice"
    assert entry["service"] == "ToolsDemo"
    assert entry["correlationId"] == "batch"
    assert entry["data"] == {"isRed": False}


def test_logging_metric_sink_emits_embedded_metric_format():
    stream = io.StringIO()
    configure_logging(level="INFO", stream=stream)
    telemetry = Telemetry(
        metric_sink=LoggingMetricSink(logging.getLogger("colourflow.metrics")),
        namespace="DemoNamespace",
    )

    with telemetry.scope("CreateFnc", "req-1") as scope:
        scope.single_metric("RED", dimensions={"feature": "colourPicker"})

    documents = [json.loads(json.loads(line)["message"]) for line in stream.getvalue().splitlines()]
    red = [d for d in documents if "RED" in d][0]
    assert red["RED"] == 1
    assert red["feature"] == "colourPicker"
    assert red["_aws"]["CloudWatchMetrics"][0]["Namespace"] == "DemoNamespace"
