import logging

import pytest

from colourflow.chaos import ScriptedChaos
from colourflow.gateway import ApiGateway
from colourflow.persistence import InMemoryRecordStore
from colourflow.service import RecordService
from colourflow.telemetry import InMemoryMetricSink, InMemoryTraceSink, Telemetry, Tracer


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    root = logging.getLogger("colourflow")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    for var in (
        "COLOURFLOW_CONFIG",
        "COLOURFLOW_DATABASE_URL",
        "COLOURFLOW_TRANSPORT",
        "TABLE_NAME",
        "LOG_EXPIRY_IN_DAYS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def metrics():
    return InMemoryMetricSink()


@pytest.fixture
def traces():
    return InMemoryTraceSink()


@pytest.fixture
def service(store, metrics, traces):
    telemetry = Telemetry(metric_sink=metrics, tracer=Tracer(traces))
    return RecordService(store, telemetry=telemetry, chaos=ScriptedChaos())


@pytest.fixture
def gateway(service):
    return ApiGateway(service)
