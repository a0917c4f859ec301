from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_COLOUR_PROBABILITY,
    DEFAULT_FAILURE_PROBABILITY,
    DEFAULT_ITERATIONS,
    DEFAULT_LOG_EXPIRY_DAYS,
    DEFAULT_METRICS_NAMESPACE,
    DEFAULT_RUN_TIMEOUT_SECONDS,
    DEFAULT_SERVICE_NAME,
    DEFAULT_TABLE_NAME,
)


class HttpConfig(BaseModel):
    """Configuration for the HTTP transport."""

    base_url: str = "http://localhost:8000"
    timeout: float = DEFAULT_CALL_TIMEOUT_SECONDS


class TransportConfig(BaseModel):
    """Transport configuration settings."""

    backend: Literal["inmemory", "http"] = "inmemory"
    http: HttpConfig = HttpConfig()


class WorkflowConfig(BaseModel):
    """Settings for the synthetic workflow driver."""

    iterations: int = DEFAULT_ITERATIONS
    timeout_seconds: float = DEFAULT_RUN_TIMEOUT_SECONDS
    call_timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS
    failure_probability: float = DEFAULT_FAILURE_PROBABILITY
    colour_probability: float = DEFAULT_COLOUR_PROBABILITY


class ColourflowConfig(BaseModel):
    """Top-level configuration model."""

    service_name: str = DEFAULT_SERVICE_NAME
    metrics_namespace: str = DEFAULT_METRICS_NAMESPACE
    table_name: Optional[str] = DEFAULT_TABLE_NAME
    database_url: Optional[str] = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_expiry_days: int = DEFAULT_LOG_EXPIRY_DAYS
    transport: TransportConfig = TransportConfig()
    workflow: WorkflowConfig = WorkflowConfig()


def load_config(path: Optional[str] = None) -> ColourflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to COLOURFLOW_CONFIG env
            variable or 'colourflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("COLOURFLOW_CONFIG", "colourflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ColourflowConfig(**data)
    else:
        config = ColourflowConfig()

    env_db_url = os.getenv("COLOURFLOW_DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_table = os.getenv("TABLE_NAME")
    if env_table:
        config.table_name = env_table
    env_expiry = os.getenv("LOG_EXPIRY_IN_DAYS")
    if env_expiry and env_expiry.isdigit() and int(env_expiry) > 0:
        config.log_expiry_days = int(env_expiry)
    env_level = os.getenv("LOG_LEVEL")
    if env_level:
        level = env_level.upper()
        config.log_level = "WARNING" if level == "WARN" else level
    return config
