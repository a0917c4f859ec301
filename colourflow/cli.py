"""Command line interface for the colour record API and workflow driver."""

from __future__ import annotations

import asyncio
import json
import random
from typing import Any, Dict, Optional

import typer

from colourflow import get_transport, load_config
from colourflow.chaos import RandomChaos
from colourflow.errors import RequestFailed
from colourflow.telemetry import configure_logging
from colourflow.transports import BaseTransport
from colourflow.workflow import build_driver

app = typer.Typer(help="CLI for the colourflow record API")

records_app = typer.Typer(help="Commands for calling the record API")
app.add_typer(records_app, name="records")

_state: Dict[str, Any] = {}


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to a colourflow YAML config file"
    ),
) -> None:
    """colourflow CLI entry point."""
    settings = load_config(config)
    configure_logging(level=settings.log_level, service_name=settings.service_name)
    _state["config"] = settings


def _config():
    return _state.get("config") or load_config()


def _call(method: str, body: Optional[dict] = None, query: Optional[dict] = None) -> None:
    transport = get_transport(config=_config())

    async def _send(t: BaseTransport) -> dict:
        async with t:
            return await t.request(method, body=body, query=query)

    try:
        result = asyncio.run(_send(transport))
    except RequestFailed as exc:
        typer.secho(
            f"{exc.status_code} {exc.message} (requestId={exc.request_id})",
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)
    typer.echo(json.dumps(result, indent=2))


@app.command("run")
def run_workflow(
    iterations: Optional[int] = typer.Option(
        None, help="Number of create/update cycles (default from config)"
    ),
    seed: Optional[int] = typer.Option(None, help="Seed for the random inputs"),
) -> None:
    """
    Run the synthetic test workflow once.

    Creates, updates and deletes items under one correlation id, then reads
    back everything the run wrote. Prints the step history and the outcome.

    Example:
        colourflow run --iterations 5
    """
    config = _config()
    chaos = None
    if seed is not None:
        chaos = RandomChaos(
            failure_probability=config.workflow.failure_probability,
            colour_probability=config.workflow.colour_probability,
            rng=random.Random(seed),
        )
    transport = get_transport(config=config)
    driver = build_driver(transport, config=config, chaos=chaos)

    async def _run():
        async with transport:
            return await driver.run(iterations or config.workflow.iterations)

    outcome = asyncio.run(_run())
    for step in outcome.steps:
        line = f"{step.name.value}\t{step.status}"
        if step.error:
            line += f"\t{step.error}"
        typer.echo(line)
    typer.echo(f"Execution {outcome.execution_name}: {outcome.status.value}")
    if outcome.result is not None:
        typer.echo(f"Items found: {outcome.result.get('count', 0)}")
    if not outcome.succeeded:
        raise typer.Exit(code=1)


@records_app.command("list")
def records_list(
    correlation_id: Optional[str] = typer.Option(None, help="Only this batch"),
    item_id: Optional[str] = typer.Option(None, help="Only this item"),
) -> None:
    """List records, optionally scoped to a correlation id and item id."""
    query = {"correlationId": correlation_id, "itemId": item_id}
    _call("GET", query={k: v for k, v in query.items() if v})


@records_app.command("create")
def records_create(
    red: bool = typer.Option(False, "--red", help="Choose red"),
    blue: bool = typer.Option(False, "--blue", help="Choose blue"),
    correlation_id: Optional[str] = typer.Option(None, help="Tracking code"),
) -> None:
    """Create a record."""
    body = {"isRed": red, "isBlue": blue}
    if correlation_id:
        body["correlationId"] = correlation_id
    _call("POST", body=body)


@records_app.command("update")
def records_update(
    item_id: str,
    red: bool = typer.Option(False, "--red", help="Choose red"),
    blue: bool = typer.Option(False, "--blue", help="Choose blue"),
    correlation_id: Optional[str] = typer.Option(None, help="Tracking code"),
) -> None:
    """Update the colour of an existing record."""
    body = {"itemId": item_id, "isRed": red, "isBlue": blue}
    if correlation_id:
        body["correlationId"] = correlation_id
    _call("PUT", body=body)


@records_app.command("delete")
def records_delete(item_id: str) -> None:
    """Delete a record."""
    _call("DELETE", body={"itemId": item_id})


if __name__ == "__main__":
    app()
