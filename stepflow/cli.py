"""Command line interface for running stepflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List, Optional

import typer

from stepflow.config import load_config
from stepflow.exceptions import ContractViolationError
from stepflow.factories import FACTORIES
from stepflow.runtime import WorkflowRuntime

app = typer.Typer(help="CLI for stepflow workflows")
memory_app = typer.Typer(help="Commands for inspecting thread memory")
app.add_typer(memory_app, name="memory")


def _runtime(config_path: Optional[str]) -> WorkflowRuntime:
    config = load_config(config_path)
    logging.basicConfig(level=config.log_level.upper())
    return WorkflowRuntime.from_config(config)


def _parse_inputs(pairs: List[str], raw_json: Optional[str]) -> dict[str, Any]:
    """Build trigger data from a JSON object and ``KEY=VALUE`` pairs.

    Pair values are kept as strings; typed values go through ``--json``.
    """
    data: dict[str, Any] = json.loads(raw_json) if raw_json else {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{pair}'")
        data[key] = value
    return data


def _factory(name: str):
    factory = FACTORIES.get(name)
    if factory is None:
        typer.echo(f"Unknown workflow: {name}")
        raise typer.Exit(code=1)
    return factory


@app.callback()
def main() -> None:
    """Stepflow CLI entry point."""
    pass


@app.command("workflows")
def list_workflows() -> None:
    """List the bundled workflow factories."""
    for name in FACTORIES:
        typer.echo(name)


@app.command("describe")
def describe(name: str) -> None:
    """Print the committed graph of a bundled workflow as JSON."""
    workflow = _factory(name)(None)
    typer.echo(json.dumps(workflow.describe(), indent=2))


@app.command("run")
def run(
    name: str,
    input: List[str] = typer.Option(
        [], "--input", "-i", help="Trigger string field as KEY=VALUE (repeatable)"
    ),
    json_input: Optional[str] = typer.Option(
        None, "--json", help="Trigger data as a JSON object"
    ),
    thread_id: Optional[str] = typer.Option(None, help="Memory thread identifier"),
    config: Optional[str] = typer.Option(None, help="Path to config YAML"),
) -> None:
    """
    Run a bundled workflow and print its results as JSON.

    Example:
        stepflow run dynamic-complex-workflow -i dynamic_input=hello
        stepflow run loop-workflow --json '{"success": true}'
    """
    factory = _factory(name)
    runtime = _runtime(config)
    trigger = _parse_inputs(input, json_input)
    workflow = factory(runtime)

    try:
        result = asyncio.run(workflow.create_run().start(trigger, thread_id=thread_id))
    except ContractViolationError as e:
        typer.echo(f"Invalid trigger data: {e}")
        raise typer.Exit(code=1)

    payload = {
        "run_id": result.run_id,
        "workflow": result.workflow_name,
        "thread_id": result.thread_id,
        "status": result.status,
        "results": {k: v.model_dump() for k, v in result.results.items()},
    }
    if not result.ok:
        payload["error"] = str(result.error)
        payload["failed_step"] = result.failed_step
    typer.echo(json.dumps(payload, indent=2, default=str))
    if not result.ok:
        raise typer.Exit(code=1)


@memory_app.command("show")
def memory_show(
    thread_id: str,
    config: Optional[str] = typer.Option(None, help="Path to config YAML"),
) -> None:
    """Print persisted memory for a thread."""
    runtime = _runtime(config)
    state = asyncio.run(runtime.memory.load(thread_id))
    if state is None:
        typer.echo("Thread not found")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(state, indent=2, default=str))


if __name__ == "__main__":
    app()
