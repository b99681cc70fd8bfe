"""Research command -- run an asynchronous research task to completion.

The task is created with one key and then polled with that same key until
it completes, fails, is canceled, or the research deadline
(``request.research_timeout``) passes. Results are never cached.

Example::

    exa research "compare nvidia rtx 4090 vs 5090"
    exa research "market size of AI" --model exa-research-pro --schema schema.json
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer

from exacli.commands.common import fail, run_request
from exacli.commands.search import join_query
from exacli.exceptions import ExaCliError, InvalidUsageError
from exacli.formatting import render_research
from exacli.models import UpstreamRequest
from exacli.output import get_output

DEFAULT_MODEL = "exa-research"


def load_schema(path: Path) -> dict[str, Any]:
    """Read a JSON Schema describing the structured research output.

    Raises:
        InvalidUsageError: If the file cannot be read or is not a JSON object.
    """
    try:
        schema = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise InvalidUsageError(f"Failed to read schema file: {exc}") from exc
    if not isinstance(schema, dict):
        raise InvalidUsageError("Failed to read schema file: expected a JSON object")
    return schema


def research_command(
    ctx: typer.Context,
    query: list[str] = typer.Argument(help="Research instructions."),
    model: str = typer.Option(
        DEFAULT_MODEL, "--model", help="Research model: exa-research or exa-research-pro."
    ),
    schema: Optional[Path] = typer.Option(
        None, "--schema", help="JSON Schema file for structured output."
    ),
) -> None:
    """Run a deep research task and print the report."""
    try:
        instructions = join_query(query)
        body: dict[str, Any] = {"instructions": instructions, "model": model}
        if schema is not None:
            body["outputSchema"] = load_schema(schema)
    except ExaCliError as exc:
        fail(exc)
        return

    get_output().progress("Starting research task, this can take a few minutes...")
    request = UpstreamRequest(
        command="research",
        operation="research",
        body=body,
        expects_results=False,
    )
    run_request(ctx, request, render_research)
