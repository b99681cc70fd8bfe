"""Rendering of dispatch results for humans and agents.

Every renderer takes the active :class:`~exacli.output.OutputManager` and a
decoded API payload and writes to stdout according to the resolved format:

* ``json`` -- the payload as-is (errors as ``{"error": "..."}``).
* ``compact`` -- terse ``key: value`` lines, text truncated at sentence
  boundaries. Chosen automatically when stdout is piped.
* ``tsv`` -- a ``title<TAB>url<TAB>date`` table (result lists only).
* ``rich`` -- the human layout with colour.

:func:`render_result` is the single entry point used by the commands: it
handles the three :class:`~exacli.models.ResultStatus` values and returns the
exit code.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

from pydantic import BaseModel
from rich.markup import escape

from exacli.exit_codes import EXIT_SUCCESS
from exacli.models import DispatchResult, ResultStatus
from exacli.output import OutputFormat, OutputManager

COMPACT_MAX_CHARS = 300
RICH_MAX_CHARS = 500

ANSWER_HIGHLIGHTS = 3
ANSWER_SOURCES = 3
RESEARCH_SOURCES = 5


class RenderOptions(BaseModel):
    """Presentation switches shared by every command.

    Attributes:
        max_chars: Truncation limit for text blocks; ``None`` picks the
            format default (300 compact, 500 otherwise).
        fields: Result fields to show; ``None`` shows all.
        sources: Whether ``answer`` / ``research`` list their sources.
    """

    max_chars: Optional[int] = None
    fields: Optional[frozenset[str]] = None
    sources: bool = True

    def limit(self, output: OutputManager) -> int:
        if self.max_chars:
            return self.max_chars
        return COMPACT_MAX_CHARS if output.is_compact else RICH_MAX_CHARS

    def show(self, name: str) -> bool:
        return self.fields is None or name in self.fields


def parse_fields(value: Optional[str]) -> Optional[frozenset[str]]:
    """Parse ``--fields title,url`` into a set of lower-case names."""
    if not value:
        return None
    names = frozenset(part.strip().lower() for part in value.split(",") if part.strip())
    return names or None


def truncate_text(text: str, max_chars: int) -> str:
    """Shorten *text* to at most *max_chars* characters plus ``...``.

    The cut prefers the last sentence end (``. ``, ``? ``, ``! ``) inside
    the window, then the last space, then a hard cut.

    Example::

        >>> truncate_text("One. Two three four.", 12)
        'One....'
    """
    if len(text) <= max_chars:
        return text
    window = text[:max_chars]
    cut = max(window.rfind(". "), window.rfind("? "), window.rfind("! "))
    if cut > 0:
        cut += 1
    else:
        cut = window.rfind(" ")
    if cut <= 0:
        cut = max_chars
    return window[:cut].rstrip() + "..."


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def render_result(
    output: OutputManager,
    result: DispatchResult,
    renderer: Callable[[OutputManager, dict[str, Any], RenderOptions], None],
    options: RenderOptions,
    empty_message: str = "No results found.",
) -> int:
    """Render *result* with *renderer* and return the process exit code."""
    if result.status == ResultStatus.ERROR:
        render_error(output, result.error or "Unknown error")
        return result.exit_code

    payload = result.payload or {}
    if output.format == OutputFormat.JSON:
        output.print_json(payload)
        return result.exit_code

    if result.status == ResultStatus.NO_RESULTS:
        output.info(empty_message)
        return result.exit_code

    renderer(output, payload, options)
    return EXIT_SUCCESS


def render_error(output: OutputManager, message: str) -> None:
    """Report an error: JSON on stdout in JSON mode, otherwise stderr."""
    if output.format == OutputFormat.JSON:
        output.print_json({"error": message})
    else:
        output.error(message)


# ------------------------------------------------------------------ #
# search / find
# ------------------------------------------------------------------ #


def render_results(output: OutputManager, payload: dict[str, Any], options: RenderOptions) -> None:
    results = payload.get("results") or []
    limit = options.limit(output)

    if output.format == OutputFormat.TSV:
        rows = [
            [r.get("title") or "N/A", r.get("url") or "", r.get("publishedDate") or ""]
            for r in results
        ]
        output.print_table(["title", "url", "date"], rows)
        return

    if output.is_compact:
        for i, r in enumerate(results, 1):
            if options.show("title"):
                output.print_data(f"[{i}] {r.get('title')}")
            if options.show("url"):
                output.print_data(f"url: {r.get('url')}")
            if options.show("date") and r.get("publishedDate"):
                output.print_data(f"date: {r['publishedDate']}")
            if options.show("content") and r.get("text"):
                output.print_data(f"content: {truncate_text(r['text'], limit)}")
            if options.show("highlights"):
                for h in r.get("highlights") or []:
                    output.print_data(f"highlight: {h}")
        return

    for i, r in enumerate(results, 1):
        output.print_rich(f"[dim]--- Result {i} ---[/dim]")
        if options.show("title"):
            output.print_rich(f"[bold]Title:[/bold] {escape(str(r.get('title')))}")
        if options.show("url"):
            output.print_rich(f"[cyan]Link:[/cyan] {escape(str(r.get('url')))}")
        if options.show("date") and r.get("publishedDate"):
            output.print_rich(f"[dim]Date:[/dim] {escape(r['publishedDate'])}")
        if options.show("content") and r.get("text"):
            output.print_rich("[green]Content:[/green]")
            output.print_rich(escape(truncate_text(r["text"], limit)))
        highlights = r.get("highlights") or []
        if options.show("highlights") and highlights:
            output.print_rich("[yellow]Highlights:[/yellow]")
            for h in highlights:
                output.print_rich(f"  {escape(h)}")
        output.print_rich()


# ------------------------------------------------------------------ #
# content
# ------------------------------------------------------------------ #


def render_content(output: OutputManager, payload: dict[str, Any], options: RenderOptions) -> None:
    r = (payload.get("results") or [{}])[0]
    text = r.get("text") or ""

    if output.is_compact:
        if options.show("title"):
            output.print_data(str(r.get("title")))
        if options.show("url"):
            output.print_data(f"url: {r.get('url')}")
        if options.show("content"):
            output.print_data(truncate_text(text, options.limit(output)))
        return

    if options.show("title"):
        output.print_rich(f"[bold]Title:[/bold] {escape(str(r.get('title')))}")
    if options.show("url"):
        output.print_rich(f"[cyan]URL:[/cyan] {escape(str(r.get('url')))}")
    output.print_rich()
    if options.show("content"):
        # Full text unless the user asked for a limit.
        if options.max_chars:
            text = truncate_text(text, options.max_chars)
        output.print_rich(escape(text))


# ------------------------------------------------------------------ #
# answer
# ------------------------------------------------------------------ #


def render_answer(output: OutputManager, payload: dict[str, Any], options: RenderOptions) -> None:
    results = payload.get("results") or []
    limit = options.limit(output)
    highlights = [h for r in results for h in (r.get("highlights") or [])][:ANSWER_HIGHLIGHTS]
    first_text = results[0].get("text") if results else None
    sources = [str(r.get("url")) for r in results[:ANSWER_SOURCES]]

    if output.is_compact:
        if highlights:
            for h in highlights:
                output.print_data(h)
        elif first_text:
            output.print_data(truncate_text(first_text, limit))
        if options.sources:
            output.print_data(f"sources: {' | '.join(sources)}")
        return

    output.print_rich("[bold green]Answer:[/bold green]")
    output.print_rich()
    if highlights:
        for h in highlights:
            output.print_rich(f"  {escape(h)}")
        output.print_rich()
    elif first_text:
        output.print_rich(escape(truncate_text(first_text, limit)))
        output.print_rich()

    if options.sources:
        output.print_rich("[dim]Sources:[/dim]")
        for url in sources:
            output.print_rich(f"  [cyan]{escape(url)}[/cyan]")


# ------------------------------------------------------------------ #
# research
# ------------------------------------------------------------------ #


def _research_outputs(payload: dict[str, Any]) -> tuple[Optional[str], list[Any]]:
    out = payload.get("output")
    content = None
    if isinstance(out, dict):
        content = out.get("content")
        if content is not None and not isinstance(content, str):
            content = json.dumps(content, ensure_ascii=False)
    return content, list(payload.get("outputs") or [])


def render_research(output: OutputManager, payload: dict[str, Any], options: RenderOptions) -> None:
    content, outputs = _research_outputs(payload)
    citations = [c for c in (payload.get("citations") or []) if isinstance(c, dict)]
    sources = [str(c.get("url")) for c in citations[:RESEARCH_SOURCES]]

    if output.is_compact:
        if content:
            output.print_data(content)
        else:
            for item in outputs:
                output.print_data(json.dumps(item) if isinstance(item, (dict, list)) else str(item))
        if options.sources and sources:
            output.print_data(f"sources: {' | '.join(sources)}")
        return

    output.print_rich()
    output.print_rich("[bold green]Research Complete[/bold green]")
    cost = (payload.get("costDollars") or {}).get("total")
    if cost:
        output.print_rich(f"[dim]Cost: ${float(cost):.4f}[/dim]")
    output.print_rich()

    if content:
        output.print_rich(escape(content))
        output.print_rich()
    else:
        for i, item in enumerate(outputs, 1):
            if len(outputs) > 1:
                output.print_rich(f"[bold]--- Output {i} ---[/bold]")
            text = json.dumps(item, indent=2) if isinstance(item, (dict, list)) else str(item)
            output.print_rich(escape(text))
            output.print_rich()

    if options.sources and sources:
        output.print_rich("[dim]Sources:[/dim]")
        for url in sources:
            output.print_rich(f"  [cyan]{escape(url)}[/cyan]")


# ------------------------------------------------------------------ #
# status
# ------------------------------------------------------------------ #


def render_status(
    output: OutputManager,
    rows: list[Any],
    next_index: int,
    cache_stats: Optional[dict[str, Any]] = None,
) -> None:
    """Render ``exa status``. *rows* are :class:`~exacli.rotation.KeyStatus` objects."""
    if output.format == OutputFormat.JSON:
        data: dict[str, Any] = {
            "total_keys": len(rows),
            "next_index": next_index,
            "keys": [row.model_dump() for row in rows],
        }
        if cache_stats is not None:
            data["cache"] = cache_stats
        output.print_json(data)
        return

    if output.format == OutputFormat.RICH:
        output.print_rich("[bold]Exa API Key Status[/bold]")
        output.print_rich("=" * 50)
        output.print_rich(f"[bold]Total Keys:[/bold] {len(rows)}")
        output.print_rich(f"[bold]Next Index:[/bold] {next_index}")
        output.print_rich()
        colours = {"READY": "green", "COOLDOWN": "yellow", "INVALID": "red"}
        for row in rows:
            label = row.status
            if row.cooldown_remaining is not None:
                label = f"{label} ({row.cooldown_remaining}s)"
            colour = colours.get(row.status, "white")
            output.print_rich(
                f"Key {row.index}: [cyan]{escape(row.key)}[/cyan] - [{colour}]{label}[/{colour}]"
            )
            output.print_rich(
                f"  Requests: {row.requests} | Success: {row.successes} | Errors: {row.errors}"
            )
        if cache_stats is not None:
            output.print_rich()
            size = cache_stats.get("size")
            output.print_rich(
                f"[bold]Cache:[/bold] {size if size is not None else 'unavailable'}"
                f"/{cache_stats.get('max_entries')} entries in {escape(str(cache_stats.get('directory')))}"
            )
        return

    headers = ["index", "key", "status", "cooldown", "requests", "successes", "errors"]
    table = [
        [
            str(row.index),
            row.key,
            row.status,
            str(row.cooldown_remaining) if row.cooldown_remaining is not None else "",
            str(row.requests),
            str(row.successes),
            str(row.errors),
        ]
        for row in rows
    ]
    output.print_table(headers, table)
