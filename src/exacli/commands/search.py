"""Search commands -- ``exa search``, ``exa find`` and ``exa answer``.

``search`` and ``find`` return a list of results and are cached;
``answer`` runs a short search with text and highlights and condenses it
into a few lines with sources, and is never cached.

Typical usage::

    exa search "rust async patterns" -n 10 --content
    exa search "news" --domain nytimes.com --after 2025-01-01
    exa find https://example.com/article
    exa answer "what is kubernetes"
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from exacli.commands.common import fail, run_request
from exacli.exceptions import InvalidUsageError
from exacli.formatting import render_answer, render_results
from exacli.models import UpstreamRequest

DEFAULT_NUM_RESULTS = 5
DEFAULT_SEARCH_TYPE = "instant"
DEFAULT_HIGHLIGHT_CHARS = 2000
ANSWER_NUM_RESULTS = 5


def join_query(words: list[str]) -> str:
    """Join positional words into one query, rejecting an empty result."""
    query = " ".join(words).strip()
    if not query:
        raise InvalidUsageError("No query provided.")
    return query


def build_contents(
    content: bool,
    highlight_chars: Optional[int],
    verbosity: Optional[str],
) -> Optional[dict[str, Any]]:
    """Build the ``contents`` object of a search / findSimilar body.

    Highlights win over full text when both are requested.
    """
    if highlight_chars is not None:
        contents: dict[str, Any] = {"highlights": {"maxCharacters": highlight_chars}}
    elif content:
        contents = {"text": True}
    else:
        return None
    if verbosity:
        contents["verbosity"] = verbosity
    return contents


def _highlight_chars(highlights: bool, chars: Optional[int]) -> Optional[int]:
    if chars is not None:
        return chars
    return DEFAULT_HIGHLIGHT_CHARS if highlights else None


def search_command(
    ctx: typer.Context,
    query: list[str] = typer.Argument(help="Search query."),
    num: int = typer.Option(DEFAULT_NUM_RESULTS, "--num", "-n", help="Number of results."),
    content: bool = typer.Option(False, "--content", help="Include page text."),
    highlights: bool = typer.Option(
        False, "--highlights", help=f"Include highlights ({DEFAULT_HIGHLIGHT_CHARS} chars)."
    ),
    highlight_chars: Optional[int] = typer.Option(
        None, "--highlight-chars", help="Highlight budget in characters (implies --highlights)."
    ),
    verbosity: Optional[str] = typer.Option(
        None, "--verbosity", help="Content verbosity: compact, standard, full."
    ),
    domain: Optional[str] = typer.Option(None, "--domain", help="Only results from this domain."),
    after: Optional[str] = typer.Option(None, "--after", help="Published after (YYYY-MM-DD)."),
    before: Optional[str] = typer.Option(None, "--before", help="Published before (YYYY-MM-DD)."),
    search_type: str = typer.Option(
        DEFAULT_SEARCH_TYPE, "--type", help="Search type: instant, fast, auto, deep, neural."
    ),
    category: Optional[str] = typer.Option(
        None, "--category", help="Category, e.g. company, news, research paper."
    ),
    max_age: Optional[int] = typer.Option(
        None, "--max-age", help="Maximum age of cached pages in hours."
    ),
) -> None:
    """Search the web.

    Example::

        exa search "react hooks" -n 10 --content
        exa --json search "node.js" | jq '.results[].url'
    """
    try:
        text = join_query(query)
    except InvalidUsageError as exc:
        fail(exc)
        return

    chars = _highlight_chars(highlights, highlight_chars)
    body: dict[str, Any] = {"query": text, "numResults": num, "type": search_type}
    contents = build_contents(content, chars, verbosity)
    if contents is not None:
        body["contents"] = contents
    if domain:
        body["includeDomains"] = [domain]
    if after:
        body["startPublishedDate"] = after
    if before:
        body["endPublishedDate"] = before
    if category:
        body["category"] = category
    if max_age is not None:
        body["maxAgeHours"] = max_age

    request = UpstreamRequest(
        command="search",
        operation="search",
        body=body,
        cache_fields=[
            text, num, search_type, category, domain, after, before,
            max_age, chars, verbosity, content,
        ],
    )
    run_request(ctx, request, render_results)


def find_command(
    ctx: typer.Context,
    url: list[str] = typer.Argument(help="URL to find similar pages for."),
    num: int = typer.Option(DEFAULT_NUM_RESULTS, "--num", "-n", help="Number of results."),
    content: bool = typer.Option(False, "--content", help="Include page text."),
    highlights: bool = typer.Option(
        False, "--highlights", help=f"Include highlights ({DEFAULT_HIGHLIGHT_CHARS} chars)."
    ),
    highlight_chars: Optional[int] = typer.Option(
        None, "--highlight-chars", help="Highlight budget in characters (implies --highlights)."
    ),
    verbosity: Optional[str] = typer.Option(
        None, "--verbosity", help="Content verbosity: compact, standard, full."
    ),
    search_type: str = typer.Option(DEFAULT_SEARCH_TYPE, "--type", help="Search type."),
) -> None:
    """Find pages similar to a URL."""
    try:
        target = join_query(url)
    except InvalidUsageError as exc:
        fail(exc)
        return

    chars = _highlight_chars(highlights, highlight_chars)
    body: dict[str, Any] = {"url": target, "numResults": num, "type": search_type}
    contents = build_contents(content, chars, verbosity)
    if contents is not None:
        body["contents"] = contents

    request = UpstreamRequest(
        command="find",
        operation="findSimilar",
        body=body,
        cache_fields=[target, num, search_type, chars, verbosity, content],
    )
    run_request(ctx, request, render_results)


def answer_command(
    ctx: typer.Context,
    query: list[str] = typer.Argument(help="Question to answer."),
    search_type: str = typer.Option(DEFAULT_SEARCH_TYPE, "--type", help="Search type."),
) -> None:
    """Answer a question from the top search highlights, with sources.

    Example::

        exa answer "what is kubernetes"
    """
    try:
        text = join_query(query)
    except InvalidUsageError as exc:
        fail(exc)
        return

    request = UpstreamRequest(
        command="answer",
        operation="search",
        body={
            "query": text,
            "numResults": ANSWER_NUM_RESULTS,
            "type": search_type,
            "contents": {"text": True, "highlights": True},
        },
    )
    run_request(ctx, request, render_answer)
