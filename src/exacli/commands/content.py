"""Content command -- extract the readable text of a page.

Example::

    exa content https://example.com/article
"""

from __future__ import annotations

import typer

from exacli.commands.common import run_request
from exacli.formatting import render_content
from exacli.models import UpstreamRequest


def content_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="URL to extract."),
) -> None:
    """Fetch the full text of a URL."""
    request = UpstreamRequest(
        command="content",
        operation="contents",
        body={"urls": [url], "text": True},
        cache_fields=[url],
    )
    run_request(ctx, request, render_content, empty_message="Could not extract content.")
