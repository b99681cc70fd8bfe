"""HTTP client module for exacli.

Provides :class:`ExaClient`, a blocking client backed by
:class:`httpx.Client` that performs a single Exa API operation with a
given key and maps every failure to a typed exception. Key selection,
caching, and the retry after a rate limit live in
:class:`~exacli.dispatcher.RequestDispatcher`.

Example::

    from exacli.client import ExaClient

    with ExaClient(config.request) as client:
        payload = client.call("contents", api_key, {"urls": [url], "text": True})
"""

from exacli.client.sync_client import ExaClient

__all__ = ["ExaClient"]
