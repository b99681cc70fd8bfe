"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~exacli.exceptions.ExaCliError` subclass.
Agents and shell wrappers can inspect the exit code to decide whether to
retry later, fix their configuration, or give up, without parsing stderr.

Example::

    $ exa search "kubernetes operators"
    $ echo $?
    5   # EXIT_RATE_LIMITED -- every attempted key was rate limited
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_NO_RESULTS = 3
"""The request succeeded but the API returned no results."""

EXIT_AUTH_FAILURE = 4
"""The API rejected the key (HTTP 401 / 403)."""

EXIT_RATE_LIMITED = 5
"""Every attempted key was rate limited (HTTP 429). Retry later."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_UPSTREAM_ERROR = 7
"""The API returned an unexpected error status or an unusable body."""

EXIT_NO_CREDENTIALS = 8
"""No API key is configured (``EXA_API_KEYS`` / ``EXA_API_KEY``)."""

EXIT_CREDENTIALS_EXHAUSTED = 9
"""Every configured key has been marked invalid."""
