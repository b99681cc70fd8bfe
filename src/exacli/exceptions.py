"""Exception hierarchy for exacli.

All exceptions inherit from :class:`ExaCliError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`exacli.exit_codes`.
The top-level error handler in :func:`exacli.app.main` catches
``ExaCliError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    ExaCliError (exit 1)
    +-- InvalidUsageError          (exit 2)
    +-- AuthError                  (exit 4)
    +-- RateLimitedError           (exit 5)
    +-- ConnectionError_           (exit 6)
    +-- UpstreamError              (exit 7)
    +-- NoCredentialsError         (exit 8)
    +-- CredentialsExhaustedError  (exit 9)
    +-- ConfigError                (exit 1)
    +-- CacheUnavailableError      (exit 1, never escapes the cache layer)
"""

from __future__ import annotations

from typing import Optional

from exacli.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_CREDENTIALS_EXHAUSTED,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NO_CREDENTIALS,
    EXIT_RATE_LIMITED,
    EXIT_UPSTREAM_ERROR,
)


class ExaCliError(Exception):
    """Base exception for all exacli errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`exacli.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
        status_code: HTTP status that caused the error, when there was one.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code
        self.status_code = status_code


class InvalidUsageError(ExaCliError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(ExaCliError):
    """Raised when the API rejects a key (HTTP 401 / 403)."""

    exit_code = EXIT_AUTH_FAILURE


class RateLimitedError(ExaCliError):
    """Raised when the API answers HTTP 429.

    Args:
        message: Human-readable error description.
        retry_after: Cooldown hint in seconds parsed from the
            ``Retry-After`` header, or ``None`` when absent or unparseable.
    """

    exit_code = EXIT_RATE_LIMITED

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        status_code: int | None = 429,
    ):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class ConnectionError_(ExaCliError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class UpstreamError(ExaCliError):
    """Raised for any other non-success answer from the API (4xx, 5xx, bad JSON, failed research)."""

    exit_code = EXIT_UPSTREAM_ERROR


class NoCredentialsError(ExaCliError):
    """Raised before any network attempt when no API key is configured."""

    exit_code = EXIT_NO_CREDENTIALS


class CredentialsExhaustedError(ExaCliError):
    """Raised when every configured key has been marked invalid."""

    exit_code = EXIT_CREDENTIALS_EXHAUSTED


class ConfigError(ExaCliError):
    """Raised for configuration problems (invalid config JSON, unknown keys, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE


class CacheUnavailableError(ExaCliError):
    """Raised inside :mod:`exacli.cache` when the storage medium cannot be used.

    The cache is an optimisation only: :class:`~exacli.cache.ResponseCache`
    catches this error itself and degrades to a cache miss.
    """

    exit_code = EXIT_GENERIC_FAILURE
