"""exacli -- AI-powered web search from the terminal via the Exa API.

The ``exa`` command issues search, similarity, content, answer, and research
requests on behalf of a human or an AI agent. Two subsystems carry the
interesting logic:

* **Key rotation** -- several API keys are spread across calls, with
  per-key health counters and cooldowns after rate-limit rejections,
  persisted between invocations (:mod:`exacli.rotation`).
* **Response cache** -- prior responses are reused for identical requests
  within a TTL, bounded to a fixed number of entries (:mod:`exacli.cache`).

Typical usage::

    export EXA_API_KEYS="key-one,key-two"
    exa search "rust async patterns" -n 10
    exa status

Modules:
    app: Typer application and CLI entry point.
    dispatcher: Cache / key selection / upstream / retry orchestration.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr output discipline with Rich support.
    formatting: Rendering of API payloads for humans and agents.
"""

__version__ = "1.3.0"
