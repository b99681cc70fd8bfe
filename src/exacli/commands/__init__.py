"""Built-in CLI sub-commands for exacli.

This package groups all Typer command modules that form the CLI's
top-level command tree:

* :mod:`~exacli.commands.search` -- ``search``, ``find`` and ``answer``.
* :mod:`~exacli.commands.content` -- extract the text of a URL.
* :mod:`~exacli.commands.research` -- run a long-lived research task.
* :mod:`~exacli.commands.keys` -- ``status`` and ``reset`` of key rotation.
* :mod:`~exacli.commands.config` -- view and modify global settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config``) or plain callback functions
registered directly on the root app.
"""
