"""Built-in CLI sub-commands for cacheproxy.

Each module exposes a Typer command function or sub-application that
:mod:`cacheproxy.app` registers at import time:

* :mod:`~cacheproxy.commands.serve` -- ``cacheproxy serve``
* :mod:`~cacheproxy.commands.fetch` -- ``cacheproxy fetch``
* :mod:`~cacheproxy.commands.config` -- ``cacheproxy config show|set|reset``
"""
