"""Built-in CLI sub-command groups for refetch.

* :mod:`~refetch.commands.config` -- view and modify user settings.

The request commands (``get``, ``send``, ``watch``) live on the root app in
:mod:`refetch.app`.
"""
