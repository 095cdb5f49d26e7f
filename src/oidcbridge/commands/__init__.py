"""Built-in ``oidcbridge`` sub-command groups (``config``, ``provider``)."""
