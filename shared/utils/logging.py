"""Logging utilities for the Pesapal gateway.

This module provides helper functions to configure Python's logging
module with a consistent format and to enrich log records with
contextual data (provider name, module name, correlation ID).  Using
``get_logger()`` yields a ``logging.LoggerAdapter`` that injects
``provider``, ``mod_name`` (the logical module name) and ``corr_id``
into each log record.  For webhook and adapter logs the correlation ID
is usually the Pesapal order tracking ID.

Example::

    from shared.utils.logging import setup_logging, get_logger

    setup_logging()  # configure the root logger once at startup
    logger = get_logger(__name__, provider="pesapal", corr_id="b945e4af-...")
    logger.info("Hello world")
"""

from __future__ import annotations

import os
import logging
from typing import Optional

_CONTEXT_FIELDS = ("provider", "mod_name", "corr_id")


class _ContextDefaultsFilter(logging.Filter):
    """Fill in ``-`` for context fields missing on a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in _CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "-")
        return True


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger with a standard format.

    If ``level`` is not provided, it is taken from the ``LOGLEVEL``
    environment variable, defaulting to ``INFO``.  The log format
    includes placeholders for ``asctime`` (timestamp), ``provider``,
    ``mod_name``, ``corr_id``, ``levelname`` and ``message``.  Records
    emitted through plain ``logging.getLogger()`` loggers get a hyphen
    for the context fields.  The ``force=True`` parameter reinitializes
    logging configuration if called multiple times.
    """
    lvl = (level or os.getenv("LOGLEVEL", "INFO")).upper()
    logging.basicConfig(
        level=lvl,
        format=(
            "%(asctime)s | %(provider)s | %(mod_name)s | %(corr_id)s | "
            "%(levelname)s | %(message)s"
        ),
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(_ContextDefaultsFilter())


class _ContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that injects provider/module/correlation IDs into records."""

    def __init__(self, logger: logging.Logger, provider: str, module: str, corr_id: Optional[str] = None) -> None:
        super().__init__(logger, {})
        self.provider = provider
        self.module_name = module
        self.corr_id = corr_id or "-"

    def process(self, msg, kwargs):
        extra = kwargs.setdefault("extra", {})
        # explicit non-None values take precedence
        for name, default in (("provider", self.provider), ("mod_name", self.module_name), ("corr_id", self.corr_id)):
            if extra.get(name) is None:
                extra[name] = default
        return msg, kwargs


def get_logger(module: str, *, provider: str = "pesapal", corr_id: Optional[str] = None) -> logging.LoggerAdapter:
    """Return a logger adapter for the given module.

    :param module: The name of the module emitting logs (usually
        ``__name__``).
    :param provider: Name of the payment provider the logs belong to.
    :param corr_id: Optional correlation ID for tracing a single
        payment across multiple log entries.
    :returns: A ``logging.LoggerAdapter`` that automatically injects
        ``provider``, ``mod_name`` and ``corr_id`` into each log record.
    """
    base_logger = logging.getLogger(module)
    return _ContextAdapter(base_logger, provider=str(provider), module=module, corr_id=corr_id)
