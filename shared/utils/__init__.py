"""Utilities package for the Pesapal gateway.

This package bundles helper modules used across the codebase: logging
setup and context-aware loggers, UTC time helpers, and Prometheus
metrics.

Usage::

    from shared.utils import logging as logging_utils
    logger = logging_utils.get_logger("my.module", provider="pesapal")

The ``__all__`` attribute lists the names of submodules that are
intended for public use.
"""

from __future__ import annotations

from . import logging  # noqa: F401
from . import metrics  # noqa: F401
from . import time  # noqa: F401

__all__ = ["logging", "time", "metrics"]
