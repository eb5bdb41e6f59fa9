"""Shared primitives under the film grain generator.

Modules:
    - validators: generator config and bundle sidecar schemas
    - fs: atomic writes for buffers, sidecars and previews
    - hashing: provenance digests for staleness checks
    - logging_config: handlers and per-stage log context
    - profiler: wall-clock timings of generation steps

Nothing here imports from src.film_grain or scripts.
"""

from . import fs
from . import hashing
from . import logging_config
from . import profiler
from . import validators

from .logging_config import get_logger, log_context, push_context, setup_logging

__all__ = [
    'fs',
    'hashing',
    'logging_config',
    'profiler',
    'validators',
    'get_logger',
    'log_context',
    'push_context',
    'setup_logging',
]
