"""Wall-clock timings for generation steps.

The generators wrap their expensive steps (gamma table, variance integral,
white noise, separable filter) in ``timer()`` and report through a logger
sink, so timings show up at DEBUG level next to the stage context.
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

Sink = Callable[[str, float], None]


def _print_sink(name: str, elapsed: float) -> None:
    print(f"{name}: {elapsed:.3f} s")


@contextmanager
def timer(name: str, sink: Optional[Sink] = None) -> Iterator[None]:
    """Time the enclosed block and report ``(name, seconds)`` to ``sink``.

    The report is made even when the block raises. Without a sink the
    timing is printed to stdout.

    Examples
    --------
    >>> with timer("gamma_table", sink=log_sink(logger)):
    ...     gamma = grain_overlap_table(...)
    """
    report = sink or _print_sink
    start = time.perf_counter()
    try:
        yield
    finally:
        report(name, time.perf_counter() - start)


def log_sink(logger: logging.Logger, level: int = logging.DEBUG) -> Sink:
    """Sink writing ``name: X.XXX s`` records to ``logger`` at ``level``."""
    def _sink(name: str, elapsed: float) -> None:
        logger.log(level, "%s: %.3f s", name, elapsed)

    return _sink
