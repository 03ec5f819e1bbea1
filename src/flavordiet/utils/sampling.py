"""
Quieting of PyMC/PyTensor output during sampling.

Sampler warnings are collected and reported through the convergence report
instead of being printed mid-run.
"""

import contextlib
import logging
import os
import warnings
from typing import Iterator, List

NOISY_LOGGERS = ("pymc", "pytensor", "pymc.sampling", "pymc.stats.convergence")
# records from the child loggers propagate up to these
LIBRARY_ROOT_LOGGERS = ("pymc", "pytensor")


def silence_library_loggers(level: int = logging.WARNING):
    """Raise the level of the chatty third-party loggers."""
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)


class _CollectingHandler(logging.Handler):
    """Keeps formatted records instead of printing them."""

    def __init__(self, collected: List[str], level: int = logging.WARNING):
        super().__init__(level)
        self.collected = collected

    def emit(self, record: logging.LogRecord):
        message = f"{record.name}: {record.getMessage()}"
        if message not in self.collected:
            self.collected.append(message)


@contextlib.contextmanager
def quiet_sampling(collected: List[str] = None) -> Iterator[List[str]]:
    """
    Context manager that silences sampler chatter.

    Warnings raised inside the block, and WARNING-or-worse records logged by
    PyMC/PyTensor, are appended to ``collected`` (a new list is created if
    none is given) as strings. Lower-level log records are dropped.
    """
    if collected is None:
        collected = []
    handler = _CollectingHandler(collected)
    levels = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}
    routing = {}
    for name in LIBRARY_ROOT_LOGGERS:
        logger = logging.getLogger(name)
        routing[name] = (logger.handlers[:], logger.propagate)
        logger.handlers = [handler]
        logger.propagate = False
    silence_library_loggers(logging.WARNING)
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            yield collected
        for w in caught:
            message = f"{w.category.__name__}: {w.message}"
            if message not in collected:
                collected.append(message)
    finally:
        for name, level in levels.items():
            logging.getLogger(name).setLevel(level)
        for name, (handlers, propagate) in routing.items():
            logger = logging.getLogger(name)
            logger.handlers = handlers
            logger.propagate = propagate


def setup_plotting_backend():
    """Use the non-interactive backend unless one was chosen explicitly."""
    if "MPLBACKEND" not in os.environ:
        import matplotlib

        matplotlib.use("Agg")
