"""Loguru setup shared by dispatchers and the interception shim."""
import sys

from loguru import logger


def setup_logging(verbose=False):
    """Route loguru output to stderr.

    Configures:
    - Console output: WARNING+ only (clean script output)
    - Console output: DEBUG+ when verbose (every dispatch phase and command)

    bosun logs nothing until this runs (or a host calls logger.enable("bosun")).
    The dispatcher only calls it when --verbose is given, so sinks a host script
    added beforehand are kept otherwise.
    """
    logger.remove()
    logger.enable("bosun")
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="<level>{level}</level>: {message}",
        colorize=None,
    )


__all__ = (
    "setup_logging",
)
