"""Logging configuration for the tmux-buffer-sync CLI."""
import logging


def configure_logging(verbose: bool) -> None:
    """Configure logging level based on verbosity setting.

    Args:
        verbose: If True, set DEBUG level; otherwise WARNING level.

    Warnings and errors (skipped corrupt entries, failed syncs) are always
    printed to stderr regardless of verbosity.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    fmt = "%(levelname)s: %(name)s: %(message)s" if verbose else "%(levelname)s: %(message)s"
    logging.basicConfig(level=level, format=fmt, handlers=[logging.StreamHandler()])
