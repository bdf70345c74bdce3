"""
Rich logging utility for colored terminal output
"""
import logging
from typing import Optional
from rich.logging import RichHandler
from rich.console import Console
from rich.traceback import install as install_traceback
from mediation_intake.core.config import settings

# Locals are hidden: request handlers hold API keys and participant PII
install_traceback(show_locals=False)

# httpx logs full request URLs at INFO; Insightly search URLs carry participant emails
for _noisy in ("httpx", "httpcore"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

# Create a shared console instance
_console = Console()


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance with Rich formatting and colors.
    All loggers share the same console for consistent output.

    Args:
        name: Logger name (typically __name__)
        level: Optional log level override (defaults to settings.log_level)

    Returns:
        Configured logger instance with RichHandler
    """
    logger = logging.getLogger(name)

    log_level = level.upper() if level else settings.log_level.upper()
    logger.setLevel(getattr(logging, log_level))

    # Avoid adding multiple handlers
    if not logger.handlers:
        handler = RichHandler(
            console=_console,
            show_time=True,
            show_path=True,
            show_level=True,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=True,  # Enable rich markup in log messages
            log_time_format="[%Y-%m-%d %H:%M:%S]",
        )
        handler.setFormatter(
            logging.Formatter(
                fmt="%(message)s",
                datefmt="[%Y-%m-%d %H:%M:%S]"
            )
        )
        logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate messages
    logger.propagate = False

    return logger


def get_shared_logger() -> logging.Logger:
    """
    Get a shared application logger for application-wide logging
    (startup, shutdown, batch summaries).
    """
    return get_logger("mediation_intake")


# Create a shared application logger instance
app_logger = get_shared_logger()
