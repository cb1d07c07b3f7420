"""
Structured logging configuration for the simulation engine.
"""
import structlog
import logging
import sys


def configure_logging(environment: str = "development"):
    """Configure structured logging based on environment."""

    # Configure standard logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.INFO if environment == "production" else logging.DEBUG,
    )

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if environment == "production" else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.INFO if environment == "production" else logging.DEBUG
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


def get_logger(name: str = None):
    """Get a configured logger instance."""
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


class GameEventLogger:
    """
    Logger for game events.

    Every event goes to structlog; a short human-readable line is also kept
    in the state's bounded history for the rendering collaborator.
    """

    def __init__(self, history: list, history_size: int = 5):
        self.logger = get_logger("hexbound.game")
        self.history = history
        self.history_size = history_size

    def event(self, event: str, message: str, level: str = "info", **details):
        """Log a game event and record its message in the history."""
        getattr(self.logger, level)(event, message=message, **details)
        self.history.insert(0, message)
        del self.history[self.history_size:]

    def rebind(self, history: list):
        """Point the logger at a replacement history list (after a snapshot is applied)."""
        self.history = history
