import structlog
import logging
from .config import Settings, EnvironmentType

def setup_logging(settings: Settings) -> None:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.ENVIRONMENT == EnvironmentType.DEVELOPMENT:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.INFO if settings.ENVIRONMENT == EnvironmentType.PRODUCTION else logging.DEBUG
        ),
        cache_logger_on_first_use=False,
    )


def bind_session_context(session_id: str, user_id: str, opportunity_id: str) -> None:
    """Attach audition identifiers to every log line emitted in this context."""
    structlog.contextvars.bind_contextvars(
        session_id=session_id,
        user_id=user_id,
        opportunity_id=opportunity_id,
    )


def clear_session_context() -> None:
    structlog.contextvars.unbind_contextvars("session_id", "user_id", "opportunity_id")
