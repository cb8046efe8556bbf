import logging
import sys
import structlog
from typed_events.core.config import get_settings

ROOT_LOGGER = "typed_events"

# Library loggers stay quiet until the host configures logging
logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


def setup_logging():
    """
    Host-side switch: JSON lines on stdout, filtered at LOG_LEVEL.

    Dispatcher loggers are stdlib-backed, so level filtering happens in
    stdlib logging rather than in the structlog wrapper.
    """
    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=settings.log_level,
    )
    logging.getLogger(ROOT_LOGGER).setLevel(settings.log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None, **initial_values):
    """
    structlog logger over the stdlib logger `name` (default: the package
    logger). Processors come from the current structlog configuration.
    """
    return structlog.wrap_logger(
        logging.getLogger(name or ROOT_LOGGER),
        wrapper_class=structlog.stdlib.BoundLogger,
        **initial_values,
    )
