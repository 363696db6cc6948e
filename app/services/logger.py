"""
Structured Logging Service

structlog over the stdlib root logger. Request-scoped fields (requestId, userId)
are bound with structlog.contextvars by the request logger middleware and merged
into every event logged while that request is handled, including events from the
research pipeline.
"""

import sys
import logging
import structlog
from app.config import Settings, settings

# Chatty client libraries: only surface their warnings
QUIET_LOGGERS = ('httpx', 'httpcore', 'hpack', 'postgrest', 'supabase')


def configure_logging(current: Settings) -> None:
    renderer = structlog.processors.JSONRenderer() if current.is_production else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, current.LOG_LEVEL.upper(), logging.INFO),
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


configure_logging(settings)

logger = structlog.get_logger('thread_insights')
