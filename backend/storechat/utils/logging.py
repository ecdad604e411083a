# /storechat/utils/logging.py

import logging
import sys
import structlog
from storechat.config.settings import settings

# One log stream for the service. Records emitted while a customer message is
# being handled carry the tenant and channel bound by the conversation
# pipeline, whichever library logged them.

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "pymongo": logging.WARNING,
    "google_genai": logging.WARNING,
}


def build_renderer(environment: str):
    if environment == "development":
        return structlog.dev.ConsoleRenderer()
    # Arabic message content stays readable instead of \u escapes
    return structlog.processors.JSONRenderer(ensure_ascii=False)


def setup_logging():
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processor=build_renderer(settings.environment),
        foreign_pre_chain=shared_processors,
    ))

    root_logger = logging.getLogger()
    # exactly one handler on the root logger
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.log_level.upper())

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
