import logging
import sys
import structlog
from pythonjsonlogger import jsonlogger

from ftrmsg.core.config import settings

SERVICE_NAME = "ftrmsg-delivery"


def add_service_context(logger, method_name, event_dict):
    """Stamp every record with the service and environment, for log routing."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def setup_logging():
    """
    Configure structured logging for the application.

    structlog renders our own records as JSON; third-party loggers (uvicorn,
    sqlalchemy, celery) go through a JSON stdlib handler so both share one
    stream format.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            add_service_context,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class ContextLogger:
    """
    structlog wrapper used across services.

    Operator-facing conditions are logged with an `alert=<NAME>` key
    (BATCH_LOCK_RELEASE_FAILED, MESSAGE_STATUS_UPDATE_FAILED, ...) so they
    can be matched without parsing message text.
    """

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def with_context(self, **kwargs) -> structlog.BoundLogger:
        """Bound logger carrying e.g. run_id and lock_id for one batch run."""
        return self.logger.bind(**kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def critical(self, message: str, **kwargs):
        """Needs manual intervention (stuck lock, failed compensation)."""
        self.logger.critical(message, **kwargs)


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(name)
