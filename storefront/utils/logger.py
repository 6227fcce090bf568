"""
Logging configuration for the storefront bot

Console output for development, rotating JSON files for everything else,
and structlog on top of stdlib logging for structured events.
"""

import logging
import logging.handlers
import os
import sys
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from pythonjsonlogger import jsonlogger

from storefront.config import get_config
from storefront.utils.constants import FileSettings, LoggingSettings


class ProductionLogger:
    """Production-ready logging configuration"""

    @staticmethod
    def setup_logging():
        """
        Setup logging for the whole process

        - human readable console output outside production
        - JSON application log with rotation
        - error-only JSON log
        - structlog routed through stdlib handlers
        """
        config = get_config()

        logs_dir = Path(FileSettings.LOGS_DIRECTORY)
        logs_dir.mkdir(exist_ok=True)

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
        root_logger.handlers.clear()

        if not config.is_production:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            root_logger.addHandler(console_handler)

        app_handler = logging.handlers.RotatingFileHandler(
            logs_dir / FileSettings.MAIN_LOG_FILE,
            maxBytes=LoggingSettings.MAX_LOG_FILE_SIZE,
            backupCount=LoggingSettings.MAIN_LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        app_handler.setFormatter(StorefrontJsonFormatter())
        app_handler.setLevel(logging.INFO)
        root_logger.addHandler(app_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            logs_dir / FileSettings.ERROR_LOG_FILE,
            maxBytes=LoggingSettings.MAX_LOG_FILE_SIZE,
            backupCount=LoggingSettings.ERROR_LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        error_handler.setFormatter(StorefrontJsonFormatter())
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)

        ProductionLogger._configure_specific_loggers()
        ProductionLogger._configure_structlog()

        logging.getLogger(__name__).info(
            "Logging configured",
            extra={"environment": config.environment, "log_level": config.log_level},
        )

    @staticmethod
    def _configure_specific_loggers():
        logging.getLogger("telegram").setLevel(logging.WARNING)
        # httpx logs every request at INFO, including the bot token in the URL
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    @staticmethod
    def _configure_structlog():
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer(),
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )


class StorefrontJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with process and request context fields"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["thread_name"] = threading.current_thread().name
        log_record["process_id"] = os.getpid()

        if hasattr(record, "user_id"):
            log_record["user_id"] = record.user_id

        if hasattr(record, "operation_time"):
            log_record["operation_time_ms"] = record.operation_time


def get_structured_logger(name: str):
    """Get a structlog logger bound to ``name``"""
    return structlog.get_logger(name)


class PerformanceLogger:
    """Context manager for performance logging"""

    def __init__(
        self,
        operation_name: str,
        logger: Optional[logging.Logger] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.operation_name = operation_name
        self.logger = logger or logging.getLogger(__name__)
        self.details = details or {}
        self.start_time = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (time.perf_counter() - self.start_time) * 1000

        if exc_type is None:
            self.logger.info(
                "Completed operation: %s",
                self.operation_name,
                extra={"operation": self.operation_name, "operation_time": duration, "success": True, **self.details},
            )
        else:
            self.logger.warning(
                "Failed operation: %s (%s)",
                self.operation_name,
                exc_type.__name__,
                extra={"operation": self.operation_name, "operation_time": duration, "success": False, **self.details},
            )
        return False
