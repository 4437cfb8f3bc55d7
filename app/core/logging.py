import logging
import os
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

# Correlation ID of the request being served, set by CorrelationIdMiddleware
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        req_id = request_id_var.get()
        if req_id:
            log_record["request_id"] = req_id

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        if log_record.get("level"):
            log_record["level"] = log_record["level"].upper()
        else:
            log_record["level"] = record.levelname


def setup_logging(level: str = None):
    logger = logging.getLogger()
    # Idempotent: uvicorn reloads and the test suite import the app more than once
    if any(isinstance(h.formatter, CustomJsonFormatter) for h in logger.handlers):
        return

    log_handler = logging.StreamHandler()
    log_handler.setFormatter(CustomJsonFormatter("%(timestamp) %(level) %(name) %(message)"))
    logger.addHandler(log_handler)
    logger.setLevel(level or os.getenv("LOG_LEVEL", "INFO").upper())

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)
