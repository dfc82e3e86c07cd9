"""Configuración de logging estructurado para Urna.

English:
    Structured logging setup: structlog over stdlib handlers, JSON output,
    and a redaction filter for authority secrets and the private key.
"""

from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Optional

import structlog


class SensitiveDataFilter(logging.Filter):
    """Filtro seguro para redacción de secretos / Secure filter to redact secrets."""

    def __init__(self, sensitive_values: Iterable[str]) -> None:
        super().__init__()
        self._sensitive_values = [value for value in sensitive_values if value]

    def filter(self, record: logging.LogRecord) -> bool:
        message = str(record.getMessage())
        redacted = message
        for value in self._sensitive_values:
            if value in redacted:
                redacted = redacted.replace(value, "[REDACTED]")
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def setup_logging(
    log_level: str,
    storage_path: Path,
    sensitive_values: Optional[Iterable[str]] = None,
) -> structlog.BoundLogger:
    """Configura structlog y handlers de consola/archivo.

    English: Configure structlog and console/file handlers.
    """
    log_dir = storage_path / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    redact_filter = SensitiveDataFilter(sensitive_values or ())
    file_handler = TimedRotatingFileHandler(
        log_dir / "urna.log",
        when="midnight",
        backupCount=30,
        encoding="utf-8",
    )
    console_handler = logging.StreamHandler()
    for handler in (file_handler, console_handler):
        handler.addFilter(redact_filter)

    logging.basicConfig(
        level=log_level.upper(),
        handlers=[file_handler, console_handler],
        format="%(message)s",
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(log_level.upper())),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


def bind_context(
    logger: structlog.BoundLogger,
    election_name: Optional[str] = None,
    booth_id: Optional[str] = None,
    status: Optional[str] = None,
) -> structlog.BoundLogger:
    """Adjunta contexto estándar al logger.

    English: Bind standard context to the logger.
    """
    context: dict[str, Any] = {}
    if election_name:
        context["election"] = election_name
    if booth_id:
        context["booth_id"] = booth_id
    if status:
        context["status"] = status
    return logger.bind(**context)
