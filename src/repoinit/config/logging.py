"""structlog configuration for repoinit.

Everything goes to stderr so stdout stays clean for results. The console
renderer is the default; ``--log-json`` switches to one JSON object per
line and also turns on the per-operation audit trail
(``operation.applied`` / ``operation.failed``) without ``--verbose``.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

# Loggers whose INFO events form the audit trail of an applied batch.
AUDIT_LOGGERS = ("repoinit.services.processor",)

_REDACTED = "***"
_SECRET_KEYS = frozenset({"password", "password_hash"})


def redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credential fields, including inside a logged ``operation`` dict."""
    for key in _SECRET_KEYS & event_dict.keys():
        event_dict[key] = _REDACTED
    operation = event_dict.get("operation")
    if isinstance(operation, dict) and _SECRET_KEYS & operation.keys():
        event_dict["operation"] = {
            k: _REDACTED if k in _SECRET_KEYS else v for k, v in operation.items()
        }
    return event_dict


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
) -> None:
    """Configure structlog processors and route repoinit's loggers.

    Args:
        verbose: DEBUG for every ``repoinit`` logger. Otherwise WARNING,
            except the audit loggers under ``log_json``.
        log_json: Use the JSON renderer and emit the audit trail.
    """
    level = logging.DEBUG if verbose else logging.WARNING

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    logging.getLogger("repoinit").setLevel(level)
    audit_level = logging.INFO if log_json and not verbose else logging.NOTSET
    for name in AUDIT_LOGGERS:
        logging.getLogger(name).setLevel(audit_level)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
