import logging
from typing import Any, MutableMapping

import structlog

SENSITIVE_KEYS = ("token", "secret", "password", "access_key")


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask values of credential-looking keys before rendering."""
    for key in list(event_dict):
        if any(marker in key.lower() for marker in SENSITIVE_KEYS) and event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def configure_logging(level: int | str = logging.INFO, *, log_format: str = "json") -> None:
    """Configure structlog over the standard logging module.

    ``log_format`` is ``json`` for services or ``console`` for local runs.
    """
    renderer: Any
    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format="%(message)s")


def bind_pipeline_context(project_id: str, run: str, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Logger carrying project and run identifiers for one pipeline run."""
    return structlog.get_logger().bind(project_id=project_id, run=run, **kwargs)
