"""Root logger configuration.

Every handler lives on the root logger; ``batchloader.*`` loggers only
propagate. ``setup_logging`` is the entrypoint applications call,
``configure_logging`` is the dictConfig layer underneath it.
"""

from __future__ import annotations

import logging
import logging.config
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from batchloader.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

_state = {"configured": False}

_FORMATTERS = "batchloader.infra.logging.formatters"
_CONTEXT = "batchloader.infra.logging.context"


def build_logging_config(
    log_level: str,
    *,
    json_logs: bool,
    console_enabled: bool,
    include_context: bool,
    service_name: str | None,
) -> dict[str, Any]:
    """Return the dictConfig schema for the given switches."""
    handler_filters = ["log_context"] if include_context else []
    console = {
        "class": "logging.StreamHandler",
        "stream": "ext://sys.stderr",
        "formatter": "json" if json_logs else "plain",
        "filters": handler_filters,
    }
    handlers = {"console": console} if console_enabled else {}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": f"{_FORMATTERS}.JSONFormatter",
                "static": {"service": service_name} if service_name else None,
            },
            "plain": {"format": "%(asctime)s [%(levelname)s] %(name)s - %(message)s"},
        },
        "filters": {name: {"()": f"{_CONTEXT}.ContextInjectingFilter"} for name in handler_filters},
        "handlers": handlers,
        "root": {"level": log_level.upper(), "handlers": sorted(handlers)},
    }


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    service_name: str | None = None,
    **kwargs: Any,
) -> None:
    """Apply a logging configuration to the root logger.

    Accepts ``LoggingSettings.to_logging_kwargs()`` directly; unknown
    keyword arguments are reported at debug level and otherwise ignored.
    """
    logging.config.dictConfig(
        build_logging_config(
            log_level,
            json_logs=json_logs,
            console_enabled=console_enabled,
            include_context=include_context,
            service_name=service_name,
        )
    )
    logging.captureWarnings(capture_warnings)
    if kwargs:
        logger.debug("Ignoring unknown logging options: %s", sorted(kwargs))


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **overrides: Any,
) -> None:
    """Configure logging once per process.

    Later calls are no-ops unless ``force`` is set. Without
    ``log_settings`` the cached ``get_logging_settings()`` is used;
    ``overrides`` replace individual ``configure_logging`` arguments.
    """
    if _state["configured"] and not force:
        return

    if log_settings is None:
        from batchloader.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(**{**log_settings.to_logging_kwargs(), **overrides})
    _state["configured"] = True
