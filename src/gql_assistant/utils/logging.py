import inspect
import json
import logging
from typing import Any

import structlog

from gql_assistant.config import get_settings
from gql_assistant.utils.tracing import current_trace_id

_PACKAGE_PREFIX = "gql_assistant."

# Module-level flag to prevent multiple configuration
_logging_configured = False


def _add_module_info(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """
    Add a short 'module' field, e.g. "services.repair_loop" for
    "gql_assistant.services.repair_loop". Foreign loggers keep their full name.
    """
    logger_name = event_dict.get("logger", "unknown")

    if logger_name.startswith(_PACKAGE_PREFIX):
        module_parts = logger_name.split(".")
        event_dict["module"] = ".".join(module_parts[-2:])
    else:
        event_dict["module"] = logger_name

    return event_dict


def _add_trace_id(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """Fill in trace_id from the context var when the caller did not pass one."""
    if not event_dict.get("trace_id"):
        trace_id = current_trace_id()
        if trace_id:
            event_dict["trace_id"] = trace_id
    return event_dict


def _pretty_json_renderer(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    """Render every record as indented JSON."""
    return json.dumps(event_dict, indent=2, ensure_ascii=False, default=str)


def configure_logging() -> None:
    """Configure stdlib logging and structlog once per process."""

    global _logging_configured

    if _logging_configured:
        return
    _logging_configured = True

    settings = get_settings()
    level = getattr(logging, settings.app.log_level.value)

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[logging.StreamHandler()]
    )

    # httpx logs every request at INFO; keep it quiet unless debugging
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

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
            _add_trace_id,
            _add_module_info,
            _pretty_json_renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("Attempt executed", attempt_index=2, success=False)

        # Output:
        # {
        #   "event": "Attempt executed",
        #   "attempt_index": 2,
        #   "success": false,
        #   "logger": "gql_assistant.services.repair_loop",
        #   "level": "info",
        #   "timestamp": "2025-01-22T10:30:00Z",
        #   "trace_id": "abc-123",
        #   "module": "services.repair_loop"
        # }
    """
    return structlog.get_logger(name)


def get_module_logger() -> structlog.stdlib.BoundLogger:
    """
    Get a logger named after the calling module.

    Falls back to 'unknown' when frame inspection is unavailable.
    """
    module_name = "unknown"
    frame = None

    try:
        frame = inspect.currentframe()
        if frame is not None and frame.f_back is not None:
            module_name = frame.f_back.f_globals.get("__name__", "unknown")
    except (AttributeError, RuntimeError):
        # Some REPLs don't expose frames
        pass
    finally:
        if frame is not None:
            del frame

    return get_logger(module_name)
