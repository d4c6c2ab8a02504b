"""
promise-cls logging - structured logging for the patching engine.

Manifesto:
    Lost context is a silent bug: a callback simply runs with the wrong
    request state.  The engine therefore logs what it patched and, when
    asked, every binding it made, and every log entry carries the ambient
    context that was active when it was emitted so a misrouted callback is
    visible in the output.

Architecture:
    ::

        configure_logging(level="INFO", format="console")
            ↓
        structlog processor chain:
          1. filter by level
          2. add_log_level / add_logger_name
          3. TimeStamper (UTC ISO-8601)
          4. add_ambient_context   ← active context of every namespace
          5. format_exc_info / StackInfoRenderer
          6. JSONRenderer or ConsoleRenderer

Examples:
    >>> from promise_cls.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", format="json")
    >>> logger = get_logger(__name__)
    >>> logger.info("library_patched", library="Promise", entries=23)

Tags:
    logging, structlog, observability, promise-cls

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Set once configure_logging() has run
_configured = False


def add_ambient_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """
    Structlog processor that adds the active ambient context to every entry.

    Only namespaces with an active (non-empty) context contribute; existing
    keys are never overridden.
    """
    from promise_cls.context.namespace import iter_namespaces

    ambient = {}
    for namespace in iter_namespaces():
        context = namespace.active
        if not context.is_empty:
            ambient[namespace.name] = context.to_dict()

    if ambient:
        event_dict.setdefault("ambient", ambient)
    return event_dict


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    format: Literal["json", "console"] | None = None,
    force: bool = False,
) -> None:
    """
    Install the promise-cls structlog pipeline.

    Subsequent calls are no-ops unless force=True. Unset arguments are read
    from :class:`~promise_cls.core.settings.PromiseClsSettings`.

    Args:
        level: Log level (overrides PROMISE_CLS_LOG_LEVEL)
        format: Output format (overrides PROMISE_CLS_LOG_FORMAT)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    from promise_cls.core.settings import get_settings

    settings = get_settings()
    log_level = (level or settings.log_level).upper()
    log_format = format or settings.log_format

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_ambient_context,
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level),
        force=True,
    )
    logging.getLogger("promise_cls").setLevel(getattr(logging, log_level))

    _configured = True


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger bound to ``name``.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


def is_configured() -> bool:
    """True once configure_logging() has run."""
    return _configured


__all__ = [
    "add_ambient_context",
    "configure_logging",
    "get_logger",
    "is_configured",
]
