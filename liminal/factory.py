"""Registry of processor constructors, looked up by type name."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Optional

from liminal.file_output import FileOutputProcessor
from liminal.rules import RuleProcessor

logger = logging.getLogger(__name__)

ProcessorConstructor = Callable[[str, Optional[Mapping[str, Any]]], Any]

_registry: dict[str, ProcessorConstructor] = {}
_lock = threading.RLock()
_defaults_registered = False


class ProcessorNotFoundError(LookupError):
    """Raised when no processor is registered under the requested name."""


def register_processor(name: str, constructor: ProcessorConstructor) -> None:
    """Register ``constructor`` under ``name``, replacing any earlier entry."""
    with _lock:
        _registry[name] = constructor


def _ensure_default_processors() -> None:
    global _defaults_registered
    with _lock:
        if _defaults_registered:
            return
        _defaults_registered = True
        register_processor("rule", RuleProcessor)
        register_processor("file", FileOutputProcessor)
        logger.info("Default processors registered!")


def list_processors() -> list[str]:
    """Names of all registered processors, built-in ones included."""
    _ensure_default_processors()
    with _lock:
        return list(_registry)


def processor_exists(name: str) -> bool:
    """Whether a processor is registered under ``name``."""
    _ensure_default_processors()
    with _lock:
        return name in _registry


def create_processor(name: str, parameters: Optional[Mapping[str, Any]]) -> Any:
    """Create the processor registered under ``name`` with ``parameters``.

    Raises ``ProcessorNotFoundError`` for an unknown name; errors from the
    constructor propagate unchanged.
    """
    logger.info("Creating processor '%s'", name)
    _ensure_default_processors()
    with _lock:
        constructor = _registry.get(name)
    if constructor is None:
        raise ProcessorNotFoundError(f"Processor '{name}' not found")
    return constructor(name, parameters)