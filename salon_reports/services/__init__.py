"""Service package public API definitions.

``salon_reports.config`` imports the schema package, and the store imports
the config, so the implementations are imported lazily on first access to
keep ``import salon_reports.services.exceptions`` free of those side effects.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "InMemorySalonStore",
    "JsonFileSalonStore",
    "ReportService",
    "SalonSnapshot",
]

_SERVICE_MODULES = {
    "InMemorySalonStore": "store",
    "JsonFileSalonStore": "store",
    "ReportService": "reports",
    "SalonSnapshot": "store",
}


def __getattr__(name: str) -> Any:
    if name not in _SERVICE_MODULES:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module = import_module(f".{_SERVICE_MODULES[name]}", __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .reports import ReportService as ReportService
    from .store import InMemorySalonStore as InMemorySalonStore
    from .store import JsonFileSalonStore as JsonFileSalonStore
    from .store import SalonSnapshot as SalonSnapshot
