"""In-process state for settings and the session engine.

FastAPI routes use this module to access (and hot-reload) the singleton
`SessionEngine` instance.
"""

from __future__ import annotations

from threading import RLock

from cabinsight.api.services.engine import SessionEngine
from cabinsight.core.config.settings import CabinSettings, load_settings, settings_to_dict

_settings: CabinSettings | None = None
_engine: SessionEngine | None = None
_lock = RLock()


def get_settings() -> CabinSettings:
    """Return cached settings, loading them on first use."""

    global _settings
    with _lock:
        if _settings is None:
            _settings = load_settings()
    return _settings


def reload_settings(data: dict | None = None) -> CabinSettings:
    """Reload settings and discard the current engine.

    A running session is shut down without reporting; the next request gets
    an idle engine built from the new settings.

    Args:
        data: Optional patch dict merged into the loaded settings.
    """

    global _settings
    with _lock:
        base = load_settings()
        if data:
            _settings = CabinSettings(**{**settings_to_dict(base), **data})
        else:
            _settings = base
        _discard_engine()
    return _settings


def get_engine() -> SessionEngine:
    """Return the singleton engine instance, creating it (idle) if needed."""

    global _engine
    with _lock:
        if _engine is None:
            _engine = SessionEngine(get_settings())
    return _engine


def _discard_engine() -> None:
    global _engine
    engine, _engine = _engine, None
    if engine is not None:
        engine.shutdown()


def stop_engine() -> None:
    """Shut down and discard the singleton engine instance (if present)."""

    with _lock:
        _discard_engine()
