"""PlayZone web console package; the FastAPI app is loaded on first access."""
from __future__ import annotations

from importlib import import_module
from types import ModuleType
from typing import Any, List

_IMPL_MODULE: ModuleType | None = None

_WEB_MODULES = {"fastapi", "starlette", "dotenv", "itsdangerous", "multipart"}

__all__: List[str] = ["app", "create_app", "build_backend", "router"]


def _load_impl() -> ModuleType:
    global _IMPL_MODULE
    if _IMPL_MODULE is not None:
        return _IMPL_MODULE
    try:
        module = import_module(".application", __name__)
    except ModuleNotFoundError as exc:
        if exc.name in _WEB_MODULES:
            raise RuntimeError(
                "playzone.webapp requires the FastAPI web stack. "
                "Install it with `pip install playzone-console`."
            ) from exc
        raise
    _IMPL_MODULE = module
    return module


def __getattr__(name: str) -> Any:
    if name.startswith("__"):
        raise AttributeError(name)
    module = _load_impl()
    return getattr(module, name)


def __dir__() -> List[str]:
    return sorted(set(globals()) | set(__all__))
