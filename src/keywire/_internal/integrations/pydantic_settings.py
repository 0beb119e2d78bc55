from __future__ import annotations

import importlib
import warnings
from functools import cache
from typing import Any

# modules exposing a BaseSettings class, newest first
SETTINGS_MODULES = ("pydantic_settings", "pydantic.v1")


@cache
def settings_bases() -> tuple[type[Any], ...]:
    """Return the ``BaseSettings`` classes importable in this environment.

    Discovery runs on the first bare class registered, so importing keywire
    never imports pydantic.
    """
    bases: list[type[Any]] = []
    for module_name in SETTINGS_MODULES:
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", message="Core Pydantic V1", category=UserWarning)
            try:
                module = importlib.import_module(module_name)
            except ImportError:
                continue
        base = getattr(module, "BaseSettings", None)
        if isinstance(base, type) and base not in bases:
            bases.append(base)
    return tuple(bases)


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return whether ``candidate`` is a settings class that reads the environment.

    Such classes are registered as ``Constructible`` without the dependency
    view, since their values come from environment variables and ``.env``
    files rather than from other services.
    """
    if not isinstance(candidate, type):
        return False
    try:
        return any(issubclass(candidate, base) for base in settings_bases())
    except TypeError:
        return False


__all__ = ["is_pydantic_settings_subclass", "settings_bases"]
