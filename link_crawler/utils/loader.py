from __future__ import annotations

import importlib
from typing import Any, Mapping


def load_symbol(dotted: str) -> Any:
    """
    Load a class or function from a dotted path.
    Supports both "package.module:ClassName" and "package.module.ClassName".
    """
    if ":" in dotted:
        module_name, symbol_name = dotted.split(":", 1)
    else:
        module_name, symbol_name = dotted.rsplit(".", 1)

    module = importlib.import_module(module_name)
    return getattr(module, symbol_name)


def resolve_backend(name: str, builtins: Mapping[str, str]) -> Any:
    """
    Resolve a backend by short name ("redis") or by dotted path.
    Raises LookupError for unknown names and ImportError/AttributeError for
    dotted paths that do not load.
    """
    dotted = builtins.get(name.lower())
    if dotted is None:
        if "." not in name and ":" not in name:
            raise LookupError(f"unknown backend {name!r}; expected one of {sorted(builtins)} or a dotted path")
        dotted = name
    return load_symbol(dotted)
