"""
Module Loader

Loads logic module Python files and looks up their operations.

Design principles:
- A logic module is a Python file whose public functions are operations
- Every operation takes a CallContext first: ``def getValue(ctx): ...``
- ``__state__`` declares the module's storage layout (field -> default)
- ``__logic__`` carries optional metadata (name, version, description)
- Loaded modules are cached by path
- Load errors are wrapped with context
"""

import importlib.util
import inspect
import sys
import traceback
from pathlib import Path
from typing import Any, Callable, Dict, List

from object_gateway.core.errors import (
    ModuleLoadError,
    ModuleNotDeployedError,
    SlotCollisionError,
    UnknownOperationError,
)
from object_gateway.core.identity import is_reserved_key


# Module cache
_module_cache: Dict[str, Any] = {}
_cache_stats = {'hits': 0, 'misses': 0}


def load_module(path: str | Path, reload: bool = False) -> Any:
    """
    Load a logic module file.

    Args:
        path: Path to the module .py file
        reload: If True, bypass cache and reload the module

    Returns:
        The loaded Python module

    Raises:
        ModuleNotDeployedError: If file doesn't exist
        ModuleLoadError: If file can't be loaded or declares a reserved field
    """
    path = Path(path)
    path_str = str(path.absolute())

    if not reload and path_str in _module_cache:
        _cache_stats['hits'] += 1
        return _module_cache[path_str]

    _cache_stats['misses'] += 1

    if not path.is_file():
        raise ModuleNotDeployedError(f"Module file not found: {path}")

    module_name = f"logic_{path.stem}_{abs(hash(path_str)):x}"
    spec = importlib.util.spec_from_file_location(module_name, path)

    if spec is None or spec.loader is None:
        raise ModuleLoadError(f"Could not create module spec for: {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module

    try:
        spec.loader.exec_module(module)
    except SyntaxError as e:
        del sys.modules[module_name]
        raise ModuleLoadError(f"Syntax error in module {path}: {e}") from e
    except Exception as e:
        del sys.modules[module_name]
        raise ModuleLoadError(f"Failed to load module {path}: {e}\n{traceback.format_exc()}") from e

    try:
        get_state_layout(module)
    except SlotCollisionError as e:
        del sys.modules[module_name]
        raise ModuleLoadError(f"Invalid storage layout in module {path}: {e}") from e

    _module_cache[path_str] = module

    return module


def get_operation(module: Any, selector: str) -> Callable:
    """
    Look up an operation on a logic module.

    Raises:
        UnknownOperationError: If the module doesn't define the operation
    """
    if selector not in list_operations(module):
        raise UnknownOperationError(
            f"Operation {selector} not defined by module. "
            f"Available operations: {list_operations(module)}"
        )
    return getattr(module, selector)


def list_operations(module: Any) -> List[str]:
    """Public functions defined in the module itself"""
    return sorted(
        name
        for name, value in vars(module).items()
        if not name.startswith('_')
        and inspect.isfunction(value)
        and value.__module__ == module.__name__
    )


def get_state_layout(module: Any) -> Dict[str, Any]:
    """
    Get a module's declared storage layout.

    Raises:
        SlotCollisionError: If a declared field is not a plain identifier
            (reserved slot keys never are)
    """
    layout = getattr(module, '__state__', None) or {}

    for key in layout:
        if is_reserved_key(key):
            raise SlotCollisionError(f"Field collides with a reserved slot: {key}")
        if not isinstance(key, str) or not key.isidentifier():
            raise SlotCollisionError(f"Field names must be identifiers: {key!r}")

    return dict(layout)


def get_module_metadata(module: Any) -> Dict[str, Any]:
    """
    Get metadata from a logic module.

    Looks for a __logic__ dict in the module.
    """
    metadata = {
        'name': getattr(module, '__name__', 'unknown'),
        'version': '0.0.0',
        'description': '',
    }
    metadata.update(getattr(module, '__logic__', {}) or {})
    metadata['operations'] = list_operations(module)
    metadata['state'] = sorted(get_state_layout(module))
    return metadata


def clear_cache():
    """Clear the module cache"""
    global _cache_stats
    _module_cache.clear()
    _cache_stats = {'hits': 0, 'misses': 0}


def get_cache_stats() -> Dict[str, int]:
    """
    Get cache statistics.

    Returns:
        Dict with 'hits', 'misses', 'size'
    """
    return {
        'hits': _cache_stats['hits'],
        'misses': _cache_stats['misses'],
        'size': len(_module_cache),
    }
