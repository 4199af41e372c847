"""
Built-in dispatcher implementations for dqnotify.

Automatically discovers and imports all dispatcher modules with validation.
"""

import importlib
import inspect
import pkgutil

from dqnotify.core import Dispatcher as BaseDispatcher
from dqnotify.logging_config import get_logger

logger = get_logger(__name__)

# Import every dispatcher module so its registration decorator runs
__all__ = []
_seen_names = set()

for module_info in pkgutil.iter_modules(__path__):
    module = importlib.import_module(f"{__name__}.{module_info.name}")

    for name in getattr(module, '__all__', []):
        if name in _seen_names:
            logger.warning(
                "Duplicate dispatcher name '%s' in module '%s' - skipping",
                name,
                module_info.name
            )
            continue

        cls = getattr(module, name)

        if not inspect.isclass(cls) or not issubclass(cls, BaseDispatcher):
            logger.warning(
                "Export '%s' in module '%s' is not a Dispatcher subclass - skipping",
                name,
                module_info.name
            )
            continue

        globals()[name] = cls
        __all__.append(name)
        _seen_names.add(name)
