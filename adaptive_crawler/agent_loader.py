"""
Agent loader for automatic discovery and construction of filter agents.
"""

import importlib
import inspect
import logging
import pkgutil
from typing import Dict, Type

from . import agents as agents_pkg
from .config import AgentConfig
from .interfaces import FilterAgent

logger = logging.getLogger(__name__)

# Global registry of discovered agent classes
_REGISTRY: Dict[str, Type[FilterAgent]] = {}


def refresh_registry() -> None:
    """Scan all modules in the agents package and register FilterAgent subclasses."""
    _REGISTRY.clear()

    module_count = 0
    for info in pkgutil.iter_modules(agents_pkg.__path__):
        if info.name.startswith("_"):
            continue

        full_name = f"{agents_pkg.__name__}.{info.name}"
        try:
            mod = importlib.import_module(full_name)
        except Exception as e:
            logger.error(f"Failed to load agent module {full_name}: {e}")
            continue
        module_count += 1

        for name, obj in inspect.getmembers(mod, inspect.isclass):
            if (issubclass(obj, FilterAgent) and
                    not inspect.isabstract(obj) and
                    obj.__module__ == mod.__name__):
                # Registered both as 'ClassName' and 'module.ClassName'
                _REGISTRY[name] = obj
                _REGISTRY[f"{info.name}.{name}"] = obj
                logger.debug(f"Registered agent: {info.name}.{name}")

    logger.info(f"Agent discovery complete: {module_count} modules, {len(_REGISTRY) // 2} agents")


def get(class_path: str) -> Type[FilterAgent]:
    """Get an agent class by name.

    Args:
        class_path: 'ClassName' or 'module.ClassName' (e.g. 'url.URLFilterAgent')

    Returns:
        The agent class

    Raises:
        KeyError: If the class is not found
    """
    if not _REGISTRY:
        refresh_registry()

    if class_path not in _REGISTRY:
        available = sorted(k for k in _REGISTRY if "." not in k)
        raise KeyError(f"Agent '{class_path}' not found. Available: {available}")

    return _REGISTRY[class_path]


def list_available() -> Dict[str, Type[FilterAgent]]:
    """Get a copy of all registered agents."""
    if not _REGISTRY:
        refresh_registry()
    return _REGISTRY.copy()


def build_agent(cfg: AgentConfig) -> FilterAgent:
    """Instantiate an agent from its YAML description."""
    cls = get(cfg.class_name)
    kwargs = dict(cfg.kwargs)
    kwargs.setdefault("name", cfg.class_name)
    if cfg.priority is not None:
        kwargs["priority"] = cfg.priority
    if cfg.adaptation_threshold is not None:
        kwargs["adaptation_threshold"] = cfg.adaptation_threshold
    return cls(**kwargs)
