"""Location provider discovery and catalog loading."""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import logging
import pkgutil
import sys
from pathlib import Path
from types import ModuleType

from reclaim.core.catalog import LocationCatalog
from reclaim.models.location import Location, LocationProvider
from reclaim.settings import EngineConfig
from reclaim.utils import xdg_data_home

log = logging.getLogger(__name__)

# Standard provider search paths
_SYSTEM_PROVIDER_DIR = Path("/usr/share/reclaim/providers")
_USER_PROVIDER_DIR = xdg_data_home() / "reclaim" / "providers"


def _find_providers_in_module(module: ModuleType) -> list[type[LocationProvider]]:
    """Find all concrete LocationProvider subclasses in a module."""
    providers: list[type[LocationProvider]] = []
    for _, obj in inspect.getmembers(module, inspect.isclass):
        if issubclass(obj, LocationProvider) and not inspect.isabstract(obj):
            providers.append(obj)
    return providers


def _load_builtin_providers() -> list[type[LocationProvider]]:
    """Load providers from the reclaim.providers package."""
    import reclaim.providers as providers_pkg

    found: list[type[LocationProvider]] = []
    for _importer, modname, _ispkg in pkgutil.iter_modules(providers_pkg.__path__):
        try:
            module = importlib.import_module(f"reclaim.providers.{modname}")
            found.extend(_find_providers_in_module(module))
        except Exception:
            log.exception("Failed to load built-in provider module: %s", modname)
    return found


def _load_providers_from_directory(directory: Path) -> list[type[LocationProvider]]:
    """Load providers from an external directory of modules."""
    if not directory.is_dir():
        return []

    found: list[type[LocationProvider]] = []
    for path in sorted(directory.iterdir()):
        if path.is_dir() and (path / "__init__.py").exists():
            module_file = path / "provider.py"
            if not module_file.exists():
                module_file = path / "__init__.py"
        elif path.suffix == ".py" and path.name != "__init__.py":
            module_file = path
        else:
            continue

        try:
            spec = importlib.util.spec_from_file_location(f"reclaim_ext_provider_{path.stem}", module_file)
            if spec is None or spec.loader is None:
                continue
            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)
            found.extend(_find_providers_in_module(module))
        except Exception:
            log.exception("Failed to load provider from: %s", module_file)
    return found


def discover_providers(config: EngineConfig | None = None) -> list[type[LocationProvider]]:
    """Find provider classes: built-in, system-wide, user-local, config-specified."""
    config = config or EngineConfig()
    classes: list[type[LocationProvider]] = []
    classes.extend(_load_builtin_providers())
    classes.extend(_load_providers_from_directory(_SYSTEM_PROVIDER_DIR))
    classes.extend(_load_providers_from_directory(_USER_PROVIDER_DIR))
    for path in config.provider_paths:
        classes.extend(_load_providers_from_directory(path))
    return classes


def load_catalog(
    catalog: LocationCatalog,
    config: EngineConfig | None = None,
    platform: str = sys.platform,
) -> None:
    """Fill *catalog* from the providers that support *platform*.

    Locations listed under ``locations.extra`` in the settings are added
    after the providers' own.
    """
    config = config or EngineConfig()

    for cls in discover_providers(config):
        try:
            provider = cls()
            if not provider.supports(platform):
                log.debug("Provider '%s' does not support %s", provider.id, platform)
                continue
            locations = provider.enumerate()
        except Exception:
            log.exception("Failed to enumerate provider: %s", cls.__name__)
            continue
        for location in locations:
            if location.applies_to(platform):
                catalog.register(location)

    for entry in config.extra_locations:
        try:
            catalog.register(Location.from_dict(entry))
        except (KeyError, ValueError) as e:
            log.warning("Ignoring invalid extra location %r: %s", entry, e)

    log.info("Loaded %d locations", len(catalog))
