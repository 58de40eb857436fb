"""Tests for location providers, discovery and the catalog."""

from __future__ import annotations

from pathlib import Path

import pytest

from reclaim.core.catalog import LocationCatalog
from reclaim.core.provider_loader import _find_providers_in_module, discover_providers, load_catalog
from reclaim.models.location import Category, Location, Safety
from reclaim.providers.darwin import DarwinProvider
from reclaim.providers.linux import LinuxProvider
from reclaim.providers.windows import WindowsProvider
from reclaim.settings import EngineConfig


class TestLocationCatalog:
    def test_register_and_iterate(self, tmp_path):
        catalog = LocationCatalog()
        location = Location(root=tmp_path, name="Test", category=Category.CACHE)
        catalog.register(location)

        assert list(catalog) == [location]
        assert tmp_path in catalog
        assert len(catalog) == 1

    def test_duplicate_registration_skipped(self, tmp_path):
        catalog = LocationCatalog()
        catalog.register(Location(root=tmp_path, name="first", category=Category.CACHE))
        catalog.register(Location(root=tmp_path, name="second", category=Category.TEMP))
        assert len(catalog) == 1
        assert next(iter(catalog)).name == "first"

    def test_owner_of_prefers_most_specific(self, tmp_path):
        catalog = LocationCatalog()
        catalog.register(Location(root=tmp_path, name="outer", category=Category.CACHE))
        catalog.register(Location(root=tmp_path / "inner", name="inner", category=Category.TEMP))

        assert catalog.owner_of(tmp_path / "inner" / "f").name == "inner"
        assert catalog.owner_of(tmp_path / "f").name == "outer"
        assert catalog.owner_of(Path("/somewhere/else")) is None


class TestProviders:
    @pytest.mark.parametrize("provider_cls", [LinuxProvider, DarwinProvider, WindowsProvider])
    def test_enumerate_is_well_formed(self, provider_cls, xdg_dirs):
        provider = provider_cls()
        locations = provider.enumerate()
        assert locations
        roots = [loc.root for loc in locations]
        assert len(roots) == len(set(roots))
        for loc in locations:
            assert loc.name
            assert loc.category is not None or loc.detect_duplicates or loc.detect_large

    def test_platform_selection(self):
        assert LinuxProvider().supports("linux")
        assert not LinuxProvider().supports("win32")
        assert DarwinProvider().supports("darwin")
        assert WindowsProvider().supports("win32")

    def test_linux_cache_is_auto_safe(self, xdg_dirs):
        cache = next(loc for loc in LinuxProvider().enumerate() if loc.category is Category.CACHE)
        assert cache.root == xdg_dirs["cache"]
        assert cache.safety is Safety.AUTO_SAFE

    def test_linux_downloads_from_user_dirs(self, xdg_dirs, tmp_path):
        (xdg_dirs["config"] / "user-dirs.dirs").write_text(f'XDG_DOWNLOAD_DIR="{tmp_path}/Stahovani"\n')
        downloads = next(loc for loc in LinuxProvider().enumerate() if loc.name == "Downloads")
        assert downloads.root == tmp_path / "Stahovani"
        assert downloads.category is None

    def test_find_providers_skips_abstract(self):
        import reclaim.providers.linux as module

        found = _find_providers_in_module(module)
        assert found == [LinuxProvider]


class TestProviderLoader:
    def test_discovers_builtin_providers(self):
        classes = discover_providers(EngineConfig())
        assert {LinuxProvider, DarwinProvider, WindowsProvider} <= set(classes)

    def test_load_catalog_for_platform(self, xdg_dirs):
        catalog = LocationCatalog()
        load_catalog(catalog, EngineConfig(), platform="linux")
        assert len(catalog) > 0
        assert all(loc.applies_to("linux") for loc in catalog)
        assert xdg_dirs["cache"] in catalog

    def test_extra_locations_from_config(self, tmp_path, xdg_dirs):
        config = EngineConfig(
            extra_locations=[
                {"root": str(tmp_path / "builds"), "name": "Build output", "category": "cache"},
                {"name": "broken"},
            ]
        )
        catalog = LocationCatalog()
        load_catalog(catalog, config, platform="linux")

        extra = catalog.owner_of(tmp_path / "builds")
        assert extra.root == tmp_path / "builds"
        assert extra.category is Category.CACHE
        assert extra.safety is Safety.NEEDS_CONFIRMATION

    def test_external_provider_directory(self, tmp_path, xdg_dirs):
        provider_dir = tmp_path / "providers"
        provider_dir.mkdir()
        (provider_dir / "custom.py").write_text(
            "from pathlib import Path\n"
            "from reclaim.models.location import Category, Location, LocationProvider\n"
            "\n"
            "class CustomProvider(LocationProvider):\n"
            "    id = 'custom'\n"
            "    platforms = ('linux',)\n"
            "\n"
            "    def enumerate(self):\n"
            f"        return [Location(root=Path({str(tmp_path / 'custom')!r}), name='Custom', category=Category.TEMP)]\n"
        )

        catalog = LocationCatalog()
        load_catalog(catalog, EngineConfig(provider_paths=[provider_dir]), platform="linux")
        assert tmp_path / "custom" in catalog

    def test_broken_provider_module_does_not_break_loading(self, tmp_path, xdg_dirs):
        provider_dir = tmp_path / "providers"
        provider_dir.mkdir()
        (provider_dir / "broken.py").write_text("raise RuntimeError('boom')\n")

        catalog = LocationCatalog()
        load_catalog(catalog, EngineConfig(provider_paths=[provider_dir]), platform="linux")
        assert len(catalog) > 0
