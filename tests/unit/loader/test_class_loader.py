"""Delegation, caching, plugins, packages and resources of ``ClassLoader``."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import pytest

from mirrorkit.config import apply_profile_overlay, default_config
from mirrorkit.loader import (
    ClassLoader,
    ClassLoaderPlugin,
    ClassLoaderResource,
    HotReloadPlugin,
    ResolverSettings,
    ResourceResolver,
    get_system_class_loader,
)
from mirrorkit.reflection import (
    Class,
    ClassNotFoundError,
    DuplicateDefinitionError,
    IllegalArgumentTypeError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path


class Widget:
    pass


class OtherWidget:
    pass


class Gadget:
    pass


class DictLoader(ClassLoader):
    """Serves classes from a mapping and counts how often it is asked."""

    def __init__(self, classes: Mapping[str, type], **options: Any) -> None:
        self.available = dict(classes)
        self.find_calls = 0
        super().__init__(**options)

    async def find_class(self, name: str) -> Class[Any]:
        self.find_calls += 1
        await asyncio.sleep(0)
        if name not in self.available:
            raise ClassNotFoundError(name)
        return self.define(self.available[name])


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class RecordingPlugin(HotReloadPlugin):
    def __init__(self, label: str, events: list[str]) -> None:
        self.label = label
        self.events = events
        self.loader: ClassLoader | None = None

    def initialize(self, loader: ClassLoader) -> None:
        self.loader = loader

    def before_class_load(self, class_name: str) -> None:
        self.events.append(f"{self.label}:before:{class_name}")

    def after_class_load(self, class_name: str, cls: Class[Any]) -> None:
        self.events.append(f"{self.label}:after:{class_name}")

    def on_class_reloaded(self, class_name: str, cls: Class[Any]) -> None:
        self.events.append(f"{self.label}:reloaded:{class_name}")

    def dispose(self) -> None:
        self.events.append(f"{self.label}:disposed")


class RejectingPlugin(ClassLoaderPlugin):
    def before_class_load(self, class_name: str) -> None:
        raise PermissionError(f"{class_name} is blocked")


def _loader(classes: Mapping[str, type] | None = None, **options: Any) -> DictLoader:
    options.setdefault("parent", None)
    return DictLoader(classes or {"Widget": Widget}, **options)


# class loading


async def test_repeated_loads_return_the_cached_class() -> None:
    loader = _loader()

    first = await loader.load_class("Widget")
    second = await loader.load_class("Widget")

    assert first is second
    assert first.origin is Widget
    assert first.get_loader() is loader
    assert loader.find_calls == 1
    summary = loader.get_metrics().get_summary()
    assert summary["total_loads"] == 1
    assert summary["cache_hit_ratio"] == 0.5


async def test_concurrent_loads_of_one_name_run_find_once() -> None:
    loader = _loader()

    results = await asyncio.gather(*(loader.load_class("Widget") for _ in range(10)))

    assert loader.find_calls == 1
    assert all(result is results[0] for result in results)
    summary = loader.get_metrics().get_summary()
    assert summary["total_loads"] == 1
    assert summary["cache_hit_ratio"] == pytest.approx(0.9)


async def test_root_loader_serves_bootstrap_classes_without_find() -> None:
    loader = _loader()

    cls = await loader.load_class("str")

    assert cls.origin is str
    assert loader.find_calls == 0


async def test_parent_is_asked_first() -> None:
    parent = _loader({"Widget": Widget})
    child = _loader({"Widget": OtherWidget, "Gadget": Gadget}, parent=parent)

    widget = await child.load_class("Widget")
    gadget = await child.load_class("Gadget")

    assert widget.origin is Widget
    assert widget.get_loader() is parent
    assert gadget.origin is Gadget
    assert child.is_class_loaded("Widget")
    assert not parent.is_class_loaded("Widget")
    assert child.find_calls == 1


async def test_parent_cache_is_reused_by_children() -> None:
    parent = _loader({"Widget": Widget})
    child = _loader({}, parent=parent)

    loaded = await parent.load_class("Widget")
    delegated = await child.load_class("Widget")

    assert delegated is loaded
    assert parent.find_calls == 1


async def test_default_parent_is_the_system_loader() -> None:
    loader = DictLoader({})

    assert loader.parent is get_system_class_loader()
    cls = await loader.load_class("collections.OrderedDict")
    assert cls.qualified_name == "collections.OrderedDict"
    assert loader.find_calls == 0


async def test_missing_classes_raise_and_count_errors() -> None:
    loader = _loader()

    with pytest.raises(ClassNotFoundError) as excinfo:
        await loader.load_class("Missing")

    assert excinfo.value.class_name == "Missing"
    assert not loader.is_class_loaded("Missing")
    summary = loader.get_metrics().get_summary()
    assert summary["error_count"] == 1
    assert loader.get_metrics().get_class_stats("Missing").errors


async def test_very_long_names_are_counted_without_masking_the_lookup_error() -> None:
    long_name = "pkg." + "A" * 600
    loader = _loader({long_name: Widget})

    with pytest.raises(ClassNotFoundError):
        await loader.load_class(long_name + "B")
    loaded = await loader.load_class(long_name)

    assert loaded.origin is Widget
    summary = loader.get_metrics().get_summary()
    assert summary["error_count"] == 1
    assert summary["total_loads"] == 2
    assert loader.get_metrics().get_class_stats(long_name).load_count == 1


@pytest.mark.parametrize("bad_name", ["", "   ", 42, None])
async def test_invalid_names_are_rejected(bad_name: object) -> None:
    loader = _loader()

    with pytest.raises(IllegalArgumentTypeError):
        await loader.load_class(bad_name)  # type: ignore[arg-type]


async def test_loaded_class_queries_and_clear_cache() -> None:
    loader = _loader({"Widget": Widget, "Gadget": Gadget})
    await loader.load_class("Widget")

    assert loader.find_loaded_class("Widget") is not None
    assert loader.find_loaded_class("Gadget") is None
    assert set(loader.get_loaded_classes()) == {"Widget"}

    loader.clear_cache()

    assert not loader.is_class_loaded("Widget")


async def test_preload_skips_failures() -> None:
    loader = _loader({"Widget": Widget, "Gadget": Gadget}, preload_concurrency=2)

    loaded = await loader.preload_classes(["Widget", "Missing", "Gadget"])

    assert sorted(cls.simple_name for cls in loaded) == ["Gadget", "Widget"]
    assert loader.get_metrics().get_summary()["error_count"] == 1


def test_constructor_validates_options() -> None:
    with pytest.raises(ValueError):
        DictLoader({}, parent=None, resource_ttl_seconds=0)
    with pytest.raises(ValueError):
        DictLoader({}, parent=None, preload_concurrency=0)


def test_from_config_reads_loader_and_metrics_sections() -> None:
    config = apply_profile_overlay(default_config(), "dev")

    loader = ClassLoader.from_config(config, parent=None, name="configured")

    assert loader.is_development_mode
    assert loader.get_metrics().detailed_tracking
    assert repr(loader) == "ClassLoader(name='configured', parent=None)"


# plugins


async def test_plugins_run_in_registration_order() -> None:
    events: list[str] = []
    loader = _loader()
    first = RecordingPlugin("a", events)
    second = RecordingPlugin("b", events)
    loader.add_plugin(first)
    loader.add_plugin(second)

    await loader.load_class("Widget")

    assert first.loader is loader
    assert events == [
        "a:before:Widget",
        "b:before:Widget",
        "a:after:Widget",
        "b:after:Widget",
    ]
    assert loader.get_plugins() == (first, second)


async def test_throwing_plugin_aborts_the_load() -> None:
    loader = _loader()
    loader.add_plugin(RejectingPlugin())

    with pytest.raises(PermissionError, match="Widget is blocked"):
        await loader.load_class("Widget")

    assert loader.find_calls == 0
    assert not loader.is_class_loaded("Widget")
    assert loader.get_metrics().get_summary()["error_count"] == 1


def test_remove_plugin_disposes_once() -> None:
    events: list[str] = []
    loader = _loader()
    plugin = RecordingPlugin("a", events)
    loader.add_plugin(plugin)

    assert loader.remove_plugin(plugin) is True
    assert loader.remove_plugin(plugin) is False
    assert events == ["a:disposed"]


# development mode


async def test_marked_classes_reload_in_development_mode() -> None:
    events: list[str] = []
    loader = _loader(development_mode=True)
    loader.add_plugin(RecordingPlugin("a", events))

    first = await loader.load_class("Widget")
    loader.available["Widget"] = type("Widget", (), {"revision": 2})
    loader.mark_modified("Widget")
    second = await loader.load_class("Widget")

    assert loader.find_calls == 2
    assert first != second
    assert second.origin.revision == 2
    assert "a:reloaded:Widget" in events
    assert loader.get_metrics().get_summary()["reload_count"] == 1


async def test_concurrent_loads_of_a_stale_class_reload_once() -> None:
    events: list[str] = []
    loader = _loader(development_mode=True)
    loader.add_plugin(RecordingPlugin("a", events))
    await loader.load_class("Widget")
    loader.available["Widget"] = type("Widget", (), {})
    loader.mark_modified("Widget")

    results = await asyncio.gather(*(loader.load_class("Widget") for _ in range(5)))

    assert loader.find_calls == 2
    assert all(cls is results[0] for cls in results)
    assert events.count("a:reloaded:Widget") == 1
    assert loader.get_metrics().get_summary()["reload_count"] == 1


async def test_reloading_a_delegated_class_evicts_it_from_the_parent() -> None:
    parent = _loader()
    child = _loader({}, parent=parent, development_mode=True)
    await parent.load_class("Widget")
    first = await child.load_class("Widget")
    assert parent.find_calls == 1

    parent.available["Widget"] = type("Widget", (), {})
    child.mark_modified("Widget")
    second = await child.load_class("Widget")

    assert first != second
    assert parent.find_calls == 2
    assert parent.find_loaded_class("Widget") is None
    assert child.find_calls == 0


async def test_marks_before_the_first_load_do_not_force_a_reload() -> None:
    loader = _loader(development_mode=True)
    loader.mark_modified("Widget")

    await loader.load_class("Widget")
    await loader.load_class("Widget")

    assert loader.find_calls == 1
    assert loader.get_metrics().get_summary()["reload_count"] == 0


async def test_marks_are_ignored_outside_development_mode() -> None:
    loader = _loader()

    await loader.load_class("Widget")
    loader.mark_modified("Widget")
    await loader.load_class("Widget")

    assert loader.find_calls == 1


async def test_toggling_development_mode_switches_detailed_tracking() -> None:
    loader = _loader()
    loader.enable_development_mode()
    await loader.load_class("Widget")

    assert loader.get_metrics().get_recent_events()

    loader.disable_development_mode()

    assert not loader.is_development_mode
    assert loader.get_metrics().get_recent_events() == []


# packages


def test_define_package_rejects_duplicates() -> None:
    loader = _loader()
    info = loader.define_package("app.models", spec_version="1.2", seal_base="file:///app")

    assert info.is_sealed_with("file:///app")
    assert info.is_compatible_with("1.1")
    with pytest.raises(DuplicateDefinitionError, match="package already defined: app.models"):
        loader.define_package("app.models", spec_version="9.9", seal_base="file:///other")

    kept = loader.get_package("app.models")
    assert kept is info
    assert kept.spec_version == "1.2"
    assert kept.seal_base == "file:///app"


def test_packages_fall_back_to_the_parent() -> None:
    parent = _loader()
    child = _loader(parent=parent)
    parent.define_package("shared", impl_version="1")
    parent.define_package("zeta")
    child.define_package("shared", impl_version="2")
    child.define_package("alpha")

    assert child.get_package("zeta") is parent.get_package("zeta")
    assert child.get_package("missing") is None
    packages = child.get_packages()
    assert [info.name for info in packages] == ["alpha", "shared", "zeta"]
    assert packages[1].impl_version == "2"


# resources


def _resource_loader(tmp_path: Path, clock: FakeClock, **options: Any) -> DictLoader:
    resolver = ResourceResolver(ResolverSettings(base_dir=tmp_path), clock=clock)
    return _loader(resolver=resolver, clock=clock, **options)


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


async def test_resource_readers_decode_contents(tmp_path: Path) -> None:
    _write(tmp_path / "resources" / "app.json", json.dumps({"name": "demo"}))
    _write(tmp_path / "resources" / "app.yaml", "name: demo\nitems: [1, 2]\n")
    _write(tmp_path / "resources" / "list.json", "[1, 2]")
    _write(tmp_path / "resources" / "broken.json", "{not json")
    loader = _resource_loader(tmp_path, FakeClock())

    assert await loader.get_resource_as_json("app.json") == {"name": "demo"}
    assert await loader.get_resource_as_yaml("app.yaml") == {"name": "demo", "items": [1, 2]}
    assert await loader.get_resource_as_json("list.json") is None
    assert await loader.get_resource_as_json("broken.json") is None
    assert await loader.get_resource_as_bytes("app.yaml") == b"name: demo\nitems: [1, 2]\n"
    assert await loader.get_resource_as_string("missing.txt") is None


async def test_resource_lookups_are_cached_until_expiry(tmp_path: Path) -> None:
    clock = FakeClock()
    path = _write(tmp_path / "note.txt", "hello")
    loader = _resource_loader(tmp_path, clock, resource_ttl_seconds=10)

    uri = await loader.get_resource("note.txt")
    assert uri == path.resolve().as_uri()

    path.unlink()
    clock.now += 5
    assert await loader.find_resource("note.txt") == uri

    clock.now += 10
    assert await loader.find_resource("note.txt") is None


async def test_optimize_cache_purges_expired_entries(tmp_path: Path) -> None:
    clock = FakeClock()
    _write(tmp_path / "note.txt", "hello")
    loader = _resource_loader(tmp_path, clock, resource_ttl_seconds=10)
    await loader.find_resource("note.txt")

    assert loader.optimize_cache() == 0
    clock.now += 11
    assert loader.optimize_cache() == 1
    assert loader.optimize_cache() == 0


async def test_get_resources_merges_parent_results(tmp_path: Path) -> None:
    clock = FakeClock()
    first = _write(tmp_path / "resources" / "a.txt", "a")
    second = _write(tmp_path / "static" / "b.txt", "b")
    parent = _resource_loader(tmp_path, clock)
    child = _resource_loader(tmp_path, clock, parent=parent)

    found = await child.get_resources("*.txt")

    assert found == [first.resolve().as_uri(), second.resolve().as_uri()]


def test_resource_entries_expire_at_their_ttl() -> None:
    entry = ClassLoaderResource("file:///x", timestamp=100.0, ttl_seconds=5.0)

    assert entry.expires_at == 105.0
    assert not entry.is_expired(104.9)
    assert entry.is_expired(105.0)
