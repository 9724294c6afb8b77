"""Package scanning, annotation and subtype queries, dependency graph and hot reload."""

from __future__ import annotations

import importlib
import sys
import textwrap
from typing import TYPE_CHECKING, Any

import pytest

from mirrorkit.loader import HotReloadPlugin, ScanningClassLoader
from mirrorkit.reflection import ClassNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from mirrorkit.reflection import Class

PACKAGE = "mk_scan_demo"

SOURCES = {
    "__init__.py": "",
    "marks.py": """
        from mirrorkit import Annotation, annotation


        @annotation
        class Entity(Annotation):
            table: str
    """,
    "base.py": """
        class Base:
            VERSION = 1
    """,
    "models.py": """
        from mk_scan_demo.base import Base
        from mk_scan_demo.marks import Entity


        @Entity("users")
        class User(Base):
            pass


        class Admin(User):
            pass


        class Plain:
            pass
    """,
    "broken.py": """
        raise ImportError("optional dependency missing")
    """,
    "sub/__init__.py": "",
    "sub/extra.py": """
        class Extra:
            pass


        class Plain:
            pass
    """,
}


@pytest.fixture
def package_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    root = tmp_path / PACKAGE
    for relative, source in SOURCES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source), encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.setattr(sys, "dont_write_bytecode", True)
    yield root
    for name in [name for name in sys.modules if name.split(".")[0] == PACKAGE]:
        del sys.modules[name]


class ReloadRecorder(HotReloadPlugin):
    def __init__(self) -> None:
        self.reloaded: list[str] = []

    def on_class_reloaded(self, class_name: str, cls: Class[Any]) -> None:
        self.reloaded.append(class_name)


def _scanner(**options: Any) -> ScanningClassLoader:
    return ScanningClassLoader([PACKAGE], None, **options)


def test_base_packages_are_required() -> None:
    with pytest.raises(ValueError):
        ScanningClassLoader(["", "  "], None)


async def test_scan_indexes_defined_classes_and_skips_broken_modules(package_dir: Path) -> None:
    loader = _scanner()

    count = await loader.scan_packages()

    assert count == 7
    assert loader.get_scanned_classes() == [
        "mk_scan_demo.base.Base",
        "mk_scan_demo.marks.Entity",
        "mk_scan_demo.models.Admin",
        "mk_scan_demo.models.Plain",
        "mk_scan_demo.models.User",
        "mk_scan_demo.sub.extra.Extra",
        "mk_scan_demo.sub.extra.Plain",
    ]
    assert list(loader.scan_errors) == ["mk_scan_demo.broken"]
    assert "optional dependency missing" in loader.scan_errors["mk_scan_demo.broken"]


async def test_classes_load_by_simple_or_qualified_name(package_dir: Path) -> None:
    loader = _scanner()

    user = await loader.load_class("User")
    extra = await loader.load_class("mk_scan_demo.sub.extra.Extra")

    assert user.qualified_name == "mk_scan_demo.models.User"
    assert extra.simple_name == "Extra"
    assert user.get_loader() is loader


async def test_ambiguous_simple_names_are_not_found(package_dir: Path) -> None:
    loader = _scanner()

    with pytest.raises(ClassNotFoundError, match="ambiguous"):
        await loader.load_class("Plain")
    with pytest.raises(ClassNotFoundError):
        await loader.load_class("Missing")


async def test_annotation_and_subtype_queries(package_dir: Path) -> None:
    loader = _scanner()
    await loader.scan_packages()
    entity = importlib.import_module(f"{PACKAGE}.marks").Entity
    base = importlib.import_module(f"{PACKAGE}.base").Base

    annotated = await loader.get_classes_annotated_with(entity)
    subtypes = await loader.get_subtypes_of(base)

    assert [cls.qualified_name for cls in annotated] == ["mk_scan_demo.models.User"]
    assert [cls.simple_name for cls in subtypes] == ["Admin", "User"]


async def test_dependency_graph_follows_base_classes(package_dir: Path) -> None:
    loader = _scanner()
    await loader.scan_packages()

    assert loader.get_dependencies("User") == ["mk_scan_demo.base.Base"]
    assert loader.get_dependents("Base") == ["mk_scan_demo.models.User"]
    assert loader.get_dependents("Base", transitive=True) == [
        "mk_scan_demo.models.Admin",
        "mk_scan_demo.models.User",
    ]
    info = loader.get_dependency_info("User")
    assert info["dependents"] == ["mk_scan_demo.models.Admin"]
    overview = loader.get_dependency_info()
    assert overview["total_classes"] == 7
    assert overview["classes_with_dependencies"] == 2
    assert "mk_scan_demo.base.Base" in overview["hot_reloadable_classes"]


async def test_hot_reload_requires_development_mode(package_dir: Path) -> None:
    loader = _scanner()

    with pytest.raises(RuntimeError, match="development mode"):
        await loader.hot_reload_class("Base")


async def test_hot_reload_refreshes_dependents(package_dir: Path) -> None:
    loader = _scanner(development_mode=True)
    recorder = ReloadRecorder()
    loader.add_plugin(recorder)
    old_user = await loader.load_class("User")
    await loader.load_class("Admin")

    (package_dir / "base.py").write_text("class Base:\n    VERSION = 22\n", encoding="utf-8")
    reloaded = await loader.hot_reload_class("Base")

    user = loader.find_loaded_class("User")
    assert user is not None
    assert reloaded.origin.VERSION == 22
    assert user.origin is not old_user.origin
    assert issubclass(user.origin, reloaded.origin)
    assert sorted(recorder.reloaded) == ["Admin", "User"]
    assert loader.get_metrics().get_summary()["reload_count"] == 2
