"""Package metadata records and installed-distribution descriptors."""

from __future__ import annotations

import importlib.metadata
from typing import TYPE_CHECKING

import pytest

from mirrorkit.loader import PackageDescriptor, PackageInfo, discover_package_descriptors

if TYPE_CHECKING:
    from pathlib import Path


def _distribution(
    root: Path, name: str, version: str, *, requires_python: str | None = None, top_level: str = ""
) -> importlib.metadata.Distribution:
    dist_info = root / f"{name}-{version}.dist-info"
    dist_info.mkdir(parents=True)
    lines = ["Metadata-Version: 2.1", f"Name: {name}", f"Version: {version}"]
    if requires_python:
        lines.append(f"Requires-Python: {requires_python}")
    (dist_info / "METADATA").write_text("\n".join(lines) + "\n", encoding="utf-8")
    if top_level:
        (dist_info / "top_level.txt").write_text(top_level, encoding="utf-8")
    return importlib.metadata.PathDistribution(dist_info)


def test_package_info_identity_is_its_name() -> None:
    first = PackageInfo("app.core", impl_version="1")
    second = PackageInfo("app.core", impl_version="2")

    assert first == second
    assert hash(first) == hash(second)
    assert first != PackageInfo("app.web")
    assert len({first, second}) == 1


def test_package_info_requires_a_name() -> None:
    with pytest.raises(ValueError):
        PackageInfo("  ")


def test_sealing() -> None:
    sealed = PackageInfo("app", seal_base="file:///opt/app")

    assert sealed.is_sealed
    assert sealed.is_sealed_with("file:///opt/app")
    assert not sealed.is_sealed_with("file:///opt/other")
    assert not PackageInfo("app").is_sealed


@pytest.mark.parametrize(
    ("spec_version", "desired", "expected"),
    [
        ("1.10", "1.9", True),
        ("2.0", "2.0", True),
        ("2.0", "2.0.1", False),
        ("1.2", "1.3", False),
        (None, "1.0", False),
    ],
)
def test_spec_version_compatibility(
    spec_version: str | None, desired: str, expected: bool
) -> None:
    info = PackageInfo("app", spec_version=spec_version)

    assert info.is_compatible_with(desired) is expected


def test_descriptors_are_sorted_deduplicated_and_flag_the_root(tmp_path: Path) -> None:
    distributions = [
        _distribution(tmp_path / "a", "zeta-lib", "3.0"),
        _distribution(
            tmp_path / "b", "Demo_App", "1.2.0", requires_python=">=3.11", top_level="demo_app\n"
        ),
        _distribution(tmp_path / "c", "demo-app", "0.9"),
    ]

    descriptors = discover_package_descriptors("demo.app", distributions=distributions)

    assert [d.name for d in descriptors] == ["Demo_App", "zeta-lib"]
    root = descriptors[0]
    assert root.version == "1.2.0"
    assert root.language_version == ">=3.11"
    assert root.is_root_package
    assert root.top_level == ("demo_app",)
    assert not descriptors[1].is_root_package
    assert descriptors[1].top_level == ()


def test_descriptor_serialization_omits_top_level() -> None:
    descriptor = PackageDescriptor("demo", "1.0", ">=3.11", True, ("demo",))

    assert descriptor.to_dict() == {
        "name": "demo",
        "version": "1.0",
        "language_version": ">=3.11",
        "is_root_package": True,
    }


def test_installed_distributions_are_discovered() -> None:
    names = {d.name.lower() for d in discover_package_descriptors()}

    assert "pytest" in names
