"""Package metadata registered with class loaders and reported to bootstrap tooling."""

from __future__ import annotations

import importlib.metadata
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

_VERSION_PART: Final[re.Pattern[str]] = re.compile(r"\d+")


@dataclass(frozen=True, slots=True, eq=False)
class PackageInfo:
    """Immutable package descriptor; two instances are equal when their names match."""

    name: str
    spec_title: str | None = None
    spec_version: str | None = None
    spec_vendor: str | None = None
    impl_title: str | None = None
    impl_version: str | None = None
    impl_vendor: str | None = None
    seal_base: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("package name must be a non-empty string")

    @property
    def is_sealed(self) -> bool:
        return self.seal_base is not None

    def is_sealed_with(self, url: str) -> bool:
        return self.seal_base is not None and self.seal_base == url

    def is_compatible_with(self, desired: str) -> bool:
        """True when ``spec_version`` is at least ``desired`` (dotted numeric compare)."""

        if self.spec_version is None:
            return False
        return _version_tuple(self.spec_version) >= _version_tuple(desired)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageInfo):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)


@dataclass(frozen=True, slots=True)
class PackageDescriptor:
    """Installed distribution as consumed by external bootstrap tooling."""

    name: str
    version: str
    language_version: str | None = None
    is_root_package: bool = False
    top_level: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "language_version": self.language_version,
            "is_root_package": self.is_root_package,
        }


def discover_package_descriptors(
    root_package: str | None = None,
    *,
    distributions: Iterable[importlib.metadata.Distribution] | None = None,
) -> list[PackageDescriptor]:
    """Describe installed distributions sorted by name.

    ``language_version`` is the distribution's ``Requires-Python`` marker.
    ``root_package`` names the distribution flagged as the application root.
    """

    source = importlib.metadata.distributions() if distributions is None else distributions
    root = _normalize_dist_name(root_package) if root_package else None
    seen: dict[str, PackageDescriptor] = {}
    for dist in source:
        metadata = dist.metadata
        raw_name = metadata["Name"] if metadata is not None else None
        if not raw_name:
            continue
        key = _normalize_dist_name(raw_name)
        if key in seen:
            continue
        seen[key] = PackageDescriptor(
            name=raw_name,
            version=dist.version or "0",
            language_version=metadata.get("Requires-Python"),
            is_root_package=key == root,
            top_level=_top_level_names(dist),
        )
    return [seen[key] for key in sorted(seen)]


def _top_level_names(dist: importlib.metadata.Distribution) -> tuple[str, ...]:
    text = dist.read_text("top_level.txt")
    if not text:
        return ()
    return tuple(line.strip() for line in text.splitlines() if line.strip())


def _normalize_dist_name(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()


def _version_tuple(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in _VERSION_PART.findall(version))


__all__ = ["PackageDescriptor", "PackageInfo", "discover_package_descriptors"]
