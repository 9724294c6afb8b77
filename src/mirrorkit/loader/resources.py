"""
mirrorkit — scheme-dispatching resource resolution.

File: src/mirrorkit/loader/resources.py
Last updated: 2026-10-18

Purpose
- Turn a resource name into a canonical URI and, on request, its payload.

What should be included in this file
- ``package:<pkg>/<path>`` resolved under an importable package's directory
  (or a configured override root).
- ``python:<module>`` resolved against the standard library.
- ``file:`` URIs checked on disk; ``http:``/``https:`` checked with ``HEAD``.
- Scheme-less names searched under configured roots, then the base directory.
- Glob expansion, a content cache with expiry, and an existence probe.

Functional requirements
- Every scheme failure yields ``None`` (or an empty list); nothing here raises
  class-loading errors.
- Each filesystem or network step runs under a deadline and honours an
  optional ``CancellationToken``; timeouts are logged and yield ``None`` while
  cancellation propagates.

Non-functional requirements
- Concurrent resolution of one name may duplicate work; results are memoized
  afterwards.
"""

from __future__ import annotations

import asyncio
import importlib.util
import logging
import sys
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import urlsplit
from urllib.request import url2pathname

import httpx

from mirrorkit.utils.concurrency import run_with_timeout

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from mirrorkit.utils.concurrency import CancellationToken

logger = logging.getLogger(__name__)

PACKAGE_SCHEME: Final[str] = "package"
CORE_SCHEME: Final[str] = "python"
FILE_SCHEME: Final[str] = "file"
HTTP_SCHEMES: Final[frozenset[str]] = frozenset({"http", "https"})
KNOWN_SCHEMES: Final[frozenset[str]] = frozenset(
    {PACKAGE_SCHEME, CORE_SCHEME, FILE_SCHEME, *HTTP_SCHEMES}
)

DEFAULT_SEARCH_ROOTS: Final[tuple[str, ...]] = ("resources", "assets", "static")
DEFAULT_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_CONTENT_CACHE_TTL_SECONDS: Final[float] = 600.0

_GLOB_CHARS: Final[frozenset[str]] = frozenset("*?[")


@dataclass(frozen=True, slots=True)
class ResolverSettings:
    """Where and how long to look for resources."""

    base_dir: Path = field(default_factory=Path.cwd)
    search_roots: tuple[str, ...] = DEFAULT_SEARCH_ROOTS
    package_roots: Mapping[str, Path] = field(default_factory=dict)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    content_cache_ttl_seconds: float = DEFAULT_CONTENT_CACHE_TTL_SECONDS

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.content_cache_ttl_seconds < 0:
            raise ValueError("content_cache_ttl_seconds must be >= 0")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> ResolverSettings:
        """Build settings from the ``[resources]`` section of an effective config."""

        section = config.get("resources", {})
        if not isinstance(section, Mapping):
            return cls()
        base_dir = section.get("base_dir")
        roots = section.get("package_roots", {})
        return cls(
            base_dir=Path(base_dir) if isinstance(base_dir, str) and base_dir else Path.cwd(),
            search_roots=tuple(section.get("search_roots", DEFAULT_SEARCH_ROOTS)),
            package_roots={
                str(name): Path(path)
                for name, path in dict(roots).items()
                if isinstance(path, str)
            },
            timeout_seconds=float(section.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            content_cache_ttl_seconds=float(
                section.get("content_cache_ttl_seconds", DEFAULT_CONTENT_CACHE_TTL_SECONDS)
            ),
        )


@dataclass(frozen=True, slots=True)
class _CachedContent:
    payload: bytes
    expires_at: float


class ResourceResolver:
    """Resolve resource names to URIs and load their contents."""

    def __init__(
        self,
        settings: ResolverSettings | None = None,
        *,
        http_client_factory: Callable[[], httpx.AsyncClient] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or ResolverSettings()
        self._client_factory = http_client_factory or self._default_client
        self._clock = clock
        self._resolved: dict[str, str] = {}
        self._contents: dict[str, _CachedContent] = {}

    # resolution

    async def resolve(
        self, name: str, *, cancel_token: CancellationToken | None = None
    ) -> str | None:
        """Return the canonical URI for ``name`` or ``None`` when it cannot be found."""

        cached = self._resolved.get(name)
        if cached is not None:
            return cached
        scheme, rest = split_scheme(name)
        try:
            if scheme == PACKAGE_SCHEME:
                uri = await self._bounded(self._resolve_package(rest), cancel_token)
            elif scheme == CORE_SCHEME:
                uri = _resolve_core(rest)
            elif scheme == FILE_SCHEME:
                uri = await self._bounded(_existing_uri(_path_from_file_uri(name)), cancel_token)
            elif scheme in HTTP_SCHEMES:
                uri = await self._bounded(self._probe_http(name), cancel_token)
            else:
                uri = await self._bounded(self._resolve_relative(name), cancel_token)
        except TimeoutError:
            logger.warning(
                "resolving resource %s timed out after %ss", name, self.settings.timeout_seconds
            )
            return None
        except (OSError, ValueError, httpx.HTTPError) as exc:
            logger.debug("resolving resource %s failed: %s", name, exc)
            return None
        if uri is not None:
            self._resolved[name] = uri
        return uri

    async def resolve_all(
        self, name: str, *, cancel_token: CancellationToken | None = None
    ) -> list[str]:
        """Resolve every match of ``name``; glob patterns expand to all matching files."""

        if not _GLOB_CHARS.intersection(name):
            uri = await self.resolve(name, cancel_token=cancel_token)
            return [] if uri is None else [uri]
        scheme, rest = split_scheme(name)
        try:
            if scheme == PACKAGE_SCHEME:
                package, _, pattern = rest.partition("/")
                root = await self._bounded(self._package_root(package), cancel_token)
                roots = [] if root is None else [root]
            elif scheme is None:
                pattern = name
                roots = self._search_dirs()
            else:
                return []
            return await self._bounded(_glob_uris(roots, pattern), cancel_token)
        except TimeoutError:
            logger.warning("expanding resource pattern %s timed out", name)
            return []
        except (OSError, ValueError) as exc:
            logger.debug("expanding resource pattern %s failed: %s", name, exc)
            return []

    async def exists(self, name: str, *, cancel_token: CancellationToken | None = None) -> bool:
        return await self.resolve(name, cancel_token=cancel_token) is not None

    # contents

    async def load_bytes(
        self, name: str, *, cancel_token: CancellationToken | None = None
    ) -> bytes | None:
        """Return the payload of ``name``, served from the content cache while fresh."""

        now = self._clock()
        cached = self._contents.get(name)
        if cached is not None and cached.expires_at > now:
            return cached.payload

        uri = await self.resolve(name, cancel_token=cancel_token)
        if uri is None:
            return None
        try:
            payload = await self._bounded(self._read(uri), cancel_token)
        except TimeoutError:
            logger.warning("reading resource %s timed out", uri)
            return None
        except (OSError, ValueError, httpx.HTTPError) as exc:
            logger.warning("reading resource %s failed: %s", uri, exc)
            return None
        if payload is None:
            return None
        ttl = self.settings.content_cache_ttl_seconds
        if ttl > 0:
            self._contents[name] = _CachedContent(payload=payload, expires_at=self._clock() + ttl)
        return payload

    async def load_string(
        self,
        name: str,
        *,
        encoding: str = "utf-8",
        cancel_token: CancellationToken | None = None,
    ) -> str | None:
        payload = await self.load_bytes(name, cancel_token=cancel_token)
        if payload is None:
            return None
        try:
            return payload.decode(encoding)
        except (UnicodeDecodeError, LookupError) as exc:
            logger.warning("decoding resource %s as %s failed: %s", name, encoding, exc)
            return None

    def clear_cache(self) -> None:
        self._resolved.clear()
        self._contents.clear()

    def forget(self, name: str) -> None:
        """Drop memoized resolution and content for ``name``."""

        uri = self._resolved.pop(name, None)
        self._contents.pop(name, None)
        if uri is not None:
            self._contents.pop(uri, None)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._contents.items() if entry.expires_at <= now]
        for key in expired:
            del self._contents[key]
        return len(expired)

    # scheme handlers

    async def _resolve_package(self, rest: str) -> str | None:
        package, _, relative = rest.partition("/")
        if not package or not relative:
            return None
        root = await self._package_root(package)
        if root is None:
            return None
        candidate = (root / relative).resolve()
        if not candidate.is_relative_to(root.resolve()):
            logger.warning("package resource %s escapes package root %s", rest, root)
            return None
        return await _existing_uri(candidate)

    async def _package_root(self, package: str) -> Path | None:
        override = self.settings.package_roots.get(package)
        if override is not None:
            return Path(override)
        spec = await asyncio.to_thread(_find_spec, package)
        if spec is None:
            return None
        locations = list(spec.submodule_search_locations or ())
        if locations:
            return Path(locations[0])
        if spec.origin and spec.has_location:
            return Path(spec.origin).parent
        return None

    async def _probe_http(self, url: str) -> str | None:
        async with self._client_factory() as client:
            response = await client.head(url)
        if response.status_code == httpx.codes.OK:
            return url
        logger.debug("HEAD %s returned %s", url, response.status_code)
        return None

    async def _resolve_relative(self, name: str) -> str | None:
        direct = Path(name)
        if direct.is_absolute():
            return await _existing_uri(direct)
        for directory in self._search_dirs():
            uri = await _existing_uri(directory / name)
            if uri is not None:
                return uri
        return None

    async def _read(self, uri: str) -> bytes | None:
        scheme, rest = split_scheme(uri)
        if scheme == FILE_SCHEME:
            return await asyncio.to_thread(_path_from_file_uri(uri).read_bytes)
        if scheme in HTTP_SCHEMES:
            async with self._client_factory() as client:
                response = await client.get(uri)
                response.raise_for_status()
                return response.content
        if scheme == CORE_SCHEME:
            spec = await asyncio.to_thread(_find_spec, rest)
            if spec is None or not spec.origin or not spec.has_location:
                return None
            return await asyncio.to_thread(Path(spec.origin).read_bytes)
        return None

    def _search_dirs(self) -> list[Path]:
        base = self.settings.base_dir
        return [base / root for root in self.settings.search_roots] + [base]

    def _bounded(
        self, coroutine: Awaitable[Any], cancel_token: CancellationToken | None
    ) -> Awaitable[Any]:
        return run_with_timeout(coroutine, self.settings.timeout_seconds, cancel_token)

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.timeout_seconds, follow_redirects=True)


def split_scheme(name: str) -> tuple[str | None, str]:
    """Split ``name`` into a known scheme and the remainder; unknown prefixes are not schemes."""

    head, sep, rest = name.partition(":")
    if sep and head.lower() in KNOWN_SCHEMES:
        return head.lower(), rest
    return None, name


def _resolve_core(module: str) -> str | None:
    top_level = module.replace("/", ".").split(".", 1)[0]
    if top_level in sys.stdlib_module_names:
        return f"{CORE_SCHEME}:{module.replace('/', '.')}"
    return None


def _path_from_file_uri(uri: str) -> Path:
    parts = urlsplit(uri)
    return Path(url2pathname(parts.path))


async def _existing_uri(path: Path) -> str | None:
    is_file = await asyncio.to_thread(path.is_file)
    if not is_file:
        return None
    return path.resolve().as_uri()


async def _glob_uris(roots: list[Path], pattern: str) -> list[str]:
    def expand() -> list[str]:
        found: dict[str, None] = {}
        for root in roots:
            if not root.is_dir():
                continue
            for match in sorted(root.glob(pattern)):
                if match.is_file():
                    found.setdefault(match.resolve().as_uri(), None)
        return list(found)

    return await asyncio.to_thread(expand)


def _find_spec(name: str) -> Any:
    try:
        return importlib.util.find_spec(name)
    except (ImportError, ValueError):
        return None


__all__ = [
    "CORE_SCHEME",
    "DEFAULT_SEARCH_ROOTS",
    "FILE_SCHEME",
    "PACKAGE_SCHEME",
    "ResolverSettings",
    "ResourceResolver",
    "split_scheme",
]
