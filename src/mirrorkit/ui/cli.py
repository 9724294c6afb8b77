"""Command-line interface router for mirrorkit."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from mirrorkit.config import (
    ConfigLoadError,
    ConfigValidationError,
    assert_valid_config,
    dump_effective_config,
    load_config,
)
from mirrorkit.loader import (
    ResolverSettings,
    ResourceResolver,
    SystemClassLoader,
    discover_package_descriptors,
)
from mirrorkit.observability import setup_logging, shutdown_logging
from mirrorkit.reflection import Class, ClassNotFoundError, MethodMirror, Modifier
from mirrorkit.ui.render import CLIRenderer, create_renderer


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="mirrorkit",
        description=(
            "mirrorkit - reflection mirrors and hierarchical class loading.\n\n"
            "Common workflows:\n"
            "  mirrorkit inspect collections.OrderedDict   Describe a class\n"
            "  mirrorkit resolve package:mirrorkit/main.py  Resolve a resource URI\n"
            "  mirrorkit config                             Show effective config\n"
            "  mirrorkit packages                           List installed packages\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to mirrorkit TOML config (default: ./mirrorkit.toml if present).",
    )
    common.add_argument(
        "--profile",
        default=None,
        help="Optional config profile overlay name.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )
    common.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    common.add_argument(
        "--log",
        action="store_true",
        default=False,
        help="Write structured JSONL logs under observability.log_dir.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # inspect -------------------------------------------------------------
    inspect_parser = subparsers.add_parser(
        "inspect",
        parents=[common],
        help="Load a class through the system loader and describe it",
        description=(
            "Resolve a class name and print its mirror.\n\n"
            "Accepted names:\n"
            "  collections.OrderedDict        dotted module path\n"
            "  python:json#JSONDecoder        module plus class\n"
            "  package:mypkg/models/User      package-relative path\n"
            "  str                            simple builtin name\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    inspect_parser.add_argument("name", help="Class name to load")
    inspect_parser.set_defaults(handler=_cmd_inspect)

    # resolve -------------------------------------------------------------
    resolve_parser = subparsers.add_parser(
        "resolve",
        parents=[common],
        help="Resolve a resource name to a canonical URI",
    )
    resolve_parser.add_argument("resource", help="Resource name or URI")
    resolve_parser.add_argument(
        "--content", action="store_true", help="Also print the resource text"
    )
    resolve_parser.set_defaults(handler=_cmd_resolve)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config", parents=[common], help="Print the effective configuration"
    )
    config_parser.set_defaults(handler=_cmd_config)

    # packages ------------------------------------------------------------
    packages_parser = subparsers.add_parser(
        "packages", parents=[common], help="List installed distributions"
    )
    packages_parser.add_argument(
        "--root", default=None, help="Distribution to flag as the application root"
    )
    packages_parser.set_defaults(handler=_cmd_packages)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_inspect(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    name = _require_str(getattr(args, "name", None), "name")
    loader = SystemClassLoader.from_config(config)

    try:
        cls = asyncio.run(loader.load_class(name))
    except ClassNotFoundError as exc:
        raise CLIError(str(exc), exit_code=1) from exc

    payload = _describe_class(cls)
    if _flag(args, "json"):
        _emit_json({"command": "inspect", "class": payload})
        return 0

    renderer = _get_renderer(args)
    renderer.heading(payload["qualified_name"])
    renderer.kv("Simple name", payload["simple_name"])
    renderer.kv("Descriptor", payload["descriptor"])
    renderer.kv("Flags", ", ".join(payload["flags"]) or "(none)")
    renderer.kv("Superclass", payload["superclass"] or "(none)")
    if payload["interfaces"]:
        renderer.kv("Interfaces", ", ".join(payload["interfaces"]))
    if payload["type_arguments"]:
        renderer.kv("Type arguments", ", ".join(payload["type_arguments"]))

    renderer.table(
        ("Field", "Type", "Modifiers"),
        [(item["name"], item["type"], item["modifiers"]) for item in payload["fields"]],
        title="Fields:",
    )
    renderer.table(
        ("Method", "Kind", "Parameters", "Returns"),
        [
            (item["name"], item["kind"], ", ".join(item["parameters"]), item["returns"])
            for item in payload["methods"]
        ],
        title="Methods:",
    )
    renderer.table(
        ("Constructor", "Parameters"),
        [
            (item["name"] or "(default)", ", ".join(item["parameters"]))
            for item in payload["constructors"]
        ],
        title="Constructors:",
    )
    if renderer.verbose:
        renderer.section("Loader metrics:")
        for key, value in sorted(loader.get_metrics().get_summary().items()):
            renderer.kv(f"  {key}", value)
    return 0


def _cmd_resolve(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    resource = _require_str(getattr(args, "resource", None), "resource")
    resolver = ResourceResolver(ResolverSettings.from_config(config))
    want_content = _flag(args, "content")

    async def lookup() -> tuple[str | None, str | None]:
        uri = await resolver.resolve(resource)
        if uri is None or not want_content:
            return uri, None
        return uri, await resolver.load_string(resource)

    uri, content = asyncio.run(lookup())
    if uri is None:
        raise CLIError(f"resource not found: {resource}", exit_code=1)

    if _flag(args, "json"):
        payload: dict[str, object] = {"command": "resolve", "resource": resource, "uri": uri}
        if want_content:
            payload["content"] = content
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Resource", resource)
    renderer.kv("URI", uri)
    if want_content:
        renderer.blank()
        renderer.text(content if content is not None else "(content unavailable)")
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    profile = _optional_str(getattr(args, "profile", None))

    if _flag(args, "json"):
        effective = json.loads(dump_effective_config(config))
        _emit_json({"command": "config", "active_profile": profile, "config": effective})
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Active profile", profile or "(default)")
    renderer.text(dump_effective_config(config))
    return 0


def _cmd_packages(args: argparse.Namespace) -> int:
    _load_effective_config(args)
    root = _optional_str(getattr(args, "root", None))
    descriptors = discover_package_descriptors(root)

    if _flag(args, "json"):
        _emit_json(
            {"command": "packages", "packages": [item.to_dict() for item in descriptors]}
        )
        return 0

    renderer = _get_renderer(args)
    renderer.table(
        ("Package", "Version", "Requires-Python", "Root"),
        [
            (
                item.name,
                item.version,
                item.language_version or "",
                "yes" if item.is_root_package else "",
            )
            for item in descriptors
        ],
    )
    renderer.kv("Total", len(descriptors))
    return 0


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    no_color = _flag(args, "no_color")
    verbose = _flag(args, "verbose")
    return create_renderer(no_color=no_color, verbose=verbose)


def _describe_class(cls: Class[Any]) -> dict[str, Any]:
    superclass = cls.get_superclass()
    flags = [
        label
        for label, enabled in (
            ("abstract", cls.is_abstract),
            ("interface", cls.is_interface),
            ("enum", cls.is_enum),
            ("generic", cls.is_generic),
            ("private", cls.is_private),
        )
        if enabled
    ]
    return {
        "qualified_name": cls.qualified_name,
        "simple_name": cls.simple_name,
        "descriptor": cls.descriptor_string(),
        "flags": flags,
        "superclass": superclass.qualified_name if superclass is not None else None,
        "interfaces": [item.qualified_name for item in cls.get_interfaces()],
        "type_arguments": [item.qualified_name for item in cls.get_type_arguments()],
        "fields": [
            {
                "name": name,
                "type": _type_name(item.type),
                "modifiers": _modifier_names(item.modifiers),
            }
            for name, item in sorted(cls.get_fields().items())
        ],
        "methods": [
            _describe_method(item) for _, item in sorted(cls.get_methods().items())
        ],
        "constructors": [
            {"name": name, "parameters": [param.name for param in item.parameters]}
            for name, item in sorted(cls.get_constructors().items())
        ],
    }


def _describe_method(method: MethodMirror) -> dict[str, Any]:
    return {
        "name": method.name,
        "kind": str(method.kind),
        "parameters": [param.name for param in method.parameters],
        "returns": _type_name(method.return_type),
    }


def _modifier_names(modifiers: Modifier) -> str:
    return ", ".join(str(flag.name).lower() for flag in Modifier if flag and flag in modifiers)


def _type_name(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, type):
        if value.__module__ == "builtins":
            return value.__qualname__
        return f"{value.__module__}.{value.__qualname__}"
    return str(value)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    profile = _optional_str(getattr(args, "profile", None))

    try:
        loaded = load_config(config_path, profile=profile)
        validated = assert_valid_config(loaded, active_profile=profile)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    if _flag(args, "log"):
        setup_logging(validated.get("observability"), session_id=uuid.uuid4().hex)
    return dict(validated)


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise CLIError(f"invalid {name}: expected string", exit_code=2)
    cleaned = value.strip()
    if not cleaned:
        raise CLIError(f"invalid {name}: value cannot be empty", exit_code=2)
    return cleaned


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CLIError("invalid optional string argument", exit_code=2)
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]
