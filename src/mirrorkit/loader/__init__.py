"""Class loaders, resource resolution, packages, plugins and load metrics."""

from mirrorkit.loader.class_loader import (
    BOOTSTRAP_CLASSES,
    DEFAULT_RESOURCE_TTL_SECONDS,
    ClassLoader,
    ClassLoaderResource,
)
from mirrorkit.loader.metrics import ClassLoaderMetrics, ClassLoadEvent, ClassLoadStats
from mirrorkit.loader.packages import PackageDescriptor, PackageInfo, discover_package_descriptors
from mirrorkit.loader.plugins import ClassLoaderPlugin, HotReloadPlugin
from mirrorkit.loader.resources import ResolverSettings, ResourceResolver, split_scheme
from mirrorkit.loader.scanning import ScanningClassLoader
from mirrorkit.loader.system import (
    SystemClassLoader,
    get_system_class_loader,
    reset_system_class_loader,
)

__all__ = [
    "BOOTSTRAP_CLASSES",
    "DEFAULT_RESOURCE_TTL_SECONDS",
    "ClassLoadEvent",
    "ClassLoadStats",
    "ClassLoader",
    "ClassLoaderMetrics",
    "ClassLoaderPlugin",
    "ClassLoaderResource",
    "HotReloadPlugin",
    "PackageDescriptor",
    "PackageInfo",
    "ResolverSettings",
    "ResourceResolver",
    "ScanningClassLoader",
    "SystemClassLoader",
    "discover_package_descriptors",
    "get_system_class_loader",
    "reset_system_class_loader",
    "split_scheme",
]
