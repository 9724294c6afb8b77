"""Extension points notified by class loaders."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mirrorkit.loader.class_loader import ClassLoader
    from mirrorkit.reflection.klass import Class


class ClassLoaderPlugin:
    """Synchronous hooks around class loading.

    Plugins run in registration order on the loading task itself. An exception
    raised by any hook is not caught by the loader and aborts the load in
    flight. Every hook is a no-op by default.
    """

    def initialize(self, loader: ClassLoader) -> None:
        """Called once by ``ClassLoader.add_plugin``."""

    def before_class_load(self, class_name: str) -> None:
        """Called before a requested name is looked up."""

    def after_class_load(self, class_name: str, cls: Class[Any]) -> None:
        """Called after a class was produced, from cache or otherwise."""

    def dispose(self) -> None:
        """Called once by ``ClassLoader.remove_plugin``."""


class HotReloadPlugin(ClassLoaderPlugin):
    """Plugin that also hears about development-mode reloads."""

    def on_class_reloaded(self, class_name: str, cls: Class[Any]) -> None:
        """Called with the freshly loaded class after a hot reload."""


__all__ = ["ClassLoaderPlugin", "HotReloadPlugin"]
