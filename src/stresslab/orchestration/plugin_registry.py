"""Plugin Registry — per-run registration of stage plugins.

Manifesto:
A chain is only runnable if every plugin's declared dependencies were
registered before it. The registry checks that at registration time so a
bad chain fails before any stage executes. There is no process-wide
registry: each run builds its own.

ARCHITECTURE
────────────
::

    registry.register(plugin)   → keyed by kind; RegistrationError on an
                                  unknown dependency or duplicate kind
    registry.get(kind)          → StagePlugin or None
    registry.list() / kinds()   → registration order
    registry.summary()          → namespace, counts, kinds, dependencies
    registry.close()            → drop all plugins (also via ``with``)

Example::

    with PluginRegistry() as registry:
        registry.register(collector)
        registry.register(shaper)          # depends on collector's kind
        chain = registry.list()

Tags:
    stresslab, orchestration, registry, plugins, dependency-check
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from stresslab.core.errors import RegistrationError
from stresslab.core.logging import get_logger
from stresslab.orchestration.plugins import DEFAULT_NAMESPACE, StagePlugin

logger = get_logger(__name__)


class PluginRegistry:
    """Ordered, dependency-checked collection of stage plugins."""

    def __init__(self, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.namespace = namespace
        self._plugins: dict[str, StagePlugin] = {}
        self._closed = False

    @classmethod
    def from_plugins(
        cls, plugins: Iterable[StagePlugin], namespace: str = DEFAULT_NAMESPACE
    ) -> PluginRegistry:
        """Register ``plugins`` in order, failing on the first bad one."""
        registry = cls(namespace)
        for plugin in plugins:
            registry.register(plugin)
        return registry

    def register(self, plugin: StagePlugin) -> PluginRegistry:
        """
        Register a plugin under its kind.

        Raises:
            RegistrationError: If the kind is already registered or a
                declared dependency names an unregistered kind
        """
        if self._closed:
            raise RegistrationError(plugin.kind, message="Plugin registry is closed")
        if plugin.kind in self._plugins:
            raise RegistrationError(
                plugin.kind, message=f"Plugin '{plugin.kind}' is already registered"
            )

        missing = [dep for dep in plugin.dependencies if dep not in self._plugins]
        if missing:
            logger.warning("registry.registration_failed", kind=plugin.kind, missing=missing)
            raise RegistrationError(plugin.kind, missing=missing)

        self._plugins[plugin.kind] = plugin
        logger.debug(
            "registry.plugin_registered",
            kind=plugin.kind,
            name=plugin.name,
            version=plugin.version,
            dependency_count=len(plugin.dependencies),
        )
        return self

    def get(self, kind: str) -> StagePlugin | None:
        return self._plugins.get(kind)

    def list(self) -> list[StagePlugin]:
        return list(self._plugins.values())

    def kinds(self) -> list[str]:
        return list(self._plugins)

    def summary(self) -> dict[str, Any]:
        dependencies: list[str] = []
        for plugin in self._plugins.values():
            for dep in plugin.dependencies:
                if dep not in dependencies:
                    dependencies.append(dep)
        return {
            "namespace": self.namespace,
            "registered": len(self._plugins),
            "kinds": self.kinds(),
            "dependencies": dependencies,
        }

    def close(self) -> None:
        """Release all plugins. Idempotent."""
        if not self._closed:
            logger.debug("registry.closed", registered=len(self._plugins))
        self._plugins.clear()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, kind: object) -> bool:
        return kind in self._plugins

    def __enter__(self) -> PluginRegistry:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
