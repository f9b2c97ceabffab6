"""
Tests for the plugin registry and the stage_plugin decorator.

Covers dependency-checked registration, duplicate kinds, ordering,
summaries, and close semantics.
"""

import pytest
from structlog.testing import capture_logs

from stresslab.core.errors import RegistrationError
from stresslab.core.result import Ok
from stresslab.orchestration.plugin_registry import PluginRegistry
from stresslab.orchestration.plugins import DEFAULT_NAMESPACE, StagePlugin, stage_plugin


async def _passthrough(context, envelope):
    return Ok(envelope)


def _plugin(kind, dependencies=()):
    return StagePlugin(kind=kind, name=kind, version="1.0.0", run=_passthrough, dependencies=dependencies)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegistration:
    def test_registers_in_order(self):
        registry = PluginRegistry()
        registry.register(_plugin("kind:A"))
        registry.register(_plugin("kind:B", ["kind:A"]))

        assert registry.kinds() == ["kind:A", "kind:B"]
        assert [p.kind for p in registry.list()] == ["kind:A", "kind:B"]
        assert len(registry) == 2
        assert "kind:B" in registry

    def test_unregistered_dependency_rejected(self):
        registry = PluginRegistry()
        with pytest.raises(RegistrationError) as exc_info:
            registry.register(_plugin("kind:B", ["kind:A"]))

        assert exc_info.value.plugin_kind == "kind:B"
        assert exc_info.value.missing == ["kind:A"]
        assert "kind:A" in str(exc_info.value)
        assert len(registry) == 0

    def test_dependency_must_be_registered_first(self):
        with pytest.raises(RegistrationError):
            PluginRegistry.from_plugins([_plugin("kind:B", ["kind:A"]), _plugin("kind:A")])

    def test_duplicate_kind_rejected(self):
        registry = PluginRegistry().register(_plugin("kind:A"))
        with pytest.raises(RegistrationError, match="already registered"):
            registry.register(_plugin("kind:A"))

    def test_get(self):
        plugin = _plugin("kind:A")
        registry = PluginRegistry.from_plugins([plugin])
        assert registry.get("kind:A") is plugin
        assert registry.get("kind:Z") is None

    def test_stub_chain_registers(self, stub_chain):
        registry = PluginRegistry.from_plugins(stub_chain())
        assert registry.kinds() == [f"stub/{i}" for i in range(6)]


class TestSummary:
    def test_summary(self):
        registry = PluginRegistry.from_plugins(
            [_plugin("kind:A"), _plugin("kind:B", ["kind:A"]), _plugin("kind:C", ["kind:A", "kind:B"])],
            namespace="ns",
        )
        assert registry.summary() == {
            "namespace": "ns",
            "registered": 3,
            "kinds": ["kind:A", "kind:B", "kind:C"],
            "dependencies": ["kind:A", "kind:B"],
        }


class TestClose:
    def test_close_clears_and_blocks_registration(self):
        registry = PluginRegistry.from_plugins([_plugin("kind:A")])
        registry.close()
        registry.close()

        assert registry.closed
        assert registry.list() == []
        with pytest.raises(RegistrationError, match="closed"):
            registry.register(_plugin("kind:B"))

    def test_context_manager_closes(self):
        with PluginRegistry() as registry:
            registry.register(_plugin("kind:A"))
            assert len(registry) == 1
        assert registry.closed
        assert len(registry) == 0


class TestRegistryEvents:
    def test_lifecycle_events_are_dotted(self):
        with capture_logs() as logs:
            registry = PluginRegistry()
            registry.register(_plugin("kind:A"))
            with pytest.raises(RegistrationError):
                registry.register(_plugin("kind:B", ["kind:Z"]))
            registry.close()

        assert [entry["event"] for entry in logs] == [
            "registry.plugin_registered",
            "registry.registration_failed",
            "registry.closed",
        ]
        assert logs[1]["missing"] == ["kind:Z"]


# ---------------------------------------------------------------------------
# Plugin declaration
# ---------------------------------------------------------------------------


class TestStagePlugin:
    def test_decorator_builds_plugin(self):
        @stage_plugin("kind:A", name="alpha", dependencies=["kind:0"])
        async def alpha(context, envelope):
            return Ok(envelope)

        assert isinstance(alpha, StagePlugin)
        assert alpha.plugin_id == "alpha"
        assert alpha.version == "1.0.0"
        assert alpha.dependencies == ("kind:0",)
        assert alpha.tags == ("kind:A", f"{DEFAULT_NAMESPACE}:alpha")

    def test_explicit_tags(self):
        @stage_plugin("kind:A", name="alpha", tags=["x"])
        async def alpha(context, envelope):
            return Ok(envelope)

        assert alpha.tags == ("x",)

    def test_empty_kind_rejected(self):
        with pytest.raises(ValueError):
            _plugin("")

    def test_run_must_be_callable(self):
        with pytest.raises(TypeError):
            StagePlugin(kind="kind:A", name="a", version="1", run="nope")  # type: ignore[arg-type]

    def test_describe(self):
        assert _plugin("kind:B", ["kind:A"]).describe()["dependencies"] == ["kind:A"]
