"""Tests for ExecutionRouter and ExternalServerManager."""

import asyncio
import sys

import pytest

from opskills.constants import ExecutionMode
from opskills.errors import (
    CallCancelledError,
    ConfigurationError,
    ServerNotConnectedError,
    SkillNotFoundError,
)
from opskills.mcp.manager import ExternalServerManager
from opskills.skill.config import parse_config
from opskills.skill.registry import SkillRegistry
from opskills.skill.router import ExecutionRouter


def serve_entry(skills_dir, **extra):
    entry = {
        "command": sys.executable,
        "args": ["-m", "opskills", "serve", "--skills-dir", str(skills_dir)],
    }
    entry.update(extra)
    return entry


@pytest.fixture
def forwarded_config(skills_dir):
    return parse_config(
        {
            "skills": {
                "echo": {"execution_mode": "mcp", "mcp_server": "skills"},
                "kubekey": {"execution_mode": "direct"},
                "orphan": {"execution_mode": "mcp"},
                "ghost": {"execution_mode": "mcp", "mcp_server": "nowhere"},
                "broken": {"execution_mode": "mcp", "mcp_server": "missing-binary"},
            },
            "mcp_servers": {
                "skills": serve_entry(skills_dir, timeout=30),
                "missing-binary": {"command": "/nonexistent/mcp-server-binary"},
                "remote": {"type": "http", "url": "http://localhost:1/mcp"},
            },
        }
    )


def echo_forwarded_to(skills_dir, **server):
    return parse_config(
        {
            "skills": {"echo": {"execution_mode": "mcp", "mcp_server": "skills"}},
            "mcp_servers": {"skills": serve_entry(skills_dir, **server)},
        }
    )


@pytest.mark.asyncio
class TestDirectRouting:
    async def test_auto_without_config_runs_directly(self, registry):
        """Unconfigured skills run in auto mode, which is direct."""
        router = ExecutionRouter(registry)
        assert router.resolve_mode("echo") == ExecutionMode.AUTO
        result = await router.execute("echo", {"foo": "bar"})
        assert result.success
        assert "script=main" in result.output

    async def test_direct_mode(self, registry, forwarded_config):
        """Direct mode runs the selected script locally."""
        router = ExecutionRouter(registry, forwarded_config)
        assert router.resolve_mode("kubekey") == ExecutionMode.DIRECT
        result = await router.execute("kubekey", {"action": "create_cluster"})
        assert result.success
        assert result.output == "creating cluster\n"

    async def test_direct_failure_is_a_result(self, registry):
        """A failing script is reported in the result, not raised."""
        result = await ExecutionRouter(registry).execute("echo", {"action": "fail"})
        assert not result.success
        assert result.exit_code == 3

    async def test_unknown_skill(self, registry):
        """Direct execution of an unregistered skill raises SkillNotFoundError."""
        with pytest.raises(SkillNotFoundError):
            await ExecutionRouter(registry).execute("nope")


@pytest.mark.asyncio
class TestForwardedRouting:
    async def test_missing_server_name(self, forwarded_config):
        """A forwarded skill without mcp_server is a configuration error."""
        router = ExecutionRouter(SkillRegistry(), forwarded_config)
        with pytest.raises(ConfigurationError):
            await router.execute("orphan")

    async def test_unknown_server_fails_fast(self, forwarded_config):
        """An undefined server fails without waiting on anything."""
        router = ExecutionRouter(SkillRegistry(), forwarded_config)
        with pytest.raises(ServerNotConnectedError) as exc_info:
            await asyncio.wait_for(router.execute("ghost"), timeout=10)
        assert exc_info.value.server_name == "nowhere"
        assert "server not connected" in exc_info.value.message

    async def test_unstartable_server(self, forwarded_config):
        """A server that cannot be spawned is not cached."""
        router = ExecutionRouter(SkillRegistry(), forwarded_config)
        with pytest.raises(ServerNotConnectedError):
            await router.execute("broken")
        assert router.manager.list_connected_servers() == []

    async def test_forwarded_end_to_end(self, forwarded_config):
        """Forwarded calls return converted results; close stops the server."""
        # the local registry is empty: the external server owns the skill
        router = ExecutionRouter(SkillRegistry(), forwarded_config)
        try:
            result = await router.execute("echo", {"action": "create", "params": {"foo": "bar"}})
            assert result.success
            assert "script=create" in result.output
            assert "foo=bar" in result.output

            failed = await router.execute("echo", {"action": "fail"})
            assert not failed.success
            assert failed.exit_code == 3
            assert failed.error.startswith("Error: boom")
            assert router.manager.list_connected_servers() == ["skills"]
        finally:
            await router.close()
        assert router.manager.list_connected_servers() == []

    async def test_forwarded_call_outlives_handshake_timeout(self, skills_dir):
        """A forwarded script may run longer than the server's handshake timeout."""
        router = ExecutionRouter(SkillRegistry(), echo_forwarded_to(skills_dir, timeout=5))
        try:
            connection = await router.manager.connect("skills")
            assert connection.timeout == 5.0
            assert connection.call_timeout is None

            result = await router.execute("echo", {"action": "pause", "params": {"seconds": 6}})
            assert result.success
            assert result.output == "paused 6s\n"
        finally:
            await router.close()

    async def test_forwarded_call_timeout_is_configurable(self, skills_dir):
        """call_timeout bounds a forwarded tool call."""
        router = ExecutionRouter(
            SkillRegistry(), echo_forwarded_to(skills_dir, timeout=30, call_timeout=0.5)
        )
        try:
            with pytest.raises(CallCancelledError):
                await router.execute("echo", {"action": "pause", "params": {"seconds": 5}})
        finally:
            await router.close()


@pytest.mark.asyncio
class TestExternalServerManager:
    async def test_concurrent_connects_spawn_once(self, forwarded_config):
        """Concurrent connects to one server share a single process."""
        manager = ExternalServerManager(forwarded_config.mcp_servers)
        try:
            connections = await asyncio.gather(*(manager.connect("skills") for _ in range(5)))
            assert all(c is connections[0] for c in connections)
            assert manager.is_connected("skills")
            assert await manager.get_client("skills") is connections[0].client
        finally:
            await manager.close()

    async def test_discover_tools(self, forwarded_config):
        """tools/list on an external server returns its skills."""
        manager = ExternalServerManager(forwarded_config.mcp_servers)
        try:
            tools = await manager.discover_tools("skills")
            assert sorted(t.name for t in tools) == ["echo", "kubekey"]
        finally:
            await manager.close()

    async def test_dead_connection_is_recreated(self, forwarded_config):
        """A server whose process died is replaced on the next connect."""
        manager = ExternalServerManager(forwarded_config.mcp_servers)
        try:
            first = await manager.connect("skills")
            first_pid = first.transport.pid
            first.transport._process.kill()
            for _ in range(100):
                if not manager.is_connected("skills"):
                    break
                await asyncio.sleep(0.05)
            assert not manager.is_connected("skills")

            second = await manager.connect("skills")
            assert second is not first
            assert second.transport.pid != first_pid
            assert second.is_alive
        finally:
            await manager.close()

    async def test_disconnect(self, forwarded_config):
        """disconnect stops the process and is a no-op the second time."""
        manager = ExternalServerManager(forwarded_config.mcp_servers)
        connection = await manager.connect("skills")
        await manager.disconnect("skills")
        assert not manager.is_connected("skills")
        assert manager.list_connected_servers() == []
        assert connection.transport.returncode is not None
        await manager.disconnect("skills")

    async def test_unsupported_server_type(self, forwarded_config):
        """Only stdio servers can be connected."""
        manager = ExternalServerManager(forwarded_config.mcp_servers)
        with pytest.raises(ConfigurationError):
            await manager.connect("remote")
