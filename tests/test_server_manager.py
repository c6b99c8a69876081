"""Tests for tool server registry, lifecycle and routing."""

import sys

import pytest

from toolcall import config
from toolcall.executors.base import ServerConfig, ToolExecutor
from toolcall.executors.http import HttpToolExecutor
from toolcall.executors.manager import ServerManager
from toolcall.healing.classifier import ErrorClassifier, ErrorKind
from toolcall.models import ToolInvocationResult


class EchoExecutor:
    def __init__(self):
        self.calls = []

    async def call_tool(self, tool_name, arguments, context_id=None):
        self.calls.append((tool_name, arguments, context_id))
        return ToolInvocationResult.text_result(f"{tool_name}:{arguments}")


SERVERS_YAML = """
servers:
  - name: search
    url: http://localhost:8931/rpc
    description: Web search
  - id: fs-1
    name: files
    url: http://localhost:8932/rpc
    command: node files-server.js --port 8932
    env:
      ROOT: /tmp
"""


# ============ ServerConfig Tests ============

def test_server_config_from_dict_defaults():
    server = ServerConfig.from_dict({"name": "search", "url": "http://x"})

    assert server.id == "search"
    assert server.command == []
    assert server.env == {}
    assert server.working_directory is None


def test_server_config_requires_name_and_url():
    with pytest.raises(ValueError):
        ServerConfig.from_dict({"name": "search"})


def test_server_config_matches_case_insensitive():
    server = ServerConfig(id="fs-1", name="Files", url="http://x")

    assert server.matches("files")
    assert server.matches("FS-1")
    assert not server.matches("file")


# ============ Registry Tests ============

def test_from_yaml(tmp_path):
    path = tmp_path / "servers.yaml"
    path.write_text(SERVERS_YAML, encoding="utf-8")

    manager = ServerManager.from_yaml(path)

    assert [s.name for s in manager.available_servers] == ["search", "files"]
    files = manager.find_server("fs-1")
    assert files.command == ["node", "files-server.js", "--port", "8932"]
    assert files.env == {"ROOT": "/tmp"}


def test_from_yaml_rejects_non_list(tmp_path):
    path = tmp_path / "servers.yaml"
    path.write_text("servers:\n  search: http://x\n", encoding="utf-8")

    with pytest.raises(ValueError):
        ServerManager.from_yaml(path)


def test_from_config_without_file(monkeypatch):
    monkeypatch.setattr(config, "SERVERS_FILE", "")
    assert ServerManager.from_config().available_servers == []


def test_find_server_first_match():
    first = ServerConfig(id="a", name="dup", url="http://1")
    second = ServerConfig(id="b", name="dup", url="http://2")
    manager = ServerManager([first, second])

    assert manager.find_server("DUP") is first
    assert manager.find_server("missing") is None


def test_executor_for_defaults_to_http():
    server = ServerConfig(id="s", name="s", url="http://localhost:1/rpc")
    manager = ServerManager([server])

    executor = manager.executor_for(server)

    assert isinstance(executor, HttpToolExecutor)
    assert isinstance(executor, ToolExecutor)
    assert executor.url == "http://localhost:1/rpc"
    assert manager.executor_for(server) is executor


# ============ Routing Tests ============

@pytest.mark.asyncio
async def test_call_tool_routes_to_running_server():
    server = ServerConfig(id="s", name="search", url="http://x")
    manager = ServerManager([server])
    backend = EchoExecutor()
    manager.set_executor(server, backend)
    await manager.start_server(server)

    result = await manager.call_tool("search::lookup", {"q": "x"}, "ctx")

    assert result.is_error is False
    assert backend.calls == [("lookup", {"q": "x"}, "ctx")]


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["mail::send", "search", "search::"])
async def test_call_tool_unknown_is_not_found(name):
    manager = ServerManager([ServerConfig(id="s", name="search", url="http://x")])

    result = await manager.call_tool(name, {})

    assert result.is_error is True
    assert ErrorClassifier().classify(result, name).kind == ErrorKind.TOOL_NOT_FOUND


@pytest.mark.asyncio
async def test_call_tool_stopped_server_is_not_running():
    server = ServerConfig(id="s", name="search", url="http://x")
    manager = ServerManager([server])
    manager.set_executor(server, EchoExecutor())

    result = await manager.call_tool("search::lookup", {})

    assert result.joined_text() == "Server 'search' is not running"
    assert ErrorClassifier().classify(result, "search::lookup").kind == ErrorKind.SERVER_NOT_RUNNING


# ============ Lifecycle Tests ============

@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_marks_stopped():
    server = ServerConfig(id="s", name="search", url="http://x")
    manager = ServerManager([server])

    await manager.start_server(server)
    await manager.start_server(server)
    assert manager.is_running(server)

    await manager.stop_server(server)
    assert not manager.is_running(server)


@pytest.mark.asyncio
async def test_start_and_stop_launched_process():
    server = ServerConfig(
        id="sleeper",
        name="sleeper",
        url="http://localhost:1/rpc",
        command=[sys.executable, "-c", "import time; time.sleep(30)"],
    )
    manager = ServerManager([server])

    await manager.start_server(server)
    proc = manager._processes["sleeper"]
    assert proc.returncode is None

    await manager.stop_all()

    assert proc.returncode is not None
    assert not manager.is_running(server)


@pytest.mark.asyncio
async def test_start_missing_command_raises():
    server = ServerConfig(
        id="bad", name="bad", url="http://x", command=["definitely-not-a-real-binary-xyz"]
    )
    manager = ServerManager([server])

    with pytest.raises(OSError):
        await manager.start_server(server)
    assert not manager.is_running(server)
