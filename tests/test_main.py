from collections.abc import AsyncGenerator
from typing import Any

import pytest
from click.testing import CliRunner
from fastmcp.client import Client
from fastmcp.client.transports import FastMCPTransport
from inline_snapshot import snapshot

from code_push_mcp.main import mcp, run_mcp
from code_push_mcp.servers.chat import CHAT_TURN_PATH


def test_main():
    assert mcp is not None
    assert mcp.name == "Code Push MCP"


@pytest.fixture
async def main_mcp_client() -> AsyncGenerator[Client[FastMCPTransport], Any]:
    async with Client[FastMCPTransport](transport=mcp) as mcp_client:
        yield mcp_client


async def test_list_tools(main_mcp_client: Client[FastMCPTransport]):
    list_tools = await main_mcp_client.list_tools()

    assert [tool.name for tool in list_tools] == snapshot(
        [
            "parse_code_blocks",
            "publish_changes",
            "list_branches",
            "get_file_tree",
            "get_files",
            "get_context_files",
            "create_branch",
            "create_pull_request",
            "merge_branch",
            "discard_branch",
            "connect",
        ]
    )


def test_chat_turn_route():
    routes = [route for route in mcp.http_app().routes if getattr(route, "path", None) == CHAT_TURN_PATH]

    assert len(routes) == 1
    assert "POST" in routes[0].methods


def test_run_mcp_rejects_unknown_transport():
    result = CliRunner().invoke(run_mcp, ["--mcp-transport", "carrier-pigeon"])

    assert result.exit_code == 2
    assert "Invalid value for '--mcp-transport'" in result.output
