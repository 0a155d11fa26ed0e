from logging import Logger
from typing import Literal

import click
from fastmcp import FastMCP
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.utilities.logging import get_logger

from code_push_mcp.auth import SharedSecretMiddleware, get_app_password
from code_push_mcp.publishing.publisher import RepositoryPublisher
from code_push_mcp.servers.chat import ChatServer
from code_push_mcp.servers.publish import PublishServer
from code_push_mcp.streaming.chat_turn import ChatTurnHandler

logger: Logger = get_logger(name=__name__)

mcp: FastMCP[None] = FastMCP[None](name="Code Push MCP")

mcp.add_middleware(middleware=SharedSecretMiddleware(expected_password=get_app_password()))
mcp.add_middleware(middleware=LoggingMiddleware(include_payloads=True, logger=logger))

publish_server: PublishServer = PublishServer(publisher=RepositoryPublisher(logger=logger), logger=logger)
_ = publish_server.register_tools(fastmcp=mcp)

chat_server: ChatServer = ChatServer(
    handler=ChatTurnHandler(publisher=publish_server.publisher, logger=logger),
    expected_password=get_app_password(),
    logger=logger,
)
_ = chat_server.register_routes(fastmcp=mcp)


@click.command()
@click.option(
    "--mcp-transport",
    type=click.Choice(["stdio", "streamable-http"]),
    default="stdio",
    help="The transport to run the MCP server on",
)
def run_mcp(mcp_transport: Literal["stdio", "streamable-http"]):
    mcp.run(transport=mcp_transport)


if __name__ == "__main__":
    run_mcp()
