from collections.abc import AsyncIterator, Sequence
from logging import Logger
from typing import Any

from fastmcp.server import FastMCP
from fastmcp.utilities.logging import get_logger
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse

from code_push_mcp.auth import PASSWORD_HEADER, verify_password
from code_push_mcp.config import request_config_source, resolve_repository_config
from code_push_mcp.models.changes import ConfigSource, DeployMode, RepositoryConfig
from code_push_mcp.streaming.chat_turn import ChatTurnHandler
from code_push_mcp.streaming.events import StreamEvent, parse_sse_text, render_sse

CHAT_TURN_PATH = "/chat/turn"

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


async def replay_events(events: Sequence[StreamEvent]) -> AsyncIterator[StreamEvent]:
    for event in events:
        yield event


class ChatServer:
    """Serves `POST /chat/turn` next to the MCP endpoint.

    The request body is the model's event stream for one assistant turn. The response is the same stream
    with the publish outcome (branch and status events) added before the final done marker. The user's
    message and the deploy mode come from the `message` and `mode` query parameters, and credentials are
    read from the request the same way the MCP tools read them."""

    handler: ChatTurnHandler
    expected_password: str | None
    logger: Logger

    def __init__(self, handler: ChatTurnHandler | None = None, expected_password: str | None = None, logger: Logger | None = None):
        self.logger = logger or get_logger(name=__name__)
        self.handler = handler or ChatTurnHandler(logger=self.logger)
        self.expected_password = expected_password

    def register_routes(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        _ = fastmcp.custom_route(path=CHAT_TURN_PATH, methods=["POST"])(self.chat_turn)

        return fastmcp

    async def chat_turn(self, request: Request) -> Response:
        if not verify_password(request.headers.get(PASSWORD_HEADER), self.expected_password):
            self.logger.warning(f"Rejected {CHAT_TURN_PATH}: incorrect password")
            return JSONResponse({"error": "Incorrect password"}, status_code=401)

        user_message: str | None = request.query_params.get("message")

        if not user_message:
            return JSONResponse({"error": "Missing message"}, status_code=400)

        try:
            deploy_mode = DeployMode(request.query_params.get("mode", DeployMode.SAFE))
        except ValueError:
            return JSONResponse({"error": f"Unknown mode {request.query_params.get('mode')!r}"}, status_code=400)

        config_source: ConfigSource = request_config_source(headers=dict(request.headers), query=dict(request.query_params))

        def resolve_config() -> RepositoryConfig:
            return resolve_repository_config(request=config_source)

        # The body is read whole: the response listens on the same channel for disconnects once it starts.
        events: list[StreamEvent] = parse_sse_text((await request.body()).decode())

        self.logger.info(f"Relaying a chat turn of {len(events)} events in {deploy_mode} mode")

        relayed = self.handler.handle(
            stream=replay_events(events), user_message=user_message, deploy_mode=deploy_mode, resolve_config=resolve_config
        )

        return StreamingResponse(render_sse(relayed), media_type="text/event-stream", headers=SSE_HEADERS)
