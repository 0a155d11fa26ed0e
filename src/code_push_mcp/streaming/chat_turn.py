from collections.abc import AsyncIterable, AsyncIterator, Callable
from logging import Logger

from fastmcp.utilities.logging import get_logger

from code_push_mcp.config import ConfigurationError
from code_push_mcp.models.changes import BranchInfo, DeployMode, ParsedResponse, PushResult, RepositoryConfig
from code_push_mcp.parsing.code_blocks import parse_code_blocks
from code_push_mcp.parsing.requests import looks_like_code_change_request
from code_push_mcp.publishing.publisher import RepositoryPublisher
from code_push_mcp.streaming.events import BranchEvent, ContentEvent, CostEvent, DoneEvent, ErrorEvent, StatusEvent, StreamEvent

ConfigResolver = Callable[[], RepositoryConfig]


def describe_branch(branch: BranchInfo) -> str:
    """A short conversation message describing where published changes went."""

    noun = "file" if branch.files_changed == 1 else "files"

    if branch.is_direct:
        return f"Committed {branch.files_changed} {noun} directly to `{branch.name}`."

    lines = [f"Committed {branch.files_changed} {noun} to branch `{branch.name}`."]

    if branch.pull_request_url:
        lines.append(f"Pull request: {branch.pull_request_url}")

    if branch.preview_url:
        lines.append(f"Preview: {branch.preview_url}")

    return "\n".join(lines)


class ChatTurnHandler:
    """Relays one assistant turn to the caller and publishes the files written in it.

    Content and cost events are forwarded as they arrive. Once the stream ends, the full reply is parsed
    a single time and, when it holds file changes, published. Configuration and remote failures become
    status messages; the turn itself never fails because of them."""

    publisher: RepositoryPublisher
    require_intent: bool
    logger: Logger

    def __init__(self, publisher: RepositoryPublisher | None = None, require_intent: bool = True, logger: Logger | None = None):
        self.publisher = publisher or RepositoryPublisher()
        self.require_intent = require_intent
        self.logger = logger or get_logger(name=__name__)

    async def handle(
        self,
        stream: AsyncIterable[StreamEvent],
        user_message: str,
        deploy_mode: DeployMode,
        resolve_config: ConfigResolver,
    ) -> AsyncIterator[StreamEvent]:
        fragments: list[str] = []

        async for event in stream:
            if isinstance(event, DoneEvent):
                break

            if isinstance(event, ContentEvent):
                fragments.append(event.delta)

            if isinstance(event, ErrorEvent):
                # A broken stream leaves a partial reply that should not be published.
                yield event
                yield DoneEvent()
                return

            if isinstance(event, ContentEvent | CostEvent):
                yield event

        parsed_response: ParsedResponse = parse_code_blocks("".join(fragments))

        if parsed_response.has_changes and self._should_publish(user_message):
            async for event in self._publish(parsed_response, user_message, deploy_mode, resolve_config):
                yield event

        yield DoneEvent()

    def _should_publish(self, user_message: str) -> bool:
        return not self.require_intent or looks_like_code_change_request(user_message)

    async def _publish(
        self,
        parsed_response: ParsedResponse,
        user_message: str,
        deploy_mode: DeployMode,
        resolve_config: ConfigResolver,
    ) -> AsyncIterator[StreamEvent]:
        try:
            config: RepositoryConfig = resolve_config()
        except ConfigurationError as e:
            self.logger.warning(f"Skipping publish of {len(parsed_response.file_changes)} files: {e}")
            yield StatusEvent(message=f"GitHub not configured: {e}")
            return

        self.logger.info(f"Publishing {parsed_response.paths} to {config.full_name} in {deploy_mode} mode")

        push_result: PushResult = await self.publisher.publish(
            file_changes=parsed_response.file_changes,
            deploy_mode=deploy_mode,
            user_message=user_message,
            config=config,
        )

        if push_result.success and push_result.branch:
            yield BranchEvent(branch=push_result.branch)
            yield StatusEvent(message=describe_branch(push_result.branch))
            return

        yield StatusEvent(message=f"Publishing failed: {push_result.error}")
