from collections.abc import AsyncIterable, AsyncIterator
from typing import Annotated, Literal

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from pydantic.aliases import AliasChoices

from code_push_mcp.models.changes import BranchInfo

DONE_MARKER = "[DONE]"

logger = get_logger(__name__)


class TokenUsage(BaseModel):
    input: int = Field(description="The number of input tokens.")
    output: int = Field(description="The number of output tokens.")
    cache_read: int = Field(
        default=0,
        validation_alias=AliasChoices("cache_read", "cacheRead"),
        serialization_alias="cacheRead",
        description="The number of input tokens read from cache.",
    )
    cache_write: int = Field(
        default=0,
        validation_alias=AliasChoices("cache_write", "cacheWrite"),
        serialization_alias="cacheWrite",
        description="The number of input tokens written to cache.",
    )


class BaseStreamEvent(BaseModel):
    def to_sse(self) -> str:
        """Render the event as a server-sent event frame."""
        return f"data: {self.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


class ContentEvent(BaseStreamEvent):
    type: Literal["content"] = "content"
    delta: str


class CostEvent(BaseStreamEvent):
    type: Literal["cost"] = "cost"
    cost: float
    tokens_used: TokenUsage = Field(validation_alias=AliasChoices("tokens_used", "tokensUsed"), serialization_alias="tokensUsed")


class BranchEvent(BaseStreamEvent):
    type: Literal["branch"] = "branch"
    branch: BranchInfo


class StatusEvent(BaseStreamEvent):
    """A plain-text message to append to the conversation."""

    type: Literal["status"] = "status"
    message: str


class ErrorEvent(BaseStreamEvent):
    type: Literal["error"] = "error"
    error: str


class DoneEvent(BaseStreamEvent):
    type: Literal["done"] = "done"

    def to_sse(self) -> str:
        return f"data: {DONE_MARKER}\n\n"


StreamEvent = Annotated[
    ContentEvent | CostEvent | BranchEvent | StatusEvent | ErrorEvent | DoneEvent,
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_sse_line(line: str) -> StreamEvent | None:
    """Parse one `data: ...` line of an event stream. Returns None for blank or non-data lines."""

    if not line.startswith("data: "):
        return None

    data = line.removeprefix("data: ").strip()

    if data == DONE_MARKER:
        return DoneEvent()

    return stream_event_adapter.validate_json(data)


async def accumulate_text(events: AsyncIterable[StreamEvent]) -> str:
    """Join the content deltas of a stream until it ends or signals done."""

    fragments: list[str] = []

    async for event in events:
        if isinstance(event, DoneEvent):
            break
        if isinstance(event, ContentEvent):
            fragments.append(event.delta)

    return "".join(fragments)


def parse_sse_text(text: str) -> list[StreamEvent]:
    """Parse a whole event stream body. Lines that are not valid events are logged and skipped."""

    events: list[StreamEvent] = []

    for line in text.splitlines():
        try:
            event = parse_sse_line(line)
        except ValidationError as e:
            logger.warning(f"Skipping malformed stream event {line[:100]!r}: {e.error_count()} errors")
            continue

        if event is not None:
            events.append(event)

    return events


async def render_sse(events: AsyncIterable[StreamEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield event.to_sse()
