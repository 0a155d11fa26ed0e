import base64
from collections.abc import Sequence
from typing import TypeVar

from githubkit.response import Response
from pydantic import BaseModel

GITHUBKIT_RESPONSE_TYPE = BaseModel | Sequence[BaseModel]

T = TypeVar("T", bound=GITHUBKIT_RESPONSE_TYPE)


def extract_response(response: Response[T], /) -> T:
    """Extract the response from a response."""

    return response.parsed_data


def decode_content(content: str) -> str:
    return base64.b64decode(content).decode("utf-8", errors="replace")


def truncate_message(message: str, max_length: int = 50) -> str:
    """Shorten a user message into a one-line commit message or pull request title."""

    first_line = " ".join(message.split())

    if len(first_line) > max_length:
        return first_line[:max_length].rstrip() + "..."

    return first_line
