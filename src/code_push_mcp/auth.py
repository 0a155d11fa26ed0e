import hmac
import os

from fastmcp.exceptions import ToolError
from fastmcp.server.dependencies import get_http_headers
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.utilities.logging import get_logger

PASSWORD_HEADER = "x-app-password"

logger = get_logger(__name__)


def get_app_password() -> str | None:
    return os.getenv("APP_PASSWORD") or None


def verify_password(password: str | None, expected: str | None) -> bool:
    """Check a caller-supplied password against the shared secret. Without a configured secret everyone is allowed."""

    if not expected:
        return True

    if password is None:
        return False

    return hmac.compare_digest(password.encode(), expected.encode())


class SharedSecretMiddleware(Middleware):
    """Reject tool calls over HTTP that do not carry the shared secret in the `x-app-password` header."""

    expected_password: str | None

    def __init__(self, expected_password: str | None = None):
        self.expected_password = expected_password

    async def on_call_tool(self, context: MiddlewareContext, call_next: CallNext):
        headers: dict[str, str] = get_http_headers(include_all=True)

        # stdio transports carry no headers and are trusted.
        if headers and not verify_password(headers.get(PASSWORD_HEADER), self.expected_password):
            logger.warning(f"Rejected tool call {context.message.name}: incorrect password")
            msg = "Incorrect password"
            raise ToolError(msg)

        return await call_next(context)
