import re
from datetime import UTC, datetime

BRANCH_PREFIX = "claude/"
FALLBACK_BRANCH_WORDS = "claude-changes"
MAX_BRANCH_NAME_LENGTH = 50
MAX_BRANCH_WORDS = 4
MIN_BRANCH_WORD_LENGTH = 3

STOP_WORDS: frozenset[str] = frozenset({"the", "and", "for", "can", "you", "please", "could", "would"})

CODE_CHANGE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(create|make|write|add|update|edit|modify|change|fix|refactor|implement|build)\b.*"
        r"\b(file|component|function|class|module|page|route|api|code)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(can you|please|could you)\b.*\b(create|make|write|add|update|edit|modify|change|fix)\b", re.IGNORECASE),
    re.compile(r"\badd\s+(a\s+)?(new\s+)?(file|component|function|feature)", re.IGNORECASE),
    re.compile(r"\bupdate\s+(the\s+)?(code|file|component)", re.IGNORECASE),
    re.compile(r"\bchange\s+(the\s+)?\w+\s+(to|in)", re.IGNORECASE),
    re.compile(r"\bfix\s+(the\s+)?(bug|error|issue|problem)", re.IGNORECASE),
)

BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def looks_like_code_change_request(message: str) -> bool:
    """Guess whether a user message asks for code to be written or changed. Advisory only."""
    return any(pattern.search(message) for pattern in CODE_CHANGE_PATTERNS)


def to_base36(number: int) -> str:
    if number == 0:
        return "0"

    digits: list[str] = []
    while number > 0:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_DIGITS[remainder])

    return "".join(reversed(digits))


def generate_branch_name(message: str, now: datetime | None = None) -> str:
    """Build a review branch name like `claude/fix-login-bug-urgently-mfx3k2a1` from a user message."""

    cleaned = re.sub(r"[^a-z0-9\s]", "", message.lower())

    words = [word for word in cleaned.split() if len(word) >= MIN_BRANCH_WORD_LENGTH and word not in STOP_WORDS][:MAX_BRANCH_WORDS]

    name_base = "-".join(words) if words else FALLBACK_BRANCH_WORDS

    timestamp = to_base36(int((now or datetime.now(tz=UTC)).timestamp() * 1000))

    # The timestamp keeps names unique, so the words are shortened instead.
    max_base_length = MAX_BRANCH_NAME_LENGTH - len(BRANCH_PREFIX) - 1 - len(timestamp)
    name_base = name_base[:max_base_length].rstrip("-") or FALLBACK_BRANCH_WORDS[:max_base_length]

    return f"{BRANCH_PREFIX}{name_base}-{timestamp}"


def sanitize_branch_name(name: str) -> str:
    """Reduce a name to lowercase letters, digits and single dashes, e.g. `Claude/Fix_Login` -> `claude-fix-login`."""

    sanitized = re.sub(r"[^a-z0-9-]", "-", name.lower())
    sanitized = re.sub(r"-+", "-", sanitized)

    return sanitized.strip("-")
