import re
from collections.abc import Callable, Iterable, Sequence

from code_push_mcp.models.changes import FileAction, FileChange, ParsedResponse

FENCE_MARKER = "```"

PATH_CHARACTERS = r"[\w\-/.]+"

FENCE_LANGUAGE_PATH_PATTERN = re.compile(
    rf"^```(?:typescript|tsx|ts|javascript|jsx|js|css|json|html|md|python|py|go|rust|java|cpp|c):({PATH_CHARACTERS})"
)

# File: src/app/page.tsx, // File: src/app/page.tsx, Path: src/app/page.tsx, # src/app/page.tsx
PATH_CONVENTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"^(?://\s*)?[Ff]ile:\s*({PATH_CHARACTERS})"),
    re.compile(rf"^#\s*({PATH_CHARACTERS}\.\w+)"),
    re.compile(rf"^[Pp]ath:\s*({PATH_CHARACTERS})"),
)

# Create `src/file.ts`:, update src/file.ts, Edit "config.json"
IMPERATIVE_PATH_PATTERN = re.compile(rf"\b(?:create|update|edit|modify|add|change)\s+[`'\"]?({PATH_CHARACTERS})[`'\"]?", re.IGNORECASE)

CODE_EXTENSIONS: tuple[str, ...] = (
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
    ".css", ".scss", ".less",
    ".json", ".yaml", ".yml", ".toml", ".ini", ".cfg",
    ".html", ".htm", ".xml",
    ".md", ".mdx", ".rst", ".txt",
    ".py", ".go", ".rs", ".java", ".cpp", ".c", ".h",
    ".sh", ".bash", ".zsh",
    ".sql", ".graphql",
    ".env", ".env.local", ".env.example",
    ".gitignore", ".dockerignore",
)  # fmt: skip

KNOWN_FILENAMES: frozenset[str] = frozenset(
    {
        "Dockerfile",
        "Makefile",
        "Procfile",
        "Gemfile",
        "Rakefile",
        "Jenkinsfile",
        "LICENSE",
        "CODEOWNERS",
        "docker-compose.yml",
        "package.json",
        "tsconfig.json",
        "next.config.js",
        "tailwind.config.js",
        "pyproject.toml",
    }
)

GENERIC_EXTENSION_PATTERN = re.compile(r"\.\w{1,5}$")

PathResolver = Callable[[str, str | None], str | None]


def _match_first(patterns: Sequence[re.Pattern[str]], text: str) -> str | None:
    for pattern in patterns:
        if match := pattern.match(text):
            return match.group(1)
    return None


def fence_info(fence_line: str) -> str:
    """Return the text following the backticks of a fence line, e.g. `ts File: src/a.ts` for ```ts File: src/a.ts"""
    info = fence_line[len(FENCE_MARKER) :].strip()

    # Drop a leading language token so `File:`/`Path:` conventions can follow it.
    if info and not info.startswith(("#", "//")) and " " in info:
        language, _, remainder = info.partition(" ")
        if ":" not in language:
            return remainder.strip()

    return info


def resolve_language_path(fence_line: str, preceding_line: str | None) -> str | None:
    """```tsx:src/components/Button.tsx"""
    if match := FENCE_LANGUAGE_PATH_PATTERN.match(fence_line):
        return match.group(1)
    return None


def resolve_fence_convention(fence_line: str, preceding_line: str | None) -> str | None:
    """```ts File: src/app/page.tsx"""
    return _match_first(PATH_CONVENTION_PATTERNS, fence_info(fence_line))


def resolve_preceding_convention(fence_line: str, preceding_line: str | None) -> str | None:
    if preceding_line is None:
        return None

    preceding_line = preceding_line.strip()

    if match := FENCE_LANGUAGE_PATH_PATTERN.match(preceding_line):
        return match.group(1)

    return _match_first(PATH_CONVENTION_PATTERNS, preceding_line)


def resolve_preceding_imperative(fence_line: str, preceding_line: str | None) -> str | None:
    """Create `src/file.ts`:"""
    if preceding_line is None:
        return None

    if match := IMPERATIVE_PATH_PATTERN.search(preceding_line.strip()):
        return match.group(1)

    return None


PATH_RESOLVERS: tuple[PathResolver, ...] = (
    resolve_language_path,
    resolve_fence_convention,
    resolve_preceding_convention,
    resolve_preceding_imperative,
)


def resolve_path(fence_line: str, preceding_line: str | None, resolvers: Sequence[PathResolver] = PATH_RESOLVERS) -> str | None:
    """Try each resolver in priority order and return the first path found."""
    for resolver in resolvers:
        if path := resolver(fence_line, preceding_line):
            return path
    return None


def looks_like_file_path(path: str) -> bool:
    """Whether a resolved name is a real file rather than a word picked up from prose."""
    if path.endswith(CODE_EXTENSIONS):
        return True

    if path.rsplit("/", maxsplit=1)[-1] in KNOWN_FILENAMES:
        return True

    return GENERIC_EXTENSION_PATTERN.search(path) is not None


def normalize_path(path: str) -> str:
    """Strip quotes, a leading `./` and leading slashes. `./src/a.ts`, `/src/a.ts` and `src/a.ts` all become `src/a.ts`."""
    path = path.strip().strip("`'\"")

    while True:
        stripped = path.removeprefix("./").lstrip("/")
        if stripped == path:
            return path
        path = stripped


def merge_file_changes(file_changes: Iterable[FileChange]) -> list[FileChange]:
    """Normalize every path and keep one change per path. The last change for a path wins and keeps the
    position of the first. Changes whose path normalizes to nothing are dropped."""

    changes_by_path: dict[str, FileChange] = {}

    for file_change in file_changes:
        path = normalize_path(file_change.path)
        if path:
            changes_by_path[path] = file_change if path == file_change.path else file_change.model_copy(update={"path": path})

    return list(changes_by_path.values())


def parse_code_blocks(response_text: str) -> ParsedResponse:
    """Extract the files written out in fenced code blocks of an assistant reply.

    Blocks without a resolvable file path are treated as illustrative snippets and skipped, as are
    empty blocks and a block left open at the end of the text. When a path appears more than once,
    the content of the last block wins and the position of the first block is kept.

    This never raises: malformed text yields fewer (or no) file changes."""

    lines = response_text.split("\n")

    file_changes: list[FileChange] = []

    in_code_block: bool = False
    current_path: str | None = None
    current_lines: list[str] = []

    for index, line in enumerate(lines):
        if not line.startswith(FENCE_MARKER):
            if in_code_block:
                current_lines.append(line)
            continue

        if not in_code_block:
            in_code_block = True
            current_lines = []
            current_path = resolve_path(fence_line=line, preceding_line=lines[index - 1] if index > 0 else None)
            continue

        in_code_block = False

        content = "\n".join(current_lines)

        if current_path and content.strip() and looks_like_file_path(current_path):
            file_changes.append(FileChange(path=current_path, content=content, action=FileAction.UPDATE))

        current_path = None
        current_lines = []

    return ParsedResponse(raw_text=response_text, file_changes=tuple(merge_file_changes(file_changes)))
