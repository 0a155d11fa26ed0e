import pytest
from inline_snapshot import snapshot

from code_push_mcp.models.changes import FileAction, FileChange, ParsedResponse
from code_push_mcp.parsing.code_blocks import (
    fence_info,
    looks_like_file_path,
    merge_file_changes,
    normalize_path,
    parse_code_blocks,
    resolve_fence_convention,
    resolve_language_path,
    resolve_path,
    resolve_preceding_convention,
    resolve_preceding_imperative,
)
from tests.conftest import dump_list_for_snapshot


def test_language_and_path_header():
    text = "Here you go:\n\n```ts:src/x.ts\nexport const x = 1;\n```\n"

    parsed_response: ParsedResponse = parse_code_blocks(text)

    assert dump_list_for_snapshot(list(parsed_response.file_changes)) == snapshot(
        [{"path": "src/x.ts", "content": "export const x = 1;", "action": "update"}]
    )
    assert parsed_response.raw_text == text


def test_no_fences():
    parsed_response = parse_code_blocks("Sure! You should rename the `src/app.ts` file and restart the dev server.")

    assert parsed_response.file_changes == ()
    assert not parsed_response.has_changes


def test_empty_text():
    assert parse_code_blocks("").file_changes == ()


def test_distinct_paths_keep_exact_content():
    text = "\n".join(
        [
            "```tsx:src/components/Button.tsx",
            "export function Button() {",
            "",
            "  return <button />;",
            "}",
            "```",
            "Then the styles:",
            "```css:src/styles/button.css",
            "  .button { color: red; }  ",
            "```",
            "```json:package.json",
            '{"name": "web-app"}',
            "```",
        ]
    )

    parsed_response = parse_code_blocks(text)

    assert parsed_response.paths == ["src/components/Button.tsx", "src/styles/button.css", "package.json"]
    assert parsed_response.file_changes[0].content == "export function Button() {\n\n  return <button />;\n}"
    assert parsed_response.file_changes[1].content == "  .button { color: red; }  "
    assert all(file_change.action == FileAction.UPDATE for file_change in parsed_response.file_changes)


def test_same_path_last_block_wins():
    text = "\n".join(
        [
            "```ts:src/a.ts",
            "const first = 1;",
            "```",
            "```ts:src/b.ts",
            "const b = 1;",
            "```",
            "Actually, use this instead:",
            "```ts:./src/a.ts",
            "const second = 2;",
            "```",
        ]
    )

    parsed_response = parse_code_blocks(text)

    assert parsed_response.file_changes == (
        FileChange(path="src/a.ts", content="const second = 2;"),
        FileChange(path="src/b.ts", content="const b = 1;"),
    )


def test_block_without_path_is_skipped():
    text = "For example:\n```python\nprint('hello')\n```\n"

    assert parse_code_blocks(text).file_changes == ()


def test_name_without_extension_is_skipped():
    text = "Update example:\n```python\nprint('hello')\n```\n"

    assert parse_code_blocks(text).file_changes == ()


def test_known_filename_without_extension():
    text = "File: Dockerfile\n```dockerfile\nFROM node:20\n```\n"

    assert parse_code_blocks(text).paths == ["Dockerfile"]


def test_empty_block_is_skipped():
    text = "```ts:src/empty.ts\n\n   \n```\n"

    assert parse_code_blocks(text).file_changes == ()


def test_unterminated_block_is_skipped():
    text = "```ts:src/done.ts\nconst done = true;\n```\n```ts:src/partial.ts\nconst partial ="

    assert parse_code_blocks(text).paths == ["src/done.ts"]


@pytest.mark.parametrize(
    ("text", "expected_path"),
    [
        pytest.param("```ts File: src/app/page.tsx\nexport {};\n```", "src/app/page.tsx", id="fence-file-convention"),
        pytest.param("```ts Path: src/app/page.tsx\nexport {};\n```", "src/app/page.tsx", id="fence-path-convention"),
        pytest.param("// File: src/app/page.tsx\n```tsx\nexport {};\n```", "src/app/page.tsx", id="preceding-comment-file"),
        pytest.param("File: src/app/page.tsx\n```tsx\nexport {};\n```", "src/app/page.tsx", id="preceding-file"),
        pytest.param("Path: src/app/page.tsx\n```tsx\nexport {};\n```", "src/app/page.tsx", id="preceding-path"),
        pytest.param("# src/main.py\n```python\nprint(1)\n```", "src/main.py", id="preceding-heading"),
        pytest.param("Create `src/lib/db.ts`:\n```ts\nexport {};\n```", "src/lib/db.ts", id="imperative-backticks"),
        pytest.param("Now update src/config.json\n```json\n{}\n```", "src/config.json", id="imperative-bare"),
        pytest.param('Edit "/src/index.html":\n```html\n<html></html>\n```', "src/index.html", id="imperative-quotes-leading-slash"),
    ],
)
def test_path_conventions(text: str, expected_path: str):
    assert parse_code_blocks(text).paths == [expected_path]


def test_fence_header_wins_over_preceding_line():
    text = "Create `src/other.ts`:\n```ts:src/x.ts\nexport const x = 1;\n```"

    assert parse_code_blocks(text).paths == ["src/x.ts"]


def test_fence_info():
    assert fence_info("```ts File: src/a.ts") == "File: src/a.ts"
    assert fence_info("```File: src/a.ts") == "File: src/a.ts"
    assert fence_info("```tsx:src/a.tsx") == "tsx:src/a.tsx"
    assert fence_info("```") == ""


def test_resolvers_are_independent():
    assert resolve_language_path("```ts:src/a.ts", None) == "src/a.ts"
    assert resolve_language_path("```ts", "File: src/a.ts") is None

    assert resolve_fence_convention("```ts File: src/a.ts", None) == "src/a.ts"
    assert resolve_fence_convention("```ts", None) is None

    assert resolve_preceding_convention("```ts", "  File: src/a.ts  ") == "src/a.ts"
    assert resolve_preceding_convention("```ts", None) is None

    assert resolve_preceding_imperative("```ts", "Please modify 'src/a.ts' like so:") == "src/a.ts"
    assert resolve_preceding_imperative("```ts", "Here is an example") is None


def test_resolve_path_uses_priority_order():
    assert resolve_path("```ts:src/first.ts", "File: src/second.ts") == "src/first.ts"
    assert resolve_path("```ts", "File: src/second.ts") == "src/second.ts"
    assert resolve_path("```ts", "Just some text") is None


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("src/app.ts", True),
        ("styles/site.scss", True),
        (".env.local", True),
        ("Makefile", True),
        ("deploy/Dockerfile", True),
        ("assets/logo.webp", True),
        ("example", False),
        ("src/components", False),
        ("a", False),
    ],
)
def test_looks_like_file_path(path: str, expected: bool):
    assert looks_like_file_path(path) is expected


@pytest.mark.parametrize("path", ["src/a.ts", "./src/a.ts", "/src/a.ts", "`src/a.ts`", "././src/a.ts", "//src/a.ts"])
def test_normalize_path(path: str):
    assert normalize_path(path) == "src/a.ts"


@pytest.mark.parametrize("path", ["src/a.ts", "./src/a.ts", "/./src/a.ts", "'./.env'", "Dockerfile"])
def test_normalize_path_is_idempotent(path: str):
    normalized = normalize_path(path)

    assert normalize_path(normalized) == normalized


def test_merge_file_changes():
    merged = merge_file_changes(
        [
            FileChange(path="./src/a.ts", content="first"),
            FileChange(path="src/b.ts", content="b", action=FileAction.DELETE),
            FileChange(path="/src/a.ts", content="last"),
            FileChange(path="/", content="dropped"),
        ]
    )

    assert merged == [
        FileChange(path="src/a.ts", content="last"),
        FileChange(path="src/b.ts", content="b", action=FileAction.DELETE),
    ]
