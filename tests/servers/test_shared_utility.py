from types import SimpleNamespace

from code_push_mcp.servers.shared.utility import decode_content, extract_response, truncate_message


def test_extract_response():
    assert extract_response(SimpleNamespace(parsed_data=[1, 2])) == [1, 2]  # pyright: ignore[reportArgumentType]


def test_decode_content():
    assert decode_content("IyBXZWIgQXBwCg==") == "# Web App\n"
    assert decode_content("IyBXZWIg\nQXBwCg==") == "# Web App\n"


def test_truncate_message():
    assert truncate_message("Add a contact form") == "Add a contact form"
    assert truncate_message("  Add a\n contact   form ") == "Add a contact form"
    assert truncate_message("x" * 60) == "x" * 50 + "..."
    assert truncate_message("Fix the login bug", max_length=8) == "Fix the..."
