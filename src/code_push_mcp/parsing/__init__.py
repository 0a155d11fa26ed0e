from code_push_mcp.parsing.code_blocks import looks_like_file_path, normalize_path, parse_code_blocks
from code_push_mcp.parsing.requests import generate_branch_name, looks_like_code_change_request, sanitize_branch_name

__all__ = [
    "generate_branch_name",
    "looks_like_code_change_request",
    "looks_like_file_path",
    "normalize_path",
    "parse_code_blocks",
    "sanitize_branch_name",
]
