from typing import Literal, Self

from githubkit.versions.v2022_11_28.models import GitTree
from pydantic import BaseModel, Field

DEFAULT_MAX_CONTEXT_FILES = 20
DEFAULT_MAX_CONTEXT_FILE_SIZE = 50_000

# Files that describe a project best, fetched first when building context for the model.
PRIORITY_FILENAMES: tuple[str, ...] = (
    "README.md",
    "package.json",
    "pyproject.toml",
    "tsconfig.json",
    "next.config.js",
    "tailwind.config.js",
    "requirements.txt",
    "Dockerfile",
    "docker-compose.yml",
)

SKIPPED_DIRECTORIES: tuple[str, ...] = ("node_modules/", ".git/", "dist/", "build/", ".next/", "vendor/")

SKIPPED_SUFFIXES: tuple[str, ...] = (
    ".lock",
    "-lock.json",
    "-lock.yaml",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".ico",
    ".svg",
    ".woff",
    ".woff2",
    ".pdf",
    ".zip",
)


def path_depth(path: str) -> int:
    return path.count("/")


def is_context_candidate(path: str) -> bool:
    """Whether a file is worth reading for context: source and config, not dependencies, lock files or binaries."""
    if any(path.startswith(directory) or f"/{directory}" in path for directory in SKIPPED_DIRECTORIES):
        return False

    return not path.endswith(SKIPPED_SUFFIXES)


class RepositoryTreeEntry(BaseModel):
    path: str = Field(description="The path of the entry relative to the repository root.")
    type: Literal["file", "dir"] = Field(description="Whether the entry is a file or a directory.")
    size: int | None = Field(default=None, description="The size of the file in bytes.")


class RepositoryTree(BaseModel):
    entries: list[RepositoryTreeEntry]
    truncated: bool = Field(
        default=False,
        description="Whether GitHub truncated the tree. If true, the tree does not contain all files.",
    )

    @classmethod
    def from_git_tree(cls, git_tree: GitTree) -> Self:
        entries: list[RepositoryTreeEntry] = []

        for tree_item in git_tree.tree:
            if tree_item.type == "tree":
                entries.append(RepositoryTreeEntry(path=tree_item.path, type="dir"))
            elif tree_item.type == "blob":
                entries.append(RepositoryTreeEntry(path=tree_item.path, type="file", size=tree_item.size))

        return cls(entries=entries, truncated=bool(git_tree.truncated))

    @property
    def files(self) -> list[RepositoryTreeEntry]:
        return [entry for entry in self.entries if entry.type == "file"]

    def select_context_files(
        self, max_files: int = DEFAULT_MAX_CONTEXT_FILES, max_file_size: int = DEFAULT_MAX_CONTEXT_FILE_SIZE
    ) -> list[str]:
        """Pick the files most worth sending to the model: well-known project files first, then the
        shallowest paths. Files over `max_file_size` bytes are skipped."""

        candidates = [
            entry
            for entry in self.files
            if is_context_candidate(entry.path) and (entry.size is None or entry.size <= max_file_size)
        ]

        def priority(entry: RepositoryTreeEntry) -> tuple[int, int, str]:
            if entry.path in PRIORITY_FILENAMES:
                return (0, PRIORITY_FILENAMES.index(entry.path), entry.path)
            return (1, path_depth(entry.path), entry.path)

        return [entry.path for entry in sorted(candidates, key=priority)[:max_files]]
