"""Filesystem access confined to the workspace roots.

Security features:
- Path normalization (resolves .., ~ and symlinks)
- Traversal protection (must stay within allowed roots)
- Device file and FIFO rejection
- Symlink escape detection

Every failure raises FsError, which the orchestrator reports back to the
model as the tool's result.
"""

from __future__ import annotations

import os
from pathlib import Path
import stat as stat_module
from typing import Any

from toolwire.errors import ToolExecutionError


class FsError(ToolExecutionError):
    """A filesystem operation could not be performed."""


class PathSecurityError(FsError):
    """Raised when path access is denied for security reasons."""


def _is_device_file(path: Path) -> bool:
    try:
        mode = path.stat().st_mode
    except OSError:
        return False
    return stat_module.S_ISBLK(mode) or stat_module.S_ISCHR(mode)


class Workspace:
    """File operations restricted to a set of root directories.

    An empty ``allowed_roots`` list means unrestricted access.
    """

    def __init__(self, allowed_roots: list[str] | None = None):
        self.allowed_roots = list(allowed_roots) if allowed_roots is not None else ["."]

    def _roots(self) -> list[Path]:
        return [Path(os.path.expanduser(r)).resolve() for r in self.allowed_roots]

    def is_allowed(self, path: Path) -> bool:
        if not self.allowed_roots:
            return True
        return any(path == root or root in path.parents for root in self._roots())

    def resolve(self, path: str | Path) -> Path:
        """Normalize ``path`` and check it stays inside the workspace.

        Raises:
            PathSecurityError: If the path is unsafe to access
        """
        raw = str(path)
        if "\x00" in raw:
            raise PathSecurityError("Path contains null bytes")
        if not raw.strip():
            raise PathSecurityError("Empty path")

        candidate = Path(os.path.expanduser(raw))
        # Symlinks are followed, so a link escaping the roots fails the check below
        resolved = candidate.resolve()

        if not self.is_allowed(resolved):
            raise PathSecurityError(f"Path {resolved} is outside allowed roots: {self.allowed_roots}")
        if resolved.exists() and _is_device_file(resolved):
            raise PathSecurityError(f"Cannot access device file: {resolved}")
        return resolved

    def read_text(self, path: str | Path, max_bytes: int = 1_048_576) -> tuple[str, bool]:
        """Read a file, returning ``(content, truncated)``.

        Undecodable bytes are replaced rather than failing the read.
        """
        resolved = self.resolve(path)
        if not resolved.exists():
            raise FsError(f"File not found: {resolved}")
        if resolved.is_fifo():
            raise FsError(f"Cannot read from a FIFO: {resolved}")
        if not resolved.is_file():
            raise FsError(f"Not a file: {resolved}")

        size = resolved.stat().st_size
        with open(resolved, "rb") as f:
            raw = f.read(max_bytes)
        return raw.decode("utf-8", errors="replace"), size > max_bytes

    def list_entries(
        self,
        path: str | Path,
        include_hidden: bool = False,
        max_entries: int = 1000,
    ) -> list[dict[str, Any]]:
        resolved = self.resolve(path)
        if not resolved.exists():
            raise FsError(f"Directory not found: {resolved}")
        if not resolved.is_dir():
            raise FsError(f"Not a directory: {resolved}")

        entries: list[dict[str, Any]] = []
        try:
            children = sorted(resolved.iterdir())
        except PermissionError as e:
            raise FsError(f"Permission denied: {resolved}") from e

        for child in children:
            if not include_hidden and child.name.startswith("."):
                continue
            if len(entries) >= max_entries:
                break
            if child.is_symlink():
                kind = "symlink"
            elif child.is_dir():
                kind = "dir"
            else:
                kind = "file"
            entry: dict[str, Any] = {"name": child.name, "type": kind}
            if kind == "file":
                try:
                    entry["size"] = child.stat().st_size
                except OSError:
                    pass
            entries.append(entry)
        return entries

    def write_text(
        self,
        path: str | Path,
        content: str,
        mode: str = "rewrite",
        max_bytes: int = 10_485_760,
    ) -> int:
        """Write or append ``content``; returns bytes written."""
        if mode not in ("rewrite", "append"):
            raise FsError(f"Unknown write mode: {mode}")

        resolved = self.resolve(path)
        data = content.encode("utf-8")
        if len(data) > max_bytes:
            raise FsError(f"Content too large: {len(data)} > {max_bytes}")
        if resolved.exists() and not resolved.is_file():
            raise FsError(f"Path is not a regular file: {resolved}")

        resolved.parent.mkdir(parents=True, exist_ok=True)
        if mode == "rewrite":
            # Atomic replace
            tmp_path = resolved.with_suffix(resolved.suffix + ".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(resolved)
        else:
            with open(resolved, "ab") as f:
                f.write(data)
        return len(data)

    def replace_block(
        self,
        path: str | Path,
        old_text: str,
        new_text: str,
        expected_replacements: int = 1,
    ) -> int:
        """Replace ``old_text`` with ``new_text``; returns the match count."""
        resolved = self.resolve(path)
        if not resolved.is_file():
            raise FsError(f"File not found: {resolved}")
        if not old_text:
            raise FsError("old_text must not be empty")

        try:
            content = resolved.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise FsError(f"File is not UTF-8 text: {resolved}") from e

        count = content.count(old_text)
        if count == 0:
            raise FsError("Text not found in file")
        if count != expected_replacements:
            raise FsError(f"Expected {expected_replacements} matches, found {count}")

        tmp_path = resolved.with_suffix(resolved.suffix + ".tmp")
        tmp_path.write_text(content.replace(old_text, new_text), encoding="utf-8")
        tmp_path.replace(resolved)
        return count
