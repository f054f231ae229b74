"""File system operations implementation."""

import logging
import mimetypes
import os
import shutil
import stat as stat_module
from datetime import datetime
from itertools import islice
from pathlib import Path
from typing import Any, Optional

from .responses import ActionResult

logger = logging.getLogger(__name__)

# Reads longer than this are cut and returned as a preview.
MAX_PREVIEW_CHARS = 100_000


def normalize_path(path: str) -> str:
    """Expand ``~`` and make the path absolute without resolving symlinks."""
    return os.path.abspath(os.path.expanduser(path))


def _describe_os_error(action: str, path: str, exc: Exception) -> str:
    if isinstance(exc, ValueError):
        # e.g. "embedded null byte"
        return f"Failed to {action} {path!r}: invalid path ({exc})"
    if isinstance(exc, FileNotFoundError):
        return f"Failed to {action} {path}: no such file or directory"
    if isinstance(exc, PermissionError):
        return f"Failed to {action} {path}: permission denied"
    if isinstance(exc, IsADirectoryError):
        return f"Failed to {action} {path}: path is a directory"
    if isinstance(exc, NotADirectoryError):
        return f"Failed to {action} {path}: a parent path is not a directory"
    return f"Failed to {action} {path}: {exc.strerror or exc}"


class FileSystem:
    def __init__(self, preview_limit: int = MAX_PREVIEW_CHARS) -> None:
        self.preview_limit = preview_limit

    async def read_text(self, path: str) -> ActionResult:
        """Read a whole text file without any truncation."""
        full_path = Path(normalize_path(path))
        try:
            return ActionResult.ok(full_path.read_text(encoding="utf-8", errors="replace"))
        except (OSError, ValueError) as e:
            return ActionResult.failed(_describe_os_error("read", path, e))

    async def read_file(self, path: str, lines: Optional[int] = None) -> ActionResult:
        """Read a file fully or its first ``lines`` lines, previewing large content."""
        full_path = Path(normalize_path(path))
        try:
            if full_path.exists() and not full_path.is_file():
                return ActionResult.failed(f"Path is not a file: {path}")

            with open(full_path, "r", encoding="utf-8", errors="replace") as f:
                if lines is not None:
                    content = "".join(islice(f, lines))
                else:
                    content = f.read(self.preview_limit + 1)
            size = full_path.stat().st_size
        except (OSError, ValueError) as e:
            return ActionResult.failed(_describe_os_error("read", path, e))

        if len(content) > self.preview_limit:
            logger.info("Truncating read of %s at %d characters", full_path, self.preview_limit)
            return ActionResult.ok(
                f"Preview of {path}: showing the first {self.preview_limit} characters "
                f"of a {size}-byte file\n\n{content[:self.preview_limit]}",
                preview=True,
            )

        heading = f"First {lines} lines of {path}" if lines is not None else f"Contents of {path}"
        return ActionResult.ok(f"{heading}:\n\n{content}")

    @staticmethod
    def _backup_path(full_path: Path) -> Path:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        candidate = full_path.with_name(f"{full_path.name}.backup-{stamp}")
        counter = 1
        while candidate.exists():
            candidate = full_path.with_name(f"{full_path.name}.backup-{stamp}-{counter}")
            counter += 1
        return candidate

    async def write_file(self, path: str, content: str, backup: bool = False) -> ActionResult:
        """Create a new file or overwrite an existing one, optionally keeping a backup."""
        full_path = Path(normalize_path(path))
        backup_path = None
        try:
            if full_path.is_dir():
                return ActionResult.failed(f"Path is a directory: {path}")
            if backup and full_path.exists():
                backup_path = self._backup_path(full_path)
                shutil.copy2(full_path, backup_path)
                logger.info("Backed up %s to %s", full_path, backup_path)

            full_path.parent.mkdir(parents=True, exist_ok=True)
            with open(full_path, "w", encoding="utf-8") as f:
                f.write(content)
        except (OSError, ValueError) as e:
            return ActionResult.failed(_describe_os_error("write", path, e))

        message = f"Successfully wrote {len(content)} characters to {path}"
        if backup_path is not None:
            message += f"\nBackup of previous content: {backup_path}"
        return ActionResult.ok(message)

    async def list_directory(self, path: str) -> ActionResult:
        """List directory contents with [FILE] or [DIR] prefixes."""
        full_path = Path(normalize_path(path))
        try:
            if not full_path.is_dir():
                if full_path.exists():
                    return ActionResult.failed(f"Path is not a directory: {path}")
                return ActionResult.failed(f"Directory does not exist: {path}")

            items = []
            for item in sorted(full_path.iterdir(), key=lambda p: p.name):
                prefix = "[DIR]" if item.is_dir() else "[FILE]"
                items.append(f"{prefix} {item.name}")
        except (OSError, ValueError) as e:
            return ActionResult.failed(_describe_os_error("list", path, e))

        if not items:
            return ActionResult.ok(f"Directory is empty: {path}")
        return ActionResult.ok(f"Contents of {path}:\n" + "\n".join(items))

    async def create_directory(self, path: str) -> ActionResult:
        """Create a new directory, including parents if needed."""
        full_path = Path(normalize_path(path))
        try:
            full_path.mkdir(parents=True, exist_ok=True)
        except FileExistsError:
            return ActionResult.failed(f"Path exists but is not a directory: {path}")
        except (OSError, ValueError) as e:
            return ActionResult.failed(_describe_os_error("create directory", path, e))
        return ActionResult.ok(f"Successfully created directory {path}")

    async def move_file(self, source: str, destination: str) -> ActionResult:
        """Move or rename a file or directory. Fails if destination exists."""
        src_path = Path(normalize_path(source))
        dst_path = Path(normalize_path(destination))

        if not src_path.exists():
            return ActionResult.failed(f"Source path does not exist: {source}")
        if dst_path.exists():
            return ActionResult.failed(f"Destination path already exists: {destination}")

        try:
            dst_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src_path), str(dst_path))
        except (OSError, ValueError) as e:
            return ActionResult.failed(_describe_os_error("move", source, e))
        return ActionResult.ok(f"Successfully moved {source} to {destination}")

    async def search_files(self, path: str, pattern: str, max_results: int = 200) -> ActionResult:
        """Recursively search for files/directories whose name contains ``pattern`` (case-insensitive)."""
        root_path = Path(normalize_path(path))
        if not root_path.is_dir():
            return ActionResult.failed(f"Path is not a directory: {path}")

        pattern_lower = pattern.lower()
        matches = []

        def _on_error(exc: OSError) -> None:
            logger.debug("Skipping unreadable entry during search: %s", exc)

        for current_root, dirs, files in os.walk(str(root_path), onerror=_on_error):
            dirs.sort()
            for name in sorted(dirs + files):
                if pattern_lower in name.lower():
                    matches.append(os.path.join(current_root, name))

        if not matches:
            return ActionResult.ok(f"No files found matching pattern '{pattern}' in {path}")

        matches.sort()
        shown = matches[:max_results]
        text = f"Found {len(matches)} match(es) for '{pattern}' in {path}:\n" + "\n".join(shown)
        if len(matches) > max_results:
            text += f"\n... {len(matches) - max_results} more not shown"
        return ActionResult.ok(text)

    def _get_file_info(self, path: Path) -> dict[str, Any]:
        """Get detailed information about a file or directory."""
        stat = path.stat()
        mode = stat.st_mode

        if stat_module.S_ISDIR(mode):
            file_type = "directory"
            mime_type = None
        elif stat_module.S_ISREG(mode):
            file_type = "file"
            mime_type, _ = mimetypes.guess_type(str(path))
            mime_type = mime_type or "application/octet-stream"
        else:
            file_type = "other"
            mime_type = None

        info = {
            "name": path.name,
            "type": file_type,
            "path": str(path),
            "size": stat.st_size,
            "created": datetime.fromtimestamp(stat.st_ctime).isoformat(),
            "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
            "accessed": datetime.fromtimestamp(stat.st_atime).isoformat(),
            "permissions": oct(mode & 0o777),
        }
        if mime_type:
            info["mime_type"] = mime_type
        return info

    async def get_file_info(self, path: str) -> ActionResult:
        """Get detailed file/directory metadata."""
        try:
            info = self._get_file_info(Path(normalize_path(path)))
        except (OSError, ValueError) as e:
            return ActionResult.failed(_describe_os_error("stat", path, e))
        return ActionResult.ok("\n".join(f"{k}: {v}" for k, v in info.items()))
