# deploytar/services/paths.py
from __future__ import annotations

import os
import posixpath
import stat
from dataclasses import dataclass
from typing import Optional

from deploytar.errors import (
    ForbiddenPathError,
    InputInvalidError,
    PrefixNotDirectoryError,
    PrefixNotFoundError,
    StorageIOError,
)

ROOT = "/"


def clean(path: str) -> str:
    """
    Lexical cleanup: collapse separators, resolve '.' and '..' textually.
    Empty input becomes '.'. Never touches the filesystem.
    """
    if not path:
        return "."
    cleaned = posixpath.normpath(path)
    # normpath keeps a leading '//' (POSIX implementation-defined); fold it
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def is_traversal(path: str) -> bool:
    return path == ".." or path.startswith("../")


def is_within(base: str, target: str) -> bool:
    """
    True when `target` is `base` or a descendant of it. Both must be absolute.
    Decided on the relative path, never on a string prefix.
    """
    rel = posixpath.relpath(clean(target), clean(base))
    return not is_traversal(rel)


def to_display(path: str) -> str:
    """Normalize a client-facing path: leading '/', root is '/', no trailing '/'."""
    if path in ("", "."):
        return ROOT
    cleaned = clean(path)
    if cleaned == ".":
        return ROOT
    if not cleaned.startswith("/"):
        cleaned = "/" + cleaned
    if len(cleaned) > 1:
        cleaned = cleaned.rstrip("/")
    return cleaned


@dataclass(frozen=True)
class ResolvedPath:
    path: str           # absolute filesystem location
    display_path: str   # virtual, prefix-independent
    base: str           # effective base directory the path is confined to


class PathResolver:
    """
    Turn an untrusted client path into a location confined to PATH_PREFIX
    (or the working directory when no prefix is configured).

    The prefix is fixed for the process, but its existence is re-checked on
    every call since the filesystem may change between requests.
    """

    def __init__(self, prefix: Optional[str] = None):
        cleaned = clean(prefix or "")
        self.prefix: Optional[str] = None if cleaned in (".", ROOT) else cleaned

    # ---------- Public API ----------

    def resolve(self, requested: Optional[str]) -> ResolvedPath:
        raw = requested or ""
        if "\x00" in raw:
            raise InputInvalidError("path contains a NUL byte")
        self._check_traversal(raw)

        base = self._effective_base()
        subpath = clean(self._relative_to_prefix(raw)).lstrip("/")
        if subpath in ("", "."):
            target = base
        else:
            target = clean(posixpath.join(base, subpath))

        if not is_within(base, target):
            raise ForbiddenPathError(
                f"Access to the requested path is forbidden (resolved path outside {self._scope_name()})"
            )

        return ResolvedPath(path=target, display_path=self._display(raw), base=base)

    def display_for(self, resolved: ResolvedPath, path: str) -> str:
        """Display path of an absolute location at or below `resolved.base`."""
        if not is_within(resolved.base, path):
            raise ForbiddenPathError("Path lies outside the allowed scope")
        return to_display(posixpath.relpath(clean(path), resolved.base))

    # ---------- Internals ----------

    def _check_traversal(self, raw: str) -> None:
        # Single gate for both upload and listing; runs before any stat
        if is_traversal(clean(raw)):
            raise ForbiddenPathError(
                "Access to the requested path is forbidden (path traversal attempt?)"
            )
        if self.prefix and posixpath.isabs(raw) and raw != ROOT:
            if not is_within(self.prefix, clean(raw)):
                raise ForbiddenPathError(
                    "Access to the requested path is forbidden (path traversal attempt?)"
                )

    def _relative_to_prefix(self, raw: str) -> str:
        if not self.prefix:
            return raw
        if raw == ROOT:
            return ""
        if posixpath.isabs(raw) and is_within(self.prefix, clean(raw)):
            return posixpath.relpath(clean(raw), self.prefix)
        return raw

    def _display(self, raw: str) -> str:
        return to_display(self._relative_to_prefix(raw))

    def _effective_base(self) -> str:
        if not self.prefix:
            try:
                return clean(os.getcwd())
            except OSError as e:
                raise StorageIOError(f"Error getting current working directory: {e}") from e

        try:
            st = os.stat(self.prefix)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise PrefixNotFoundError(f"PATH_PREFIX {self.prefix} not found") from e
        except OSError as e:
            raise StorageIOError(f"Error accessing PATH_PREFIX {self.prefix}: {e}") from e
        if not stat.S_ISDIR(st.st_mode):
            raise PrefixNotDirectoryError(f"PATH_PREFIX {self.prefix} is not a directory")
        return clean(os.path.abspath(self.prefix))

    def _scope_name(self) -> str:
        return "prefix" if self.prefix else "CWD"
