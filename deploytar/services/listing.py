# deploytar/services/listing.py
from __future__ import annotations

import os
import posixpath
import stat
from dataclasses import dataclass, field
from typing import List, Optional

from deploytar.errors import (
    DirectoryNotFoundError,
    ForbiddenPathError,
    NotADirectoryTargetError,
    StorageIOError,
)
from deploytar.services.paths import ROOT, PathResolver, to_display

_UNIT = 1024
_MAGNITUDES = "KMGTPE"


def format_size(size: int) -> str:
    if size < _UNIT:
        return f"{size} B"
    div, exp = _UNIT, 0
    n = size // _UNIT
    while n >= _UNIT and exp < len(_MAGNITUDES) - 1:
        div *= _UNIT
        exp += 1
        n //= _UNIT
    return f"{size / div:.1f} {_MAGNITUDES[exp]}iB"


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    type: str   # "file" | "directory"
    size: str   # empty for directories
    link: str   # virtual path of the child


@dataclass(frozen=True)
class Listing:
    path: str
    entries: List[DirectoryEntry] = field(default_factory=list)
    parent_link: str = ""


def parent_of(display_path: str) -> str:
    if display_path == ROOT:
        return ""
    return posixpath.dirname(display_path) or ROOT


def list_directory(resolved_path: str, request_path: str) -> tuple[List[DirectoryEntry], str]:
    """
    Immediate children of `resolved_path`, sorted by name. Symlinks are
    followed; entries that cannot be statted (broken links) are left out.
    """
    current = to_display(request_path)
    try:
        with os.scandir(resolved_path) as it:
            children = sorted(it, key=lambda e: e.name)
    except FileNotFoundError as e:
        raise DirectoryNotFoundError(f"Directory not found: {current}") from e
    except NotADirectoryError as e:
        raise NotADirectoryTargetError(f"Not a directory: {current}") from e
    except PermissionError as e:
        raise ForbiddenPathError(f"Permission denied for directory: {current}") from e
    except OSError as e:
        raise StorageIOError(f"failed to read directory {current}: {e}") from e

    link_dir = "" if current == ROOT else current
    entries: List[DirectoryEntry] = []
    for child in children:
        try:
            st = child.stat(follow_symlinks=True)
        except OSError:
            continue

        if stat.S_ISDIR(st.st_mode):
            kind, size = "directory", ""
        else:
            kind, size = "file", format_size(st.st_size)
        entries.append(DirectoryEntry(
            name=child.name,
            type=kind,
            size=size,
            link=to_display(posixpath.join(link_dir, child.name)),
        ))
    return entries, parent_of(current)


@dataclass
class ListingService:
    resolver: PathResolver

    def list(self, requested: Optional[str]) -> Listing:
        resolved = self.resolver.resolve(requested)
        # Links are built from the display path so server layout never leaks
        entries, parent_link = list_directory(resolved.path, resolved.display_path)
        return Listing(path=resolved.display_path, entries=entries, parent_link=parent_link)
