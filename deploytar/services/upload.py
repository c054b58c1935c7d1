# deploytar/services/upload.py
from __future__ import annotations

import enum
import logging
import os
import posixpath
import shutil
from dataclasses import dataclass
from typing import BinaryIO, Optional

from deploytar.errors import (
    ForbiddenPathError,
    InputInvalidError,
    NotADirectoryTargetError,
    StorageIOError,
)
from deploytar.services.extract import DEFAULT_DIR_MODE, ArchiveExtractor
from deploytar.services.paths import PathResolver, ResolvedPath, clean, is_within

logger = logging.getLogger(__name__)


class UploadMode(str, enum.Enum):
    MERGE = "merge"      # keep existing contents
    REPLACE = "replace"  # delete and recreate the target first

    @classmethod
    def parse(cls, value: Optional[str]) -> "UploadMode":
        if not value:
            return cls.MERGE
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise InputInvalidError(f"Unknown upload mode: {value!r}") from None


class PayloadKind(str, enum.Enum):
    TAR_GZ = "tar.gz"
    TAR = "tar"
    GZIP = "gz"
    PLAIN = "file"

    @property
    def is_archive(self) -> bool:
        return self in (PayloadKind.TAR_GZ, PayloadKind.TAR)


def classify(file_name: str) -> PayloadKind:
    """Suffix sets overlap ('.tar.gz' also ends in '.gz'), so order matters."""
    lower = file_name.lower()
    if lower.endswith((".tar.gz", ".tgz")):
        return PayloadKind.TAR_GZ
    if lower.endswith(".tar"):
        return PayloadKind.TAR
    if lower.endswith(".gz"):
        return PayloadKind.GZIP
    return PayloadKind.PLAIN


def _clear_contents(directory: str) -> None:
    with os.scandir(directory) as it:
        children = list(it)
    for child in children:
        if child.is_dir(follow_symlinks=False):
            shutil.rmtree(child.path)
        else:
            os.remove(child.path)


@dataclass(frozen=True)
class UploadResult:
    path: str           # absolute materialized path
    display_path: str   # same location as shown to clients
    kind: PayloadKind


@dataclass
class UploadService:
    """
    One upload, start to finish:
      validate -> prepare target -> dispatch by suffix -> extract/decompress/copy

    Failures surface the first error; files already written stay on disk.
    """
    resolver: PathResolver
    extractor: ArchiveExtractor

    def upload(
        self,
        stream: BinaryIO,
        destination: Optional[str],
        file_name: Optional[str],
        mode: UploadMode = UploadMode.MERGE,
    ) -> UploadResult:
        resolved = self._validate(destination, file_name)
        target = resolved.path
        # replace on the prefix root empties it rather than removing the root itself
        self._prepare_target(target, mode, keep_root=(target == resolved.base))

        kind = classify(file_name)
        if kind is PayloadKind.TAR_GZ:
            self.extractor.extract_tar(stream, target, file_name, compressed=True)
            final = target
        elif kind is PayloadKind.TAR:
            self.extractor.extract_tar(stream, target, file_name)
            final = target
        elif kind is PayloadKind.GZIP:
            final = self.extractor.decompress_gzip(stream, target, file_name)
        else:
            final = self.extractor.copy_plain(stream, target, file_name)

        logger.info("Upload of %s (%s, %s) materialized at %s", file_name, kind.value, mode.value, final)
        return UploadResult(path=final, display_path=self.resolver.display_for(resolved, final), kind=kind)

    # ---------- Internals ----------

    def _validate(self, destination: Optional[str], file_name: Optional[str]) -> ResolvedPath:
        if not destination or not destination.strip():
            raise InputInvalidError("Destination directory not specified")
        if not file_name:
            raise InputInvalidError("Filename not specified")
        if "\x00" in destination or "\x00" in file_name:
            raise InputInvalidError("destination and filename must not contain NUL bytes")

        cleaned_name = clean(file_name)
        if (
            posixpath.isabs(file_name)
            or ".." in file_name.split("/")
            or cleaned_name in (".", "/")
        ):
            raise InputInvalidError(f"invalid characters or traversal attempt in filename '{file_name}'")

        resolved = self.resolver.resolve(destination)
        # Uploads accept both prefix-relative and absolute-within-prefix
        # destinations; whichever form arrived, the target must stay in base.
        if not is_within(resolved.base, resolved.path):
            raise ForbiddenPathError(f"target path '{destination}' attempts to traverse outside its allowed scope")
        if self.resolver.prefix is None and resolved.path == resolved.base:
            raise InputInvalidError("target directory cannot be the working directory without a prefix")
        return resolved

    def _prepare_target(self, target: str, mode: UploadMode, keep_root: bool = False) -> None:
        if mode is UploadMode.REPLACE:
            try:
                if keep_root:
                    _clear_contents(target)
                else:
                    shutil.rmtree(target)
            except FileNotFoundError:
                pass
            except NotADirectoryError as e:
                raise NotADirectoryTargetError(f"upload target '{target}' is not a directory") from e
            except OSError as e:
                raise StorageIOError(f"failed to remove existing directory '{target}': {e}") from e

        try:
            os.makedirs(target, mode=DEFAULT_DIR_MODE, exist_ok=True)
        except FileExistsError as e:
            raise NotADirectoryTargetError(f"upload target '{target}' is not a directory") from e
        except OSError as e:
            raise StorageIOError(f"failed to create target directory '{target}': {e}") from e
