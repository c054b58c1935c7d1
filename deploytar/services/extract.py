# deploytar/services/extract.py
from __future__ import annotations

import gzip
import logging
import os
import posixpath
import shutil
import tarfile
import zlib
from contextlib import contextmanager
from typing import BinaryIO, Iterator

from deploytar.errors import (
    BadArchiveError,
    FileServiceError,
    ForbiddenPathError,
    InputInvalidError,
    InvalidGzipError,
    StorageIOError,
)
from deploytar.services.paths import clean, is_traversal, is_within

logger = logging.getLogger(__name__)

DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644
GZIP_MAGIC = b"\x1f\x8b"
GZIP_FALLBACK_NAME = "gzipped_file"

# Raised while decoding a tar stream, or the gzip layer under it
DECODE_ERRORS = (tarfile.TarError, EOFError, zlib.error)


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error("Failed to remove partially written file %s: %s", path, e)


def _check_gzip_magic(stream: BinaryIO, source_name: str) -> None:
    # Non-seekable streams are checked lazily by GzipFile on first read
    seekable = getattr(stream, "seekable", None)
    if seekable is None or not seekable():
        return
    pos = stream.tell()
    magic = stream.read(len(GZIP_MAGIC))
    stream.seek(pos)
    if magic != GZIP_MAGIC:
        raise InvalidGzipError(f"failed to create gzip reader for '{source_name}': not a gzipped file")


def strip_gz_suffix(file_name: str) -> str:
    stripped = file_name[:-3] if file_name.lower().endswith(".gz") else file_name
    if not stripped or stripped.endswith("/"):
        stripped += GZIP_FALLBACK_NAME
    return stripped


class ArchiveExtractor:
    """
    Stream uploads onto disk below an already validated target directory.

    Every destination is checked twice: the cleaned name must be relative and
    non-traversing, and the joined path must still lie inside the target.
    Nothing is rolled back on failure except the file being written.
    """

    def __init__(self, buffer_size: int = 1024 * 1024):
        self.buffer_size = buffer_size

    # ---------- Public API ----------

    def extract_tar(self, stream: BinaryIO, target_dir: str, source_name: str, *,
                    compressed: bool = False) -> int:
        """Extract a tar (optionally gzip) stream; returns the number of entries read."""
        count = 0
        with self._translate_errors(source_name):
            if compressed:
                _check_gzip_magic(stream, source_name)
                source: BinaryIO = gzip.GzipFile(fileobj=stream, mode="rb")
            else:
                source = stream
            try:
                with tarfile.open(fileobj=source, mode="r|") as tar:
                    for member in tar:
                        count += 1
                        self._extract_member(tar, member, target_dir, source_name)
                        # pipe mode still records every header; drop them so memory stays flat
                        tar.members = []
            finally:
                if source is not stream:
                    source.close()

        if count == 0:
            raise BadArchiveError(f"empty or invalid tar archive '{source_name}': no headers found")
        logger.info("Extracted %d entries from %s into %s", count, source_name, target_dir)
        return count

    def decompress_gzip(self, stream: BinaryIO, target_dir: str, source_name: str) -> str:
        dest = self._destination(target_dir, strip_gz_suffix(source_name), source_name)
        with self._translate_errors(source_name):
            _check_gzip_magic(stream, source_name)
            self._ensure_dir(posixpath.dirname(dest), DEFAULT_DIR_MODE)
            with gzip.GzipFile(fileobj=stream, mode="rb") as gz:
                self._write_file(gz, dest, DEFAULT_FILE_MODE)
        return dest

    def copy_plain(self, stream: BinaryIO, target_dir: str, file_name: str) -> str:
        dest = self._destination(target_dir, file_name, file_name)
        with self._translate_errors(file_name):
            self._ensure_dir(posixpath.dirname(dest), DEFAULT_DIR_MODE)
            self._write_file(stream, dest, DEFAULT_FILE_MODE)
        return dest

    # ---------- Internals ----------

    def _extract_member(self, tar: tarfile.TarFile, member: tarfile.TarInfo,
                        target_dir: str, source_name: str) -> None:
        dest = self._destination(target_dir, member.name, source_name)

        if member.isdir():
            # an entry named '.' lands on target_dir itself: no-op
            self._ensure_dir(dest, member.mode)
        elif member.isreg():
            self._ensure_dir(posixpath.dirname(dest), DEFAULT_DIR_MODE)
            src = tar.extractfile(member) if member.size > 0 else None
            self._write_file(src, dest, member.mode)
        else:
            logger.debug("Skipping unsupported tar entry type %r for %s", member.type, member.name)

    def _destination(self, target_dir: str, name: str, source_name: str) -> str:
        if "\x00" in name:
            raise InputInvalidError(f"entry name in '{source_name}' contains a NUL byte")
        cleaned = clean(name)
        if posixpath.isabs(cleaned) or is_traversal(cleaned):
            logger.warning("Unsafe entry %r in %s", name, source_name)
            raise ForbiddenPathError(f"'{source_name}' contains potentially unsafe path entry '{name}'")

        dest = clean(posixpath.join(target_dir, cleaned))
        if not is_within(target_dir, dest):
            logger.warning("Entry %r in %s resolves outside %s", name, source_name, target_dir)
            raise ForbiddenPathError(
                f"path traversal attempt in '{source_name}': entry '{name}' resolves outside extraction directory"
            )
        return dest

    def _ensure_dir(self, path: str, mode: int) -> None:
        try:
            os.makedirs(path, mode=mode, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"failed to create directory '{path}': {e}") from e

    def _write_file(self, src, dest: str, mode: int) -> None:
        try:
            fd = os.open(dest, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, mode)
        except OSError as e:
            raise StorageIOError(f"failed to create file '{dest}': {e}") from e

        try:
            with os.fdopen(fd, "wb") as out:
                if src is not None:
                    shutil.copyfileobj(src, out, self.buffer_size)
        except Exception:
            _discard(dest)
            raise

    @contextmanager
    def _translate_errors(self, source_name: str) -> Iterator[None]:
        try:
            yield
        except FileServiceError:
            raise
        except gzip.BadGzipFile as e:
            raise InvalidGzipError(f"invalid gzip data in '{source_name}': {e}") from e
        except DECODE_ERRORS as e:
            raise BadArchiveError(f"failed to read archive '{source_name}': {e}") from e
        except OSError as e:
            raise StorageIOError(f"failed to write content from '{source_name}': {e}") from e
