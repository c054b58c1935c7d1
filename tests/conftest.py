# tests/conftest.py
import gzip
import io
import tarfile
from typing import Iterable, Tuple, Union

import pytest

Entry = Union[Tuple[str, bytes], Tuple[str, bytes, int], tarfile.TarInfo]


def build_tar(entries: Iterable[Entry], gz: bool = False) -> bytes:
    """
    Entries are (name, content[, mode]) for regular files, or a prepared
    TarInfo for anything else (directories, symlinks).
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.GNU_FORMAT) as tar:
        for entry in entries:
            if isinstance(entry, tarfile.TarInfo):
                tar.addfile(entry)
                continue
            name, content = entry[0], entry[1]
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = entry[2] if len(entry) > 2 else 0o644
            tar.addfile(info, io.BytesIO(content))
    data = buf.getvalue()
    return gzip.compress(data) if gz else data


def dir_entry(name: str, mode: int = 0o755) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = tarfile.DIRTYPE
    info.mode = mode
    return info


def symlink_entry(name: str, target: str) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = tarfile.SYMTYPE
    info.linkname = target
    return info


@pytest.fixture
def make_tar():
    return build_tar


@pytest.fixture
def tar_dir():
    return dir_entry


@pytest.fixture
def tar_symlink():
    return symlink_entry
