# tests/test_listing.py
import os
from pathlib import Path

import pytest

from deploytar.errors import DirectoryNotFoundError, ForbiddenPathError, NotADirectoryTargetError
from deploytar.services.listing import ListingService, format_size, list_directory, parent_of
from deploytar.services.paths import PathResolver


@pytest.mark.parametrize("size,expected", [
    (0, "0 B"),
    (1023, "1023 B"),
    (1024, "1.0 KiB"),
    (1536, "1.5 KiB"),
    (1048576, "1.0 MiB"),
    (5 * 1024 ** 3, "5.0 GiB"),
    (1024 ** 6, "1.0 EiB"),
])
def test_format_size(size, expected):
    assert format_size(size) == expected


@pytest.mark.parametrize("path,parent", [("/", ""), ("/a", "/"), ("/a/b", "/a")])
def test_parent_of(path, parent):
    assert parent_of(path) == parent


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    root = tmp_path / "srv"
    (root / "docs").mkdir(parents=True)
    (root / "empty").mkdir()
    (root / "b.txt").write_bytes(b"x" * 2048)
    (root / "a.txt").write_bytes(b"hi")
    os.symlink(root / "docs", root / "docs-link")
    os.symlink(root / "does-not-exist", root / "broken")
    return root


def test_list_root(tree):
    listing = ListingService(PathResolver(str(tree))).list("/")
    assert listing.path == "/"
    assert listing.parent_link == ""
    assert [(e.name, e.type, e.size, e.link) for e in listing.entries] == [
        ("a.txt", "file", "2 B", "/a.txt"),
        ("b.txt", "file", "2.0 KiB", "/b.txt"),
        ("docs", "directory", "", "/docs"),
        ("docs-link", "directory", "", "/docs-link"),
        ("empty", "directory", "", "/empty"),
    ]


def test_broken_symlink_is_excluded(tree):
    names = [e.name for e in ListingService(PathResolver(str(tree))).list("").entries]
    assert "broken" not in names


def test_empty_directory_has_parent_link(tree):
    listing = ListingService(PathResolver(str(tree))).list("empty/")
    assert listing.entries == []
    assert listing.path == "/empty"
    assert listing.parent_link == "/"


def test_links_use_display_path_not_server_layout(tree):
    (tree / "docs" / "guide.md").write_text("# guide")
    listing = ListingService(PathResolver(str(tree))).list(str(tree / "docs"))
    assert listing.path == "/docs"
    assert [e.link for e in listing.entries] == ["/docs/guide.md"]
    assert listing.parent_link == "/"


def test_list_directory_with_raw_request_path(tree):
    entries, parent = list_directory(str(tree / "docs"), "docs/")
    assert entries == []
    assert parent == "/"


def test_missing_directory(tree):
    with pytest.raises(DirectoryNotFoundError):
        ListingService(PathResolver(str(tree))).list("nope")


def test_listing_a_file(tree):
    with pytest.raises(NotADirectoryTargetError):
        ListingService(PathResolver(str(tree))).list("a.txt")


def test_listing_traversal(tree):
    with pytest.raises(ForbiddenPathError):
        ListingService(PathResolver(str(tree))).list("../")
