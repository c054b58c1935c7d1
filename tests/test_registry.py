# tests/test_registry.py
import base64
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from deploytar.config import Settings
from deploytar.di import build_container
from deploytar.errors import ForbiddenPathError
from deploytar.logging import redact_args
from deploytar_server.registry import build_tool_registry, dispatch_tool_call, list_tools_payload


@pytest.fixture
def registry(tmp_path: Path):
    return build_tool_registry(build_container(Settings(PATH_PREFIX=str(tmp_path))))


def test_tool_schemas(registry):
    tools = {t["name"]: t for t in list_tools_payload(registry)["tools"]}
    assert set(tools["upload_file"]["inputSchema"]["properties"]) == {"path", "filename", "data", "mode"}
    assert tools["list_directory"]["inputSchema"]["properties"]["directory"]["default"] == ""


def test_upload_defaults_to_replace(registry, tmp_path):
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "old.txt").write_text("old")
    data = base64.b64encode(b"hello").decode()

    out = dispatch_tool_call(registry, "upload_file", {"path": "app", "filename": "hello.txt", "data": data})
    assert out == {"message": "File uploaded successfully", "file_path": "/app/hello.txt", "kind": "file"}
    assert sorted(p.name for p in (tmp_path / "app").iterdir()) == ["hello.txt"]

    dispatch_tool_call(registry, "upload_file",
                       {"path": "app", "filename": "more.txt", "data": data, "mode": "merge"})
    assert sorted(p.name for p in (tmp_path / "app").iterdir()) == ["hello.txt", "more.txt"]


def test_dispatch_errors(registry):
    with pytest.raises(KeyError):
        dispatch_tool_call(registry, "fs_write", {})
    with pytest.raises(ValidationError):
        dispatch_tool_call(registry, "upload_file", {"path": "app", "filename": "a", "data": "x", "mode": "bad"})
    with pytest.raises(ForbiddenPathError):
        dispatch_tool_call(registry, "list_directory", {"directory": "../.."})


def test_tool_call_log_omits_payload(registry, caplog):
    data = base64.b64encode(b"secret-bytes").decode()
    with caplog.at_level(logging.INFO, logger="deploytar_server.registry"):
        dispatch_tool_call(registry, "upload_file", {"path": "app", "filename": "s.txt", "data": data})
    assert "tool_call upload_file" in caplog.text
    assert data not in caplog.text


def test_redact_args():
    safe = redact_args({"path": "app", "data": "QUJD", "chunk_data": b"\x00\x01"})
    assert safe == {"path": "app", "data": "<4 chars>", "chunk_data": "<2 bytes>"}
