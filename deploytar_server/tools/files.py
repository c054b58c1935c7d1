# deploytar_server/tools/files.py
from __future__ import annotations
from typing import Any, Callable, Dict, Literal, Optional
from pydantic import Base64Bytes, BaseModel, Field

from deploytar.services.listing import Listing
from deploytar.services.upload import UploadResult


class ListDirectoryIn(BaseModel):
    directory: str = Field("", description="Directory to list; '/' or empty for the root")


class UploadFileIn(BaseModel):
    path: str = Field(..., description="Destination directory (relative to, or absolute within, the prefix)")
    filename: str = Field(
        ..., description="Source file name; .tar.gz/.tgz, .tar and .gz are unpacked, anything else is copied"
    )
    data: Base64Bytes = Field(..., description="Base64-encoded file content")
    mode: Literal["merge", "replace"] = Field(
        "replace", description="'replace' recreates the destination first, 'merge' keeps existing files"
    )


def listing_to_dict(listing: Listing, link_for: Optional[Callable[[str], str]] = None) -> Dict[str, Any]:
    """
    Serialize a listing; `size` and `parent_link` are omitted when empty.
    `link_for` turns a virtual path into a transport-specific link.
    """
    link_for = link_for or (lambda p: p)
    entries = []
    for e in listing.entries:
        item: Dict[str, Any] = {"name": e.name, "type": e.type, "link": link_for(e.link)}
        if e.size:
            item["size"] = e.size
        entries.append(item)

    body: Dict[str, Any] = {"path": listing.path, "entries": entries}
    if listing.parent_link:
        body["parent_link"] = link_for(listing.parent_link)
    return body


def upload_result_to_dict(result: UploadResult) -> Dict[str, Any]:
    return {
        "message": "File uploaded successfully",
        "file_path": result.display_path,
        "kind": result.kind.value,
    }
