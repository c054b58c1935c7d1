# deploytar_server/registry.py
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Type
from pydantic import BaseModel
from fastmcp.exceptions import ToolError

from deploytar.di import Container
from deploytar.errors import FileServiceError
from deploytar.logging import log_tool_call
from deploytar.services.upload import UploadMode

from deploytar_server.tools.files import (
    ListDirectoryIn,
    UploadFileIn,
    listing_to_dict,
    upload_result_to_dict,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: Type[BaseModel]
    handler: Callable[[BaseModel], Any]


class ToolHandlers:
    """
    Named handlers for each tool (no lambdas).
    Services do the validation; handlers only adapt inputs and outputs.
    """
    def __init__(self, container: Container):
        self.container = container

    def list_directory(self, args: ListDirectoryIn) -> dict:
        listing = self.container.listing_service.list(args.directory)
        return listing_to_dict(listing)

    def upload_file(self, args: UploadFileIn) -> dict:
        result = self.container.upload_service.upload(
            io.BytesIO(args.data), args.path, args.filename, UploadMode.parse(args.mode)
        )
        return upload_result_to_dict(result)


def _schema_from_model(model: Type[BaseModel]) -> Dict[str, Any]:
    return model.model_json_schema()


def build_tool_registry(container: Container) -> Dict[str, ToolSpec]:
    """
    Build a registry once at startup.
    Transport layers (stdio/HTTP) read from this registry to expose tools.
    """
    handlers = ToolHandlers(container)

    return {
        "list_directory": ToolSpec(
            name="list_directory",
            description="List the immediate children of a directory under the configured prefix",
            input_model=ListDirectoryIn,
            handler=handlers.list_directory,
        ),
        "upload_file": ToolSpec(
            name="upload_file",
            description="Upload a file or tar/tar.gz/gz archive and unpack it under the configured prefix",
            input_model=UploadFileIn,
            handler=handlers.upload_file,
        ),
    }


def list_tools_payload(registry: Dict[str, ToolSpec]) -> Dict[str, Any]:
    """
    Produce the `tools/list` payload body as per MCP Tools spec.
    """
    tools = []
    for spec in registry.values():
        tools.append({
            "name": spec.name,
            "description": spec.description,
            "inputSchema": _schema_from_model(spec.input_model),
        })
    return {"tools": tools}


def dispatch_tool_call(registry: Dict[str, ToolSpec], name: str, arguments: Dict[str, Any]) -> Any:
    """
    Validate args with the tool's Pydantic model, then invoke the named handler.
    """
    if name not in registry:
        raise KeyError(f"Tool not found: {name}")
    spec = registry[name]
    log_tool_call(logger, name, arguments)
    args_obj = spec.input_model(**arguments)
    return spec.handler(args_obj)


def register_into_fastmcp(mcp, registry: Dict[str, ToolSpec]) -> None:
    """
    Register all registry tools into a FastMCP stdio host.
    This keeps stdio and HTTP transports in sync without duplication.
    """
    for spec in registry.values():
        # Create a local closure so each handler binds to its spec
        def make_tool(spec: ToolSpec):
            def tool_handler(input_obj: spec.input_model):
                try:
                    return spec.handler(input_obj)
                except FileServiceError as e:
                    raise ToolError(f"{e.category}: {e}") from e
            # postponed annotations would leave a string FastMCP cannot resolve
            tool_handler.__annotations__["input_obj"] = spec.input_model
            return tool_handler

        mcp.tool(name=spec.name, description=spec.description)(make_tool(spec))
