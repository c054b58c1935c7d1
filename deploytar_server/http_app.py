# deploytar_server/http_app.py
from __future__ import annotations

import html
from typing import Any, Dict, Optional
from urllib.parse import quote_plus

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from deploytar import errors
from deploytar.di import Container, build_container
from deploytar.errors import FileServiceError, InputInvalidError
from deploytar.services.listing import Listing
from deploytar.services.upload import UploadMode

from deploytar_server.registry import build_tool_registry, dispatch_tool_call, list_tools_payload
from deploytar_server.tools.files import listing_to_dict

PROTOCOL_VERSION = "2025-03-26"

HTTP_STATUS = {
    errors.INPUT_INVALID: 400,
    errors.INVALID_TYPE: 400,
    errors.BAD_FORMAT: 400,
    errors.FORBIDDEN: 403,
    errors.NOT_FOUND: 404,
    errors.INTERNAL: 500,
}

JSONRPC_CODE = {
    errors.INPUT_INVALID: -32602,
    errors.INVALID_TYPE: -32602,
    errors.BAD_FORMAT: -32602,
    errors.FORBIDDEN: -32003,
    errors.NOT_FOUND: -32004,
    errors.INTERNAL: -32603,
}


def list_link(virtual_path: str) -> str:
    if virtual_path == "/":
        return "/list?d=/"
    # prefix-relative, so the link resolves the same way whether or not a prefix is set
    return f"/list?d={quote_plus(virtual_path.lstrip('/'))}"


def render_listing_html(listing: Listing) -> str:
    title = html.escape(listing.path)
    rows = []
    if listing.parent_link:
        rows.append(f'<tr><td><a href="{html.escape(list_link(listing.parent_link))}">..</a></td><td></td><td></td></tr>')
    for e in listing.entries:
        name = html.escape(e.name) + ("/" if e.type == "directory" else "")
        href = html.escape(list_link(e.link))
        rows.append(f'<tr><td><a href="{href}">{name}</a></td><td>{e.type}</td><td>{html.escape(e.size)}</td></tr>')
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>Index of {title}</title></head><body>"
        f"<h1>Index of {title}</h1><table>"
        "<tr><th>Name</th><th>Type</th><th>Size</th></tr>"
        + "".join(rows)
        + "</table></body></html>"
    )


def _jsonrpc_error(id_: Any, code: int, message: str, data: Any | None = None) -> JSONResponse:
    body: Dict[str, Any] = {"jsonrpc": "2.0", "id": id_, "error": {"code": code, "message": message}}
    if data is not None:
        body["error"]["data"] = data
    return JSONResponse(body)


def _jsonrpc_result(id_: Any, result: Any) -> JSONResponse:
    return JSONResponse({"jsonrpc": "2.0", "id": id_, "result": result})


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Build the HTTP surface: upload (POST merge / PUT replace), listing,
    health check and the MCP JSON-RPC endpoint. All filesystem work lives
    in the services; handlers only translate.
    """
    container = container or build_container()
    settings = container.settings
    registry = build_tool_registry(container)

    app = FastAPI(title="deploytar", version="0.1.0")

    @app.exception_handler(FileServiceError)
    async def file_service_error_handler(request: Request, exc: FileServiceError):
        return JSONResponse(
            {"error": str(exc), "category": exc.category},
            status_code=HTTP_STATUS.get(exc.category, 500),
        )

    @app.get("/healthz", response_class=PlainTextResponse)
    def healthz() -> str:
        return "OK"

    # Sync handlers run in the threadpool: one worker thread per request
    @app.api_route("/", methods=["POST", "PUT"])
    def upload(request: Request, path: str = Form(""), file: Optional[UploadFile] = File(None)):
        if file is None:
            raise InputInvalidError("File not found in request")
        mode = UploadMode.REPLACE if request.method == "PUT" else UploadMode.MERGE
        result = container.upload_service.upload(file.file, path, file.filename, mode)
        return {"message": "File uploaded successfully", "path": result.display_path, "kind": result.kind.value}

    @app.get("/list")
    def list_directory(request: Request, d: str = ""):
        listing = container.listing_service.list(d)
        if "text/html" in request.headers.get("accept", ""):
            return HTMLResponse(render_listing_html(listing))
        return listing_to_dict(listing, link_for=list_link)

    if settings.MCP_HTTP_ENABLED:
        @app.post(settings.MCP_HTTP_PATH)
        async def mcp_endpoint(request: Request):
            try:
                payload = await request.json()
            except ValueError:
                return _jsonrpc_error(None, -32700, "Parse error")
            if not isinstance(payload, dict):
                return _jsonrpc_error(None, -32600, "Invalid Request")

            id_ = payload.get("id")
            method = payload.get("method")
            params = payload.get("params") or {}
            if not isinstance(params, dict):
                return _jsonrpc_error(id_, -32602, "Invalid params")

            if method == "initialize":
                return _jsonrpc_result(id_, {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {"tools": {"listChanged": True}},
                    "serverInfo": {"name": "deploytar-http", "version": "0.1.0"},
                })

            if method == "tools/list":
                return _jsonrpc_result(id_, list_tools_payload(registry))

            if method == "tools/call":
                name = params.get("name")
                args = params.get("arguments") or {}
                if not isinstance(args, dict):
                    return _jsonrpc_error(id_, -32602, "Invalid params", "arguments must be an object")
                try:
                    result = await run_in_threadpool(dispatch_tool_call, registry, name, args)
                except KeyError as ke:
                    return _jsonrpc_error(id_, -32601, str(ke))
                except ValidationError as ve:
                    return _jsonrpc_error(id_, -32602, "Invalid params", ve.errors(include_url=False, include_context=False))
                except FileServiceError as fe:
                    return _jsonrpc_error(id_, JSONRPC_CODE.get(fe.category, -32603), str(fe),
                                          {"category": fe.category})
                except Exception as e:
                    return _jsonrpc_error(id_, -32603, "Internal error", str(e))

                content_block = (
                    {"type": "json", "json": result}
                    if isinstance(result, (dict, list))
                    else {"type": "text", "text": str(result)}
                )
                return _jsonrpc_result(id_, {"content": [content_block], "isError": False})

            return _jsonrpc_error(id_, -32601, f"Method not found: {method}")

    return app


def main() -> None:
    import uvicorn
    from deploytar.config import Settings
    from deploytar.logging import configure_logging

    settings = Settings()
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "deploytar_server.http_app:create_app",
        factory=True,
        host=settings.HTTP_HOST,
        port=settings.HTTP_PORT,
        reload=False,
    )


if __name__ == "__main__":
    main()
