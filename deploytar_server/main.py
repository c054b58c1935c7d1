# deploytar_server/main.py
from fastmcp import FastMCP
from deploytar.di import build_container
from deploytar.logging import configure_logging
from deploytar_server.registry import build_tool_registry, register_into_fastmcp

def create_app() -> FastMCP:
    """
    Build DI container, create FastMCP host, and register tools.
    Keep the server (protocol) separate from tool/service logic.
    """
    container = build_container()
    configure_logging(container.settings.LOG_LEVEL)

    mcp = FastMCP("deploytar", version="0.1.0")
    register_into_fastmcp(mcp, build_tool_registry(container))
    return mcp


def main() -> None:
    app = create_app()
    # stdio transport: the client launches this process and speaks JSON-RPC on stdin/stdout;
    # logging goes to stderr
    app.run(transport="stdio")


if __name__ == "__main__":
    main()
