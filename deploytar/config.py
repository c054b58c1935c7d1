# deploytar/config.py
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Filesystem boundary; empty, "." or "/" means no restriction (working directory)
    PATH_PREFIX: str = ""

    # HTTP transport
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 8080

    # MCP JSON-RPC over HTTP (mounted on the same app)
    MCP_HTTP_ENABLED: bool = True
    MCP_HTTP_PATH: str = "/mcp"

    # Streaming copy buffer for extraction and plain uploads
    COPY_BUFFER_SIZE: int = 1024 * 1024

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
