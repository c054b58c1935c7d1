# deploytar/logging.py
import logging
import os
from typing import Any, Dict, Optional

# Argument names whose values are raw payload and never logged verbatim
BINARY_FIELDS = {"data", "chunk_data", "content"}


def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def redact_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, str):
        return f"<{len(value)} chars>"
    return "<redacted>"


def redact_args(args: Dict[str, Any]) -> Dict[str, Any]:
    safe = dict(args)
    for k, v in list(safe.items()):
        if k in BINARY_FIELDS and v is not None:
            safe[k] = redact_value(v)
    return safe


def log_tool_call(logger: logging.Logger, name: str, args: Dict[str, Any]):
    logger.info("tool_call %s %s", name, redact_args(args))
