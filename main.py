#!/usr/bin/env python3
"""MCP Engine - stdio entry point.

Runs an MCP server over newline-delimited JSON-RPC on stdin/stdout. Logs go
to stderr so they never corrupt the protocol stream.

================================================================================
DEVELOPER GUIDE: Adding Components
================================================================================

Components can be registered in code or discovered from disk.

IN CODE
-------
Subclass Tool, Resource or Prompt from mcp_engine and register the instance:

    from mcp_engine import Tool

    class EchoTool(Tool):
        name = "echo"
        description = "Echo a message back"
        input_schema = {
            "type": "object",
            "properties": {"message": {"type": "string"}},
            "required": ["message"],
        }

        def execute(self, arguments):
            return arguments["message"]

    server.register_tool(EchoTool())

FROM DISK
---------
Enable discovery in config/server.yaml and create one directory per
component under a discovery path:

    components/echo/manifest.yaml    kind: tool, name: echo
    components/echo/handler.py       class Component(Tool): ...

================================================================================
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from mcp_engine import __version__
from mcp_engine.config import ConfigLoadError, ServerConfig, load_config
from mcp_engine.protocol.transport import StdioTransport
from mcp_engine.server import MCPServer

logger = logging.getLogger("mcp_engine")


def main() -> int:
    """Run the MCP server.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        description="MCP Engine stdio server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to server configuration YAML file (defaults apply when omitted)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging and exception details in INTERNAL_ERROR responses",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"mcp-engine {__version__}",
    )

    args = parser.parse_args()

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.debug else logging.INFO,
        format="[MCP] %(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config) if args.config else ServerConfig()
    except ConfigLoadError as e:
        logger.error("Error loading config: %s", e)
        return 1

    if args.debug:
        config = config.with_debug(True)

    server = MCPServer(config)
    session = server.open_session("stdio")

    transport = StdioTransport()
    logger.info("MCP Engine %s started (%s %s)", __version__, config.name, config.server_version)
    if args.config:
        logger.info("Config loaded from: %s", args.config)

    try:
        while True:
            message = transport.read_message()
            if message is None:
                logger.info("EOF received, shutting down")
                break

            response = session.handle_raw(message)
            if response is not None:
                transport.write_message(response)

    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 130

    except Exception:
        logger.exception("Fatal error in message loop")
        return 1

    finally:
        server.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
