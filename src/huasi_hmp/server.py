"""MCP server entry point for HUASI collector text commands.

Exposes the command encoder as tools, resources, and prompts via the
Model Context Protocol using the official Python MCP SDK with stdio
transport. The server only encodes: frames are handed back to the agent,
which is responsible for sending them.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import ServerConfig
from .errors import HmpError
from .protocol.commands import TxtCommandCreator, describe_commands
from .protocol.framing import build_frame
from .utils.checksum import checksum, checksum_hex

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "huasi-hmp",
    instructions="Encode text commands for HUASI array displacement-sensor collectors",
)

_config = ServerConfig.from_env()


def _get_creator(sncode: str | None = None) -> TxtCommandCreator:
    """Build an encoder for a serial number, defaulting to the configured one."""
    return TxtCommandCreator(sncode or _config.default_sncode)


# ─── ENCODING TOOLS ──────────────────────────────────────────────────

@mcp.tool()
def list_commands() -> list[dict[str, Any]]:
    """List every supported text command and the options it reads."""
    return describe_commands()


@mcp.tool()
def encode_command(
    command: str,
    options: dict[str, Any] | None = None,
    sncode: str | None = None,
) -> dict[str, Any]:
    """Encode a text command into a ready-to-send frame.

    Args:
        command: Command name, e.g. "GET_DATA" or "SET_MODE".
        options: Command options, e.g. {"calType": 0, "layType": 1}.
            History bounds (historyFrom, historyTo) are epoch milliseconds.
        sncode: Collector serial number; defaults to HUASI_SNCODE.
    """
    try:
        creator = _get_creator(sncode)
        body = creator.body(command, options)
        frame = build_frame(body)
    except HmpError as e:
        logger.debug("Rejected %s: %s", command, e)
        return {"error": str(e)}

    return {
        "command": command,
        "sncode": creator.sncode,
        "body": body,
        "ascii": frame.decode("ascii").replace("\r", "\\r").replace("\n", "\\n"),
        "hex": frame.hex(" "),
        "checksum": checksum_hex(checksum(body.encode("ascii"))),
    }


@mcp.tool()
def compute_checksum(body: str) -> dict[str, str]:
    """Compute the XOR checksum of a command body (without $, * or CR LF)."""
    try:
        raw = body.encode("ascii")
    except UnicodeEncodeError:
        return {"error": "Command body must be ASCII"}
    return {"body": body, "checksum": checksum_hex(checksum(raw))}


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("huasi://commands/catalog")
def command_catalog() -> str:
    """Supported commands as JSON."""
    return json.dumps(describe_commands(), indent=2)


@mcp.resource("huasi://device/serial")
def default_serial() -> str:
    """Serial number used when a tool call does not name one."""
    return _config.default_sncode


# ─── PROMPTS ─────────────────────────────────────────────────────────

@mcp.prompt()
def configure_collector(sncode: str) -> str:
    """Walk through configuring a freshly installed collector.

    Args:
        sncode: Serial number of the collector.
    """
    return f"""Prepare the command sequence to configure collector {sncode}.
Use the encode_command tool with sncode="{sncode}" for each step:
- UPDATE_TIME to sync the collector clock
- SET_MODE with calType (0 near end, 1 far end) and layType
  (0 horizontal, 1 vertical, 2 ring)
- SET_INTERVAL with the sampling interval in seconds
- SET_TWIST with nodesTwist as [[node, angle], ...] and initTwist
- SET_GLIMIT with the alarm threshold (clamped to 0.0001-1)
- SAVE to persist the configuration

Return the frames in order; they are sent by the caller."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=_config.logging_level)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
