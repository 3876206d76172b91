"""MCP server entry point for the battle-car base station.

Exposes the station as tools, resources, and prompts via the Model
Context Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import StationConfig
from .protocol.commands import (
    ARGUMENT_CODES,
    BROADCAST,
    Color,
    Command,
    Opcode,
    build_beep,
    build_fire_mode,
    build_set_rgb,
    resolve_argument,
)
from .station import BaseStation
from .transport.serial_link import list_links

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "battlecar-station",
    instructions="Base station for the two-team infrared battle-car game",
)


class ScoreboardState:
    """Game-state listener that keeps the latest health and status text."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.hp: dict[int, int] = {}
        self.status = ""
        self.history: list[str] = []

    def on_health_update(self, team: int, hp: int) -> None:
        with self._lock:
            self.hp[team] = hp

    def on_status(self, text: str) -> None:
        with self._lock:
            self.status = text
            self.history = (self.history + [text])[-20:]

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "hp": {str(team): hp for team, hp in sorted(self.hp.items())},
                "status": self.status,
                "recent": list(self.history),
            }


# Global station state
_station: BaseStation | None = None
_scoreboard = ScoreboardState()


def _get_station() -> BaseStation:
    """Get the running station, raising if not connected."""
    if _station is None:
        raise RuntimeError(
            "Station is not connected. Use the 'connect' tool first."
        )
    return _station


def _parse_team(team: str | int) -> int | None:
    """Accept 1, 2, "1", "2", or "all"."""
    if isinstance(team, str):
        if team.strip().lower() in ("all", "broadcast"):
            return BROADCAST
        try:
            team = int(team)
        except ValueError:
            return None
    if team in (1, 2, BROADCAST):
        return team
    return None


def _send(command: Command) -> dict[str, Any]:
    frame = _get_station().router.send_command(command)
    return {"sent": repr(command), "frame": frame.hex(" ")}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def list_serial_links() -> dict[str, Any]:
    """List serial ports on this host that could carry a radio dongle."""
    return {
        "links": [
            {"port": info.port, "description": info.description, "hwid": info.hwid}
            for info in list_links()
        ]
    }


@mcp.tool()
def connect(
    ports: list[str] | None = None,
    baudrate: int | None = None,
) -> dict[str, Any]:
    """Open the radio link(s) and start the match pipeline.

    With two ports, the first carries team 1 and the second team 2.
    With one port, every command goes to it.

    Args:
        ports: Serial port names, e.g. ["/dev/ttyUSB0", "/dev/ttyUSB1"].
               Defaults to the configured ports, then the first available.
        baudrate: Link speed (default 9600).
    """
    global _station
    if _station is not None:
        return {
            "connected": True,
            "message": "Already connected",
            "links": [getattr(t, "port", repr(t)) for t in _station.transports],
        }

    config = StationConfig.load()
    if baudrate is not None:
        config.update(baudrate=baudrate)

    station = BaseStation.open(ports, config=config)
    station.add_listener(_scoreboard)
    station.start()
    _station = station

    return {
        "connected": True,
        "links": [getattr(t, "port", repr(t)) for t in station.transports],
        "baudrate": config.baudrate,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Stop the pipeline and close all links."""
    global _station
    if _station is None:
        return {"disconnected": True}
    _station.close()
    _station = None
    return {"disconnected": True}


# ─── MATCH TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
def get_match_status() -> dict[str, Any]:
    """Current phase, health, light-sensor state, and pipeline statistics."""
    station = _get_station()
    result = station.engine.snapshot().to_dict()
    result["stats"] = station.stats()
    errors = station.errors()
    if errors:
        result["link_errors"] = errors
    return result


@mcp.tool()
def abort_match() -> dict[str, Any]:
    """End the current match: disable firing, LEDs off, return to idle."""
    station = _get_station()
    station.engine.abort_match()
    return {"aborted": True, "phase": station.engine.phase.value}


# ─── COMMAND TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def send_command(team: str, opcode: int, arg: int) -> dict[str, Any]:
    """Send a raw command frame.

    Args:
        team: "1", "2", or "all".
        opcode: 1=SET_RGB, 2=BEEP, 3=FIREMODE.
        arg: Argument byte (0-255).
    """
    target = _parse_team(team)
    if target is None:
        return {"error": f"Team must be 1, 2, or 'all', got {team!r}"}
    try:
        op = Opcode(opcode)
    except ValueError:
        return {"error": f"Unknown opcode {opcode}. Valid: {[int(o) for o in Opcode]}"}
    if not 0 <= arg <= 255:
        return {"error": "Argument must be 0-255"}
    return _send(Command(team=target, opcode=op, arg=arg))


@mcp.tool()
def set_color(team: str, color: str) -> dict[str, Any]:
    """Set a car's LED color.

    Args:
        team: "1", "2", "all", or "each". "each" sends one frame per
              team instead of a broadcast.
        color: off, green, yellow, or red.
    """
    try:
        code = resolve_argument(Opcode.SET_RGB, color)
    except ValueError as e:
        return {"error": str(e)}

    if str(team).strip().lower() == "each":
        _get_station().router.set_rgb_all(code)
        return {"sent": f"SET_RGB {Color(code).name} to each team"}

    target = _parse_team(team)
    if target is None:
        return {"error": f"Team must be 1, 2, 'all', or 'each', got {team!r}"}
    return _send(build_set_rgb(target, code))


@mcp.tool()
def play_beep(team: str, pattern: str) -> dict[str, Any]:
    """Play a buzzer pattern on a car.

    Args:
        team: "1", "2", or "all".
        pattern: hit, defeat, or start.
    """
    target = _parse_team(team)
    if target is None:
        return {"error": f"Team must be 1, 2, or 'all', got {team!r}"}
    try:
        code = resolve_argument(Opcode.BEEP, pattern)
    except ValueError as e:
        return {"error": str(e)}
    return _send(build_beep(target, code))


@mcp.tool()
def set_fire_mode(team: str, mode: str) -> dict[str, Any]:
    """Enable or disable a car's IR gun.

    Args:
        team: "1", "2", or "all".
        mode: disabled, semi, or auto.
    """
    target = _parse_team(team)
    if target is None:
        return {"error": f"Team must be 1, 2, or 'all', got {team!r}"}
    try:
        code = resolve_argument(Opcode.FIREMODE, mode)
    except ValueError as e:
        return {"error": str(e)}
    return _send(build_fire_mode(target, code))


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("battlecar://station/status")
def resource_station_status() -> str:
    """Connection state, links, and pipeline statistics."""
    if _station is None:
        return json.dumps({"connected": False})
    return json.dumps({
        "connected": True,
        "running": _station.is_running,
        "links": [getattr(t, "port", repr(t)) for t in _station.transports],
        "stats": _station.stats(),
        "link_errors": _station.errors(),
    })


@mcp.resource("battlecar://match/state")
def resource_match_state() -> str:
    """Latest scoreboard view: health per team and status text."""
    return json.dumps(_scoreboard.to_dict())


@mcp.resource("battlecar://protocol/reference")
def resource_protocol_reference() -> str:
    """Wire format of inbound packets and outbound commands."""
    return json.dumps({
        "frame": "[byte0, byte1, byte2, (byte0+byte1+byte2) mod 256]",
        "inbound": {
            "byte0": "team (1 or 2)",
            "byte1": "flags: bit0 IR hit, bit1 light edge, bit2 light bright",
            "byte2": "sensor value",
        },
        "outbound": {
            "byte0": "team (1, 2, or 255 for all)",
            "byte1": {op.name: int(op) for op in Opcode},
            "byte2": {
                op.name: {code.name: int(code) for code in codes}
                for op, codes in ARGUMENT_CODES.items()
            },
        },
    })


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def referee_briefing() -> str:
    """Walk the operator through running a match."""
    return """You are refereeing an infrared battle-car match between team 1 and team 2.

1. Use connect to open the radio links (one port per team, or one shared port).
2. Ask both drivers to cover their light sensors. get_match_status should show phase "armed".
3. Both drivers uncover their sensors at the same time to start. Firing is enabled
   after the start light sequence.
4. A hit counts when a car's IR receiver is lit for 2 seconds. Each hit costs 10 health.
5. The match ends when a car reaches 0 health; firing is disabled automatically.

Use abort_match to stop a match early and set_fire_mode with "disabled" if anything
looks unsafe."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    try:
        mcp.run(transport="stdio")
    finally:
        if _station is not None:
            _station.close()


if __name__ == "__main__":
    main()
