"""
Serial monitor tools.

The transport's data events are buffered in a fixed-size ring so
read_serial can return recent output without touching the port.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from ..domain.exceptions import CollaboratorError, ToolEnvironmentError, ToolValidationError
from .definitions import DEFAULT_BAUD_RATE, DEFAULT_READ_LINES, STANDARD_BAUD_RATES, ToolName
from .environment import ToolEnvironment

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ToolValidationError(f"{name} must be a number, got {value!r}")


class SerialTools:
    """Handlers for the serial and baud rate tools.

    Subscribes to the transport's data event exactly once, on creation.
    """

    def __init__(self, env: ToolEnvironment):
        self.env = env
        if env.transport is not None:
            env.transport.on_data(self.on_serial_data)

    def handlers(self) -> dict[ToolName, ToolHandler]:
        return {
            ToolName.CONNECT_SERIAL: self.connect_serial,
            ToolName.DISCONNECT_SERIAL: self.disconnect_serial,
            ToolName.SEND_SERIAL: self.send_serial,
            ToolName.READ_SERIAL: self.read_serial,
            ToolName.AUTO_DETECT_BAUD: self.auto_detect_baud,
            ToolName.GET_BAUD_RATE: self.get_baud_rate,
            ToolName.SET_BAUD_RATE: self.set_baud_rate,
            ToolName.GET_AVAILABLE_BAUD_RATES: self.get_available_baud_rates,
        }

    def on_serial_data(self, chunk: Any) -> None:
        """Buffer one data event from the transport."""
        baud_rate = None
        timestamp = None
        if isinstance(chunk, dict):
            baud_rate = chunk.get("baudRate")
            timestamp = chunk.get("timestamp")
            chunk = chunk.get("data", "")
        if isinstance(chunk, bytes):
            chunk = chunk.decode("utf-8", errors="replace")

        self.env.serial_buffer.append({
            "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
            "data": str(chunk),
            "baudRate": baud_rate or self._transport_baud_rate(),
        })

    def _transport_baud_rate(self):
        transport = self.env.transport
        return transport.current_baud_rate if transport is not None else None

    async def connect_serial(self, arguments: dict[str, Any]) -> dict[str, Any]:
        port = arguments["port"]
        baud_rate = _as_int(arguments.get("baudRate", DEFAULT_BAUD_RATE), "baudRate")
        transport = self.env.require_transport()

        try:
            await transport.connect(port, baud_rate)
        except Exception as e:
            raise CollaboratorError(
                f"Failed to connect to {port}: {e}",
                output=str(e) or None,
                cause=e,
                details={"tool": ToolName.CONNECT_SERIAL.value, "port": port},
            )

        logger.info(f"Serial connected to {port} at {baud_rate} baud")
        return {"port": port, "baudRate": baud_rate, "connected": True}

    async def disconnect_serial(self, arguments: dict[str, Any]) -> dict[str, Any]:
        transport = self.env.require_transport()
        try:
            await transport.disconnect()
        except Exception as e:
            raise CollaboratorError(
                f"Failed to disconnect serial port: {e}",
                output=str(e) or None,
                cause=e,
                details={"tool": ToolName.DISCONNECT_SERIAL.value},
            )
        return {"connected": False}

    async def send_serial(self, arguments: dict[str, Any]) -> dict[str, Any]:
        data = arguments["data"]
        transport = self.env.require_transport()
        if not transport.is_connected:
            raise ToolEnvironmentError(
                "Serial port is not connected. Connect to a port first (connect_serial)."
            )
        try:
            await transport.send(str(data))
        except Exception as e:
            raise CollaboratorError(
                f"Failed to send to serial port: {e}",
                output=str(e) or None,
                cause=e,
                details={"tool": ToolName.SEND_SERIAL.value},
            )
        return {"sent": data}

    async def read_serial(self, arguments: dict[str, Any]) -> dict[str, Any]:
        lines = _as_int(arguments.get("lines", DEFAULT_READ_LINES), "lines")
        buffer = self.env.serial_buffer
        return {
            "lines": buffer.tail(lines),
            "totalBuffered": len(buffer),
        }

    async def auto_detect_baud(self, arguments: dict[str, Any]) -> dict[str, Any]:
        port = arguments["port"]
        transport = self.env.require_transport()
        baud_rate = await transport.detect_baud_rate(port)
        if not baud_rate:
            raise CollaboratorError(f"Could not detect baud rate on {port}")
        return {"port": port, "baudRate": baud_rate}

    async def get_baud_rate(self, arguments: dict[str, Any]) -> dict[str, Any]:
        baud_rate = self.env.snapshot().baud_rate or self._transport_baud_rate()
        if baud_rate is None:
            return {"baudRate": None, "message": "No baud rate information available"}
        return {"baudRate": baud_rate}

    async def set_baud_rate(self, arguments: dict[str, Any]) -> dict[str, Any]:
        baud_rate = _as_int(arguments["baudRate"], "baudRate")
        if baud_rate not in STANDARD_BAUD_RATES:
            raise ToolValidationError(
                f"Invalid baud rate: {baud_rate}. Available rates: "
                + ", ".join(str(rate) for rate in STANDARD_BAUD_RATES),
                tool=ToolName.SET_BAUD_RATE.value,
            )

        editor = self.env.require_editor()
        try:
            await editor.set_baud_rate(baud_rate)
        except NotImplementedError as e:
            raise ToolEnvironmentError(
                "Unable to set baud rate: the IDE does not expose a baud rate selector."
            ) from e

        return {"baudRate": baud_rate}

    async def get_available_baud_rates(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return {"baudRates": list(STANDARD_BAUD_RATES)}
