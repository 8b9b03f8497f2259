"""
Hardware Portal - serial link to the device exposed over HTTP and WebSocket

This module contains:
- Portal: composition root owning the serial port, QR client and the relay task
- ConnectionManager: tracks WebSocket clients for broadcasting device lines
- create_app: FastAPI application factory with REST and WebSocket endpoints

Relay directions:
- device -> serial line -> every connected WebSocket client (text message)
- WebSocket client message (text, or UTF-8 decoded bytes) -> serial line -> device
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    HTTPException,
    Query,
    Request,
    WebSocket,
)
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from .config import GochiConfig, default_config, load_from_toml
from .header import to_c_header, to_hex_string
from .qr import QrClient, QrFetchError
from .serial_port import SerialConnectionError, SerialPort, create_serial_port
from .validation import HeaderFormatError

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections receiving device lines."""

    def __init__(self):
        self.active_connections: list[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        """Accept new WebSocket connection."""
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(
            f"WebSocket client connected. Active connections: {len(self.active_connections)}"
        )

    def disconnect(self, websocket: WebSocket):
        """Remove WebSocket connection."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        logger.info(
            f"WebSocket client disconnected. Active connections: {len(self.active_connections)}"
        )

    async def broadcast_text(self, message: str):
        """Broadcast a text message to all connected clients."""
        disconnected = []

        for connection in list(self.active_connections):
            try:
                await connection.send_text(message)
            except Exception as e:
                logger.error(f"Error broadcasting to WebSocket client: {e}")
                disconnected.append(connection)

        # Remove disconnected clients
        for connection in disconnected:
            self.disconnect(connection)


class Portal:
    """
    Owns the serial link and relays it to WebSocket clients.

    The serial port is passed in (or built from config) and lives on this
    instance, so several portals can coexist in one process.
    """

    def __init__(
        self,
        config: Optional[GochiConfig] = None,
        serial_port: Optional[SerialPort] = None,
        qr_client: Optional[QrClient] = None,
    ):
        self.config = config or default_config()
        self.serial_port = serial_port or create_serial_port(self.config.serial)
        self.qr_client = qr_client or QrClient.from_config(self.config.qr)
        self.connection_manager = ConnectionManager()

        self._relay_task: Optional[asyncio.Task] = None
        self._running = False

    async def startup(self) -> None:
        logger.info("Opening hardware portal...")
        try:
            await self.serial_port.connect()
        except SerialConnectionError as e:
            # Portal still serves HTTP; /send reports 503 for the rest of the run
            logger.error(f"Failed to open serial link: {e}")
            return

        self._running = True
        self._relay_task = asyncio.create_task(self._relay_loop())
        logger.info(
            f"Portal open: serial {self.config.serial.port}@{self.config.serial.baudrate}"
        )

    async def shutdown(self) -> None:
        logger.info("Closing hardware portal...")
        self._running = False
        if self._relay_task and not self._relay_task.done():
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass  # Expected when cancelling
        self._relay_task = None

        if self.serial_port.is_connected():
            try:
                await self.serial_port.disconnect()
            except SerialConnectionError as e:
                logger.error(f"Error closing serial link: {e}")

    async def relay_line(self) -> Optional[str]:
        """Read one device line and broadcast it; None if nothing arrived."""
        line = await self.serial_port.read_line()
        if line is None:
            return None
        logger.info(f"Serial received: {line}")
        await self.connection_manager.broadcast_text(line)
        return line

    async def _relay_loop(self) -> None:
        while self._running:
            try:
                await self.relay_line()
            except SerialConnectionError as e:
                logger.error(f"Serial relay error: {e}")
                await asyncio.sleep(1.0)

    async def send(self, data: str) -> None:
        """
        Send a line to the device.

        Raises:
            SerialConnectionError: If the serial link is down or the write fails
        """
        if not self.serial_port.is_connected():
            raise SerialConnectionError("Serial port not connected")
        logger.info(f"Sending to serial: {data}")
        await self.serial_port.write_line(data)


# API Router for REST endpoints
router = APIRouter()


def get_portal(request: Request) -> Portal:
    portal = getattr(request.app.state, "portal", None)
    if portal is None:
        raise HTTPException(status_code=503, detail="Portal not ready")
    return portal


class SendRequest(BaseModel):
    data: str


class QrRequest(BaseModel):
    url: str


class QrResponse(BaseModel):
    width: int
    height: int
    byte_count: int
    sent: bool


@router.get("/health")
async def health_check(portal: Portal = Depends(get_portal)):
    return {
        "status": "healthy",
        "serial_connected": portal.serial_port.is_connected(),
        "clients": len(portal.connection_manager.active_connections),
        "timestamp": time.time(),
    }


@router.post("/send")
async def send_line(body: SendRequest, portal: Portal = Depends(get_portal)):
    try:
        await portal.send(body.data)
    except SerialConnectionError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"success": True}


@router.post("/qr", response_model=QrResponse)
async def send_qr(body: QrRequest, portal: Portal = Depends(get_portal)):
    """Render a QR code for `url` and push its hex string to the device."""
    try:
        bitmap = await asyncio.to_thread(portal.qr_client.render, body.url)
    except QrFetchError as e:
        logger.error(f"Error generating QR code: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    sent = False
    try:
        await portal.send(to_hex_string(bitmap))
        sent = True
    except SerialConnectionError as e:
        logger.warning(f"QR code rendered but not sent: {e}")

    return QrResponse(
        width=bitmap.width, height=bitmap.height, byte_count=len(bitmap.data), sent=sent
    )


@router.get("/qr/header", response_class=PlainTextResponse)
async def qr_header(
    url: str = Query(...),
    var_name: Optional[str] = Query(None),
    portal: Portal = Depends(get_portal),
):
    header_cfg = portal.config.header
    try:
        bitmap = await asyncio.to_thread(portal.qr_client.render, url)
    except QrFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    try:
        text = to_c_header(bitmap, var_name or header_cfg.var_name, header_cfg.wrap)
    except HeaderFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PlainTextResponse(text)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    portal: Portal = websocket.app.state.portal
    manager = portal.connection_manager
    await manager.connect(websocket)
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            if frame.get("text") is not None:
                message = frame["text"]
            elif frame.get("bytes") is not None:
                message = frame["bytes"].decode("utf-8", errors="replace")
            else:
                continue
            logger.info(f"WS to Serial: {message}")
            try:
                await portal.send(message)
            except SerialConnectionError as e:
                logger.error(f"Dropping WebSocket message: {e}")
    finally:
        manager.disconnect(websocket)


def create_app(
    config_path: Optional[Path] = None,
    *,
    config: Optional[GochiConfig] = None,
    serial_port: Optional[SerialPort] = None,
    qr_client: Optional[QrClient] = None,
) -> FastAPI:
    """Create the portal FastAPI application.

    `config` wins over `config_path`; with neither, defaults are used.
    """
    if config is None:
        config = load_from_toml(config_path) if config_path else default_config()
    portal = Portal(config, serial_port=serial_port, qr_client=qr_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await portal.startup()
            yield
        finally:
            await portal.shutdown()

    app = FastAPI(
        title="Planta-gochi Hardware Portal",
        description="Serial relay and QR bitmap API for the plant device",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.portal = portal
    app.include_router(router)
    return app
