from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .validation import validate_header_options

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SerialConfig:
    port: str = "/dev/tty.usbserial-0001"
    baudrate: int = 115200
    timeout: float = 1.0
    mock: bool = True

    def __post_init__(self) -> None:
        if self.baudrate <= 0:
            raise ValueError("Serial baudrate must be > 0")
        if self.timeout <= 0:
            raise ValueError("Serial timeout must be > 0")


@dataclass(frozen=True)
class PortalConfig:
    host: str = "0.0.0.0"
    port: int = 3000

    def __post_init__(self) -> None:
        if not (0 < self.port <= 0xFFFF):
            raise ValueError(f"Portal port must be 1-65535, got {self.port}")


@dataclass(frozen=True)
class QrConfig:
    api_url: str = "https://api.qrserver.com/v1/create-qr-code/"
    size: int = 128
    threshold: int = 128
    timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError(f"QR size must be > 0, got {self.size}")
        if not (0 <= self.threshold <= 255):
            raise ValueError(f"QR threshold must be 0-255, got {self.threshold}")
        if self.timeout <= 0:
            raise ValueError("QR timeout must be > 0")


@dataclass(frozen=True)
class HeaderConfig:
    var_name: str = "qr_bitmap"
    wrap: int = 12
    out_file: str = "qr_bitmap.h"

    def __post_init__(self) -> None:
        validate_header_options(self.var_name, self.wrap)


@dataclass(frozen=True)
class GochiConfig:
    serial: SerialConfig = field(default_factory=SerialConfig)
    portal: PortalConfig = field(default_factory=PortalConfig)
    qr: QrConfig = field(default_factory=QrConfig)
    header: HeaderConfig = field(default_factory=HeaderConfig)


def load_from_toml(config_path: str | Path) -> GochiConfig:
    """
    Load a GochiConfig from a TOML file. Missing sections and keys fall back to
    their defaults.

    Expected TOML structure:

    [serial]
    port = "/dev/tty.usbserial-0001"
    baudrate = 115200
    timeout = 1.0
    mock = false

    [portal]
    host = "0.0.0.0"
    port = 3000

    [qr]
    api_url = "https://api.qrserver.com/v1/create-qr-code/"
    size = 128
    threshold = 128
    timeout = 10.0

    [header]
    var_name = "qr_bitmap"
    wrap = 12
    out_file = "qr_bitmap.h"
    """
    p = Path(config_path)
    if not p.exists():
        raise FileNotFoundError(f"Configuration file not found: {p}")

    with p.open("rb") as f:
        data = tomllib.load(f)

    serial = data.get("serial") or {}
    portal = data.get("portal") or {}
    qr = data.get("qr") or {}
    header = data.get("header") or {}

    cfg = GochiConfig(
        serial=SerialConfig(
            port=str(serial.get("port", SerialConfig.port)),
            baudrate=int(serial.get("baudrate", SerialConfig.baudrate)),
            timeout=float(serial.get("timeout", SerialConfig.timeout)),
            mock=bool(serial.get("mock", SerialConfig.mock)),
        ),
        portal=PortalConfig(
            host=str(portal.get("host", PortalConfig.host)),
            port=int(portal.get("port", PortalConfig.port)),
        ),
        qr=QrConfig(
            api_url=str(qr.get("api_url", QrConfig.api_url)),
            size=int(qr.get("size", QrConfig.size)),
            threshold=int(qr.get("threshold", QrConfig.threshold)),
            timeout=float(qr.get("timeout", QrConfig.timeout)),
        ),
        header=HeaderConfig(
            var_name=str(header.get("var_name", HeaderConfig.var_name)),
            wrap=int(header.get("wrap", HeaderConfig.wrap)),
            out_file=str(header.get("out_file", HeaderConfig.out_file)),
        ),
    )

    logger.info(
        "Loaded GochiConfig: serial=%s@%d (mock=%s), portal=%s:%d, qr size=%d",
        cfg.serial.port,
        cfg.serial.baudrate,
        cfg.serial.mock,
        cfg.portal.host,
        cfg.portal.port,
        cfg.qr.size,
    )
    return cfg


def default_config() -> GochiConfig:
    """Mock serial, portal on port 3000, 128x128 QR codes."""
    return GochiConfig()
