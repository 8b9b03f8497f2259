#!/usr/bin/env python3
"""
Planta-gochi - command line entry point

Subcommands:
- header: render a QR code and write it as a C header for the firmware
- hex:    render a QR code and print the compact hex string sent over serial
- serve:  run the hardware portal (serial relay + HTTP/WebSocket API)
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from .config import GochiConfig, default_config, load_from_toml
from .header import write_header
from .imaging import bitmap_to_image
from .portal import create_app
from .qr import QrClient, QrFetchError

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _load_config(path: Optional[str]) -> GochiConfig:
    return load_from_toml(path) if path else default_config()


def cmd_header(args: argparse.Namespace) -> int:
    cfg = _load_config(args.config)
    client = QrClient.from_config(cfg.qr)
    bitmap = client.render(args.data)
    out = write_header(
        args.out or cfg.header.out_file,
        bitmap,
        var_name=args.var_name or cfg.header.var_name,
        wrap=cfg.header.wrap if args.wrap is None else args.wrap,
    )
    if args.preview:
        bitmap_to_image(bitmap, scale=args.preview_scale).save(args.preview)
        logger.info(f"Saved preview to {args.preview}")
    print(f"QR code converted and saved to {out}")
    return 0


def cmd_hex(args: argparse.Namespace) -> int:
    cfg = _load_config(args.config)
    client = QrClient.from_config(cfg.qr)
    print(client.render_hex_string(args.data))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    cfg = _load_config(args.config)
    app = create_app(config=cfg)
    host = args.host or cfg.portal.host
    port = cfg.portal.port if args.port is None else args.port
    logger.info(f"Starting portal on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gochi", description="Planta-gochi QR bitmap tools and hardware portal"
    )
    parser.add_argument("--config", help="Path to configuration file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_header = sub.add_parser("header", help="Write a QR code as a C header")
    p_header.add_argument("data", help="Text or URL to encode")
    p_header.add_argument("--out", help="Output header path")
    p_header.add_argument("--var-name", help="C variable name")
    p_header.add_argument("--wrap", type=int, help="Hex values per line")
    p_header.add_argument("--preview", help="Also save a PNG preview to this path")
    p_header.add_argument("--preview-scale", type=int, default=4)
    p_header.set_defaults(func=cmd_header)

    p_hex = sub.add_parser("hex", help="Print a QR code as a hex string")
    p_hex.add_argument("data", help="Text or URL to encode")
    p_hex.set_defaults(func=cmd_hex)

    p_serve = sub.add_parser("serve", help="Run the hardware portal")
    p_serve.add_argument("--host", help="Host to bind to")
    p_serve.add_argument("--port", type=int, help="Port to bind to")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except QrFetchError as e:
        logger.error(f"QR generation failed: {e}")
        return 1
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Error: {e}")
        return 2
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
