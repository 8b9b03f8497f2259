"""
Planta-gochi host package.

This package provides:
- 1-bit packed bitmap encoding for the device's monochrome OLED
- C header and compact hex-string emitters for the packed bitmaps
- QR code rendering through an HTTP QR service
- The hardware portal relaying the serial link to HTTP/WebSocket clients
"""

__version__ = "0.1.0"
