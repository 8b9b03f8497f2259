from __future__ import annotations

import logging
import urllib.request
from dataclasses import dataclass
from http.client import HTTPException
from urllib.parse import quote

from PIL import UnidentifiedImageError

from .bitmap import PackedBitmap, encode
from .config import QrConfig
from .header import to_hex_string
from .imaging import grid_from_bytes

logger = logging.getLogger(__name__)


class QrFetchError(Exception):
    """Raised when the QR service can't be reached or returns an unusable image."""

    pass


def encode_uri_component(value: str) -> str:
    """Percent-encode like JavaScript's encodeURIComponent."""
    return quote(value, safe="-_.!~*'()")


@dataclass
class QrClient:
    """Renders QR codes through an HTTP QR service and packs them for the OLED.

    The service returns a PNG for `GET {api_url}?size={S}x{S}&data={text}`.
    """

    api_url: str = QrConfig.api_url
    size: int = QrConfig.size
    threshold: int = QrConfig.threshold
    timeout: float = QrConfig.timeout

    @classmethod
    def from_config(cls, cfg: QrConfig) -> "QrClient":
        return cls(
            api_url=cfg.api_url,
            size=cfg.size,
            threshold=cfg.threshold,
            timeout=cfg.timeout,
        )

    def build_url(self, data: str) -> str:
        return f"{self.api_url}?size={self.size}x{self.size}&data={encode_uri_component(data)}"

    def fetch_png(self, data: str) -> bytes:
        """Download the QR image for `data`.

        Raises:
            QrFetchError: On network or HTTP errors
        """
        url = self.build_url(data)
        logger.debug("Fetching QR image from %s", url)
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp:
                return resp.read()
        except (OSError, HTTPException) as e:
            # URLError, HTTPError and socket timeouts are all OSError
            raise QrFetchError(f"QR service request failed: {e}") from e

    def render(self, data: str) -> PackedBitmap:
        """Fetch, resize, threshold and pack the QR code for `data`."""
        png = self.fetch_png(data)
        try:
            grid = grid_from_bytes(png, self.size, self.threshold)
        except (UnidentifiedImageError, OSError) as e:
            raise QrFetchError(f"QR service returned an unreadable image: {e}") from e
        bitmap = encode(grid)
        logger.info(
            "Rendered QR code for %r: %dx%d, %d bytes",
            data,
            bitmap.width,
            bitmap.height,
            len(bitmap.data),
        )
        return bitmap

    def render_hex_string(self, data: str) -> str:
        return to_hex_string(self.render(data))
