"""
Evidence Capture - encode a frame as JPEG, upload it, fall back to a data URL
"""

import base64
import io
import logging
from datetime import datetime
from typing import Optional, Sequence

import httpx
import numpy as np
from PIL import Image, ImageDraw

from ..schemas.cheating_log import Evidence
from ..utils.timezone import utc_now, format_display_time
from .drift import BoundingBox
from .signals import Detection, ViolationEvent

logger = logging.getLogger(__name__)

EVIDENCE_RED = (255, 49, 49)
FACE_GREEN = (49, 162, 76)
# object classes outlined on camera evidence
OUTLINED_CLASSES = {"cell phone", "book", "laptop", "person"}


def encode_jpeg(image: Image.Image, quality: int = 90) -> bytes:
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def to_data_url(jpeg: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("ascii")


def annotate_frame(
    frame: np.ndarray,
    event: ViolationEvent,
    objects: Sequence[Detection] = (),
    face: Optional[BoundingBox] = None,
) -> Image.Image:
    """Camera evidence: the frame with the violation name and relevant boxes drawn on it"""
    image = Image.fromarray(frame).convert("RGB")
    draw = ImageDraw.Draw(image)
    draw.text((16, 12), f"Evidence: {event.type.value}", fill=EVIDENCE_RED)

    for detection in objects:
        if detection.label not in OUTLINED_CLASSES:
            continue
        box = detection.box
        draw.rectangle([box.x, box.y, box.x + box.width, box.y + box.height], outline=EVIDENCE_RED, width=2)
        draw.text((box.x + 4, box.y + 4), detection.label, fill=EVIDENCE_RED)

    if face is not None:
        draw.rectangle([face.x, face.y, face.x + face.width, face.y + face.height], outline=FACE_GREEN, width=2)
        draw.text((face.x + 4, face.y + 4), "face", fill=FACE_GREEN)
    return image


def browser_violation_card(event: ViolationEvent, username: str, when: Optional[datetime] = None,
                           size=(800, 200)) -> Image.Image:
    """Browser evidence has no camera frame, a text card stands in for it"""
    image = Image.new("RGB", size, (255, 255, 255))
    draw = ImageDraw.Draw(image)
    when = when or utc_now()
    draw.text((20, 30), f"VIOLATION DETECTED: {event.type.value.upper()}", fill=(255, 0, 0))
    draw.text((20, 60), f"Time: {format_display_time(when)}", fill=(255, 0, 0))
    draw.text((20, 90), f"Student: {username or 'Unknown'}", fill=(255, 0, 0))
    return image


class EvidenceCapture:
    """
    Uploads evidence images.

    The upload endpoint answers with ``{"cdnUrl": ...}`` or ``{"url": ...}``.
    Without an upload URL, or when the upload fails, the image is embedded as
    a ``data:`` URI so the violation still carries its evidence.
    """

    def __init__(self, client: httpx.AsyncClient, upload_url: Optional[str] = None, jpeg_quality: int = 90):
        self.client = client
        self.upload_url = upload_url
        self.jpeg_quality = jpeg_quality

    async def capture(self, event: ViolationEvent, image: Image.Image) -> Evidence:
        jpeg = encode_jpeg(image, self.jpeg_quality)
        detected_at = utc_now()

        url = None
        if self.upload_url:
            url = await self._upload(jpeg, f"cheating_{event.type.value}_{int(event.at_ms)}.jpg")
        if url is None:
            url = to_data_url(jpeg)

        evidence = Evidence(url=url, type=event.type.value, detectedAt=detected_at, confidence=event.confidence)
        event.evidence_ref = url
        return evidence

    async def _upload(self, jpeg: bytes, filename: str) -> Optional[str]:
        try:
            response = await self.client.post(
                self.upload_url,
                files={"file": (filename, jpeg, "image/jpeg")},
            )
            response.raise_for_status()
            body = response.json()
            url = body.get("cdnUrl") or body.get("url")
            if not url:
                raise ValueError("upload response has no url")
            return url
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Upload failed, falling back to embedded data URL: {e}")
            return None
