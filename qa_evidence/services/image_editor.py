"""
QA Evidence Hub
Image Edit Engine - linear undo history over rectangular crop / box annotation.

One engine instance edits one image. Every committed edit appends a new PNG
blob to the history (dropping any redo tail first), so each earlier state is
still reachable with ``undo()``.

Usage:
    engine = ImageEditEngine(drag_threshold=5)
    engine.load(raw_bytes_or_data_url)
    start = engine.to_image_coords(Point(10, 10), display_size=(400, 300))
    engine.begin_interaction(Tool.ANNOTATE_BOX, start)
    engine.end_interaction(engine.to_image_coords(Point(90, 60), (400, 300)))
    engine.undo()
    blob = engine.save()

Drags where both axes moved less than ``drag_threshold`` pixels are clicks,
never edits.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from enum import Enum

from PIL import Image, ImageDraw, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_DRAG_THRESHOLD = 5
DEFAULT_ANNOTATION_COLOR = "#ef4444"
DEFAULT_ANNOTATION_STROKE = 4

_DATA_URL_PREFIX = "data:"


class Tool(str, Enum):
    CROP = "CROP"
    ANNOTATE_BOX = "ANNOTATE_BOX"


class ImageLoadError(ValueError):
    """Raised when the supplied blob is not a decodable raster image."""


class EngineClosedError(RuntimeError):
    """Raised when an engine is used before ``load`` or after ``cancel``."""


# ── Geometry ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """Rectangle in image-native pixels. ``w``/``h`` may be negative until normalized."""

    x: float
    y: float
    w: float
    h: float

    @classmethod
    def from_points(cls, start: Point, end: Point) -> "Rect":
        return cls(start.x, start.y, end.x - start.x, end.y - start.y)

    def normalized(self) -> "Rect":
        """Canonical form with ``w, h >= 0`` regardless of drag direction."""
        x, w = (self.x + self.w, -self.w) if self.w < 0 else (self.x, self.w)
        y, h = (self.y + self.h, -self.h) if self.h < 0 else (self.y, self.h)
        return Rect(x, y, w, h)

    def is_click(self, threshold: float) -> bool:
        return abs(self.w) < threshold and abs(self.h) < threshold

    def box(self) -> tuple[int, int, int, int]:
        """Integer (left, top, right, bottom) of the normalized rectangle."""
        r = self.normalized()
        left, top = round(r.x), round(r.y)
        return left, top, left + round(r.w), top + round(r.h)


@dataclass(frozen=True)
class Preview:
    """Transient drag feedback; never part of the history."""

    tool: Tool
    rect: Rect


# ── Blob helpers ─────────────────────────────────────────────────────────────

def data_url_to_bytes(value: str) -> bytes:
    """Decode ``data:image/...;base64,...`` into raw bytes."""
    if not value.startswith(_DATA_URL_PREFIX) or "," not in value:
        raise ImageLoadError("Not a data URL")
    header, payload = value.split(",", 1)
    if ";base64" not in header:
        raise ImageLoadError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageLoadError(f"Invalid base64 payload: {exc}") from exc


def bytes_to_data_url(blob: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(blob).decode('ascii')}"


def _open(blob: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(blob))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageLoadError(f"Cannot decode image: {exc}") from exc
    return img


def _encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


# ═════════════════════════════════════════════════════════════════════════════
# Engine
# ═════════════════════════════════════════════════════════════════════════════

class ImageEditEngine:
    """Undo-capable crop/annotate editor for a single image."""

    def __init__(
        self,
        drag_threshold: float = DEFAULT_DRAG_THRESHOLD,
        color: str = DEFAULT_ANNOTATION_COLOR,
        stroke: int = DEFAULT_ANNOTATION_STROKE,
    ):
        self.drag_threshold = drag_threshold
        self.color = color
        self.stroke = stroke
        self.tool = Tool.ANNOTATE_BOX
        self._history: list[bytes] = []
        self._cursor = 0
        self._pending_crop: Rect | None = None
        self._drag_start: Point | None = None

    @classmethod
    def from_config(cls, app_config) -> "ImageEditEngine":
        return cls(
            drag_threshold=app_config.get("IMAGE_DRAG_THRESHOLD_PX", DEFAULT_DRAG_THRESHOLD),
            color=app_config.get("ANNOTATION_COLOR", DEFAULT_ANNOTATION_COLOR),
            stroke=app_config.get("ANNOTATION_STROKE", DEFAULT_ANNOTATION_STROKE),
        )

    # ── State ─────────────────────────────────────────────────────────

    @property
    def loaded(self) -> bool:
        return bool(self._history)

    @property
    def history_length(self) -> int:
        return len(self._history)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def pending_crop(self) -> Rect | None:
        return self._pending_crop

    def can_undo(self) -> bool:
        return self.loaded and self._cursor > 0

    def can_redo(self) -> bool:
        return self.loaded and self._cursor < len(self._history) - 1

    def _require_loaded(self):
        if not self._history:
            raise EngineClosedError("No image loaded")

    # ── Loading ───────────────────────────────────────────────────────

    def load(self, initial_image: bytes | str) -> None:
        """Reset the history to ``[initial_image]``.

        Accepts raw bytes or a base64 data URL. The original blob is kept
        byte-for-byte as history entry 0.
        """
        blob = data_url_to_bytes(initial_image) if isinstance(initial_image, str) else bytes(initial_image)
        _open(blob)  # validate only
        self._history = [blob]
        self._cursor = 0
        self._pending_crop = None
        self._drag_start = None
        self.tool = Tool.ANNOTATE_BOX
        logger.debug("Image loaded (%d bytes)", len(blob))

    def current_image(self) -> bytes:
        self._require_loaded()
        return self._history[self._cursor]

    def current_data_url(self) -> str:
        return bytes_to_data_url(self.current_image())

    def native_size(self) -> tuple[int, int]:
        return _open(self.current_image()).size

    def to_image_coords(self, point: Point, display_size: tuple[float, float]) -> Point:
        """Map a point on the rendered image to native pixel space."""
        native_w, native_h = self.native_size()
        display_w, display_h = display_size
        if display_w <= 0 or display_h <= 0:
            raise ValueError("display_size must be positive")
        return Point(point.x * native_w / display_w, point.y * native_h / display_h)

    # ── Interaction ───────────────────────────────────────────────────

    def select_tool(self, tool: Tool) -> None:
        self.tool = Tool(tool)
        if self.tool != Tool.CROP:
            self._pending_crop = None

    def begin_interaction(self, tool: Tool, start: Point) -> None:
        """Start a drag. A new drag discards any unconfirmed crop selection."""
        self._require_loaded()
        self.tool = Tool(tool)
        self._drag_start = start
        self._pending_crop = None

    def update_interaction(self, current: Point) -> Preview | None:
        """Preview rectangle for the drag in progress; history is untouched."""
        if self._drag_start is None:
            return None
        return Preview(self.tool, Rect.from_points(self._drag_start, current).normalized())

    def end_interaction(self, end: Point) -> bool:
        """Finish the drag: commit a box or stage a crop.

        Returns True when something was committed or staged.
        """
        if self._drag_start is None:
            return False
        rect = Rect.from_points(self._drag_start, end)
        self._drag_start = None
        if rect.is_click(self.drag_threshold):
            logger.debug("Drag below threshold ignored: %s", rect)
            return False
        if self.tool == Tool.CROP:
            self.propose_crop(rect)
            return True
        return self.commit_annotation(rect)

    # ── Edits ─────────────────────────────────────────────────────────

    def _append(self, blob: bytes) -> None:
        del self._history[self._cursor + 1:]
        self._history.append(blob)
        self._cursor = len(self._history) - 1

    def commit_annotation(self, rect: Rect) -> bool:
        """Draw a box outline on the current state and append it to the history."""
        self._require_loaded()
        if rect.is_click(self.drag_threshold):
            return False
        img = _open(self.current_image()).convert("RGBA")
        left, top, right, bottom = rect.box()
        ImageDraw.Draw(img).rectangle((left, top, right, bottom), outline=self.color, width=self.stroke)
        self._append(_encode_png(img))
        logger.debug("Annotation committed at %s (history=%d)", rect.box(), len(self._history))
        return True

    def propose_crop(self, rect: Rect) -> Rect:
        """Stage a crop rectangle for preview. Returns the canonical rectangle."""
        self._require_loaded()
        self._pending_crop = rect.normalized()
        return self._pending_crop

    def clear_pending_crop(self) -> None:
        self._pending_crop = None

    def confirm_crop(self) -> bool:
        """Apply the staged crop as a new history state; no-op without one."""
        if self._pending_crop is None or not self.loaded:
            return False
        left, top, right, bottom = self._pending_crop.box()
        self._pending_crop = None
        if right <= left or bottom <= top:
            return False
        img = _open(self.current_image()).convert("RGBA")
        self._append(_encode_png(img.crop((left, top, right, bottom))))
        self.tool = Tool.ANNOTATE_BOX
        logger.debug("Crop confirmed to %dx%d", right - left, bottom - top)
        return True

    def undo(self) -> bool:
        if not self.can_undo():
            return False
        self._cursor -= 1
        self._pending_crop = None
        return True

    def redo(self) -> bool:
        if not self.can_redo():
            return False
        self._cursor += 1
        self._pending_crop = None
        return True

    # ── Exit ──────────────────────────────────────────────────────────

    def save(self) -> bytes:
        """Final edited blob (the state at the cursor)."""
        return self.current_image()

    def cancel(self) -> None:
        """Drop the whole edit session; the caller's stored image is untouched."""
        self._history = []
        self._cursor = 0
        self._pending_crop = None
        self._drag_start = None
