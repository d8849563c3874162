"""
Meme caption layout and rendering.

Classic meme text: uppercase, white fill over a thick black outline, wrapped
to the image width and pinned to the top/bottom edges. The wrap and draw
logic only talks to a small drawing-surface interface (measure_text,
stroke_text, fill_text, draw_image), so it can be exercised without a real
rasterizer; PillowSurface is the production implementation.

Full-size renders and 300x300 grid thumbnails share the same algorithm and
differ only in their TextStyle and sizing.
"""

import io
import os
from functools import lru_cache
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

import requests
from PIL import Image, ImageDraw, ImageFont

IMAGE_TIMEOUT = int(os.environ.get("IMAGE_TIMEOUT", "20"))
MEME_FONT_PATH = os.environ.get("MEME_FONT_PATH", "")

FONT_CANDIDATES = [
    "impact.ttf",
    "Impact.ttf",
    "/usr/share/fonts/truetype/msttcorefonts/Impact.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "arialbd.ttf",
    "arial.ttf",
]

MAX_RENDER_WIDTH = 600
THUMBNAIL_SIZE = 300
PLACEHOLDER_SIZE = 300
EDGE_PADDING_RATIO = 0.02
OFFSET_BAND_RATIO = 0.2
THUMBNAIL_PADDING = 2

BLACK = (0, 0, 0)
WHITE = (255, 255, 255)
BACKGROUND = (26, 26, 26)
PLACEHOLDER_TEXT_COLOR = (102, 102, 102)

# Pillow anchors: middle-ascender, middle-baseline, middle-middle
_ANCHORS = {"top": "ma", "bottom": "ms", "center": "mm"}


class TextStyle(NamedTuple):
    line_height: float        # multiple of font size
    stroke_ratio: float       # outline width as a fraction of font size
    stroke_passes: int
    max_lines: Optional[int]  # None = uncapped


FULL_TEXT_STYLE = TextStyle(line_height=1.1, stroke_ratio=0.15, stroke_passes=4, max_lines=None)
THUMBNAIL_TEXT_STYLE = TextStyle(line_height=1.05, stroke_ratio=0.18, stroke_passes=3, max_lines=2)

# Panel centres and widths as fractions of the image, from the editor layouts.
PANEL_LAYOUTS = {
    3: [(0.5, 0.167, 0.9), (0.5, 0.5, 0.9), (0.5, 0.833, 0.9)],
    4: [(0.25, 0.125, 0.45), (0.25, 0.375, 0.45), (0.25, 0.625, 0.45), (0.25, 0.875, 0.45)],
}


# ---------------------------------------------------------------------------
# Render settings
# ---------------------------------------------------------------------------

DEFAULT_SETTINGS = {
    "top_font_scale": 50,
    "top_vertical_offset": 0,
    "bottom_font_scale": 50,
    "bottom_vertical_offset": 0,
}

SETTING_RANGES = {
    "top_font_scale": (20, 100),
    "top_vertical_offset": (0, 50),
    "bottom_font_scale": (20, 100),
    "bottom_vertical_offset": (0, 50),
}

_SETTING_ALIASES = {
    "topFontScale": "top_font_scale",
    "topVerticalOffset": "top_vertical_offset",
    "bottomFontScale": "bottom_font_scale",
    "bottomVerticalOffset": "bottom_vertical_offset",
}


def normalize_settings(raw: Optional[Dict[str, Any]] = None) -> Dict[str, float]:
    """Fill in defaults and clamp every setting into its allowed range."""
    settings = dict(DEFAULT_SETTINGS)
    if not isinstance(raw, dict):
        return settings
    for key, value in raw.items():
        key = _SETTING_ALIASES.get(key, key)
        if key not in SETTING_RANGES:
            continue
        try:
            value = float(value)
        except (TypeError, ValueError):
            continue
        lo, hi = SETTING_RANGES[key]
        settings[key] = min(hi, max(lo, value))
    return settings


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def wrap_text(text: str, max_width: float, measure: Callable[[str], float]) -> List[str]:
    """
    Greedy word wrap. A word that is wider than max_width on its own is
    never split; it just gets a line to itself.
    """
    lines = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        width = measure(candidate)
        # Breaking only helps if the word made the line wider.
        if current and width > max_width and width > measure(current):
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def layout_lines(surface, text: str, max_width: float, font_size: float,
                 style: TextStyle = FULL_TEXT_STYLE) -> List[str]:
    lines = wrap_text(text.upper(), max_width, lambda s: surface.measure_text(s, font_size))
    if style.max_lines is not None:
        lines = lines[:style.max_lines]
    return lines


def draw_outlined_text(surface, lines: List[str], x: float, y: float, font_size: float,
                       align: str = "top", style: TextStyle = FULL_TEXT_STYLE) -> None:
    """
    Outline first, fill on top. Top-aligned text hangs down from y;
    bottom-aligned text stacks upward so the last baseline sits on y.
    """
    line_height = font_size * style.line_height
    stroke_width = font_size * style.stroke_ratio
    count = len(lines)

    for i, line in enumerate(lines):
        line = line.upper()
        if align == "top":
            line_y = y + i * line_height
        elif align == "bottom":
            line_y = y - (count - 1 - i) * line_height
        else:
            line_y = y - (count - 1) * line_height / 2 + i * line_height

        for _ in range(style.stroke_passes):
            surface.stroke_text(line, x, line_y, font_size, stroke_width, align)
        surface.fill_text(line, x, line_y, font_size, align)


def full_size_font(width: float, height: float, scale_percent: float, text_count: int = 2) -> float:
    """50% gives text a notch smaller than classic edge-to-edge meme captions."""
    base = min(width / 14, height / (16 * max(1, text_count / 2)))
    return base * scale_percent / 50


def caption_anchor_y(height: float, align: str, offset_percent: float, padding: float) -> float:
    shift = height * OFFSET_BAND_RATIO * offset_percent / 100
    if align == "top":
        return padding + shift
    return height - padding - shift


def primary_captions(candidate: Dict[str, Any]) -> Tuple[str, str]:
    """Top/bottom captions; left/right/center/panel boxes fill whichever is empty."""
    top = candidate.get("top_text") or ""
    bottom = candidate.get("bottom_text") or ""
    others = [
        b["text"] for b in candidate.get("text_boxes") or []
        if b["position"] not in ("top", "bottom") and b["text"]
    ]
    if not top and others:
        top = others.pop(0)
    if not bottom and others:
        bottom = others.pop(0)
    return top, bottom


def _panel_layout(candidate: Dict[str, Any]):
    boxes = candidate.get("text_boxes") or []
    if candidate.get("format") != "multi-panel":
        return None
    return PANEL_LAYOUTS.get(len(boxes))


# ---------------------------------------------------------------------------
# Pillow surface
# ---------------------------------------------------------------------------

@lru_cache(maxsize=64)
def load_font(size: int):
    candidates = [MEME_FONT_PATH] if MEME_FONT_PATH else []
    for path in candidates + FONT_CANDIDATES:
        try:
            return ImageFont.truetype(path, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default(size=size)


class PillowSurface:
    """Drawing surface over a Pillow RGB image."""

    def __init__(self, width: int, height: int, background=BACKGROUND):
        self.image = Image.new("RGB", (int(width), int(height)), background)
        self._draw = ImageDraw.Draw(self.image)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def _font(self, font_size: float):
        return load_font(max(1, int(round(font_size))))

    def measure_text(self, text: str, font_size: float) -> float:
        return self._draw.textlength(text, font=self._font(font_size))

    def stroke_text(self, text: str, x: float, y: float, font_size: float,
                    line_width: float, align: str = "center") -> None:
        # Pillow strokes outward only, so half the line width matches a
        # centred canvas stroke.
        self._draw.text(
            (x, y), text, font=self._font(font_size), anchor=_ANCHORS.get(align, "mm"),
            fill=BLACK, stroke_width=max(1, int(round(line_width / 2))), stroke_fill=BLACK,
        )

    def fill_text(self, text: str, x: float, y: float, font_size: float,
                  align: str = "center", fill=WHITE) -> None:
        self._draw.text((x, y), text, font=self._font(font_size),
                        anchor=_ANCHORS.get(align, "mm"), fill=fill)

    def draw_image(self, image, x: float, y: float, width: float, height: float) -> None:
        size = (max(1, int(round(width))), max(1, int(round(height))))
        self.image.paste(image.convert("RGB").resize(size, Image.LANCZOS), (int(round(x)), int(round(y))))


def to_png_bytes(image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def load_template_image(url: str):
    """Download a template image. Returns None instead of raising."""
    if not url:
        return None
    try:
        resp = requests.get(url, timeout=IMAGE_TIMEOUT)
        resp.raise_for_status()
        img = Image.open(io.BytesIO(resp.content))
        img.load()
        return img.convert("RGB")
    except (requests.RequestException, OSError) as exc:
        print(f"[Render] Failed to load template image {url}: {exc}", flush=True)
        return None


def render_placeholder(size: int = PLACEHOLDER_SIZE):
    surface = PillowSurface(size, size)
    surface.fill_text("Failed to load", size / 2, size / 2, 14, "center", fill=PLACEHOLDER_TEXT_COLOR)
    return surface.image


def render_meme(template: Dict[str, Any], candidate: Dict[str, Any],
                settings: Optional[Dict[str, Any]] = None, source=None):
    """Full-size render of a candidate's captions onto its template image."""
    settings = normalize_settings(settings)
    if source is None:
        source = load_template_image(template.get("url", ""))
    if source is None:
        return render_placeholder()

    scale = min(1.0, MAX_RENDER_WIDTH / source.width)
    width = max(1, int(round(source.width * scale)))
    height = max(1, int(round(source.height * scale)))

    surface = PillowSurface(width, height)
    surface.draw_image(source, 0, 0, width, height)
    padding = width * EDGE_PADDING_RATIO

    panels = _panel_layout(candidate)
    if panels:
        texts = [b["text"] for b in candidate["text_boxes"]]
        font_size = full_size_font(width, height, settings["top_font_scale"], len(texts))
        for text, (px, py, pw) in zip(texts, panels):
            if not text.strip():
                continue
            lines = layout_lines(surface, text, pw * width, font_size)
            draw_outlined_text(surface, lines, px * width, py * height, font_size, "center")
        return surface.image

    top, bottom = primary_captions(candidate)
    for text, align in ((top, "top"), (bottom, "bottom")):
        if not text.strip():
            continue
        font_size = full_size_font(width, height, settings[f"{align}_font_scale"])
        lines = layout_lines(surface, text, width - 2 * padding, font_size)
        y = caption_anchor_y(height, align, settings[f"{align}_vertical_offset"], padding)
        draw_outlined_text(surface, lines, width / 2, y, font_size, align)

    return surface.image


def render_thumbnail(template: Dict[str, Any], candidate: Dict[str, Any], source=None):
    """300x300 grid preview: contain-fit image, small two-line captions."""
    if source is None:
        source = load_template_image(template.get("url", ""))
    if source is None:
        return render_placeholder()

    size = THUMBNAIL_SIZE
    surface = PillowSurface(size, size)
    scale = min(size / source.width, size / source.height)
    scaled_w = source.width * scale
    scaled_h = source.height * scale
    surface.draw_image(source, (size - scaled_w) / 2, (size - scaled_h) / 2, scaled_w, scaled_h)

    font_size = max(10, min(13, size / 24))
    max_width = size - THUMBNAIL_PADDING * 2
    top, bottom = primary_captions(candidate)

    if top.strip():
        lines = layout_lines(surface, top, max_width, font_size, THUMBNAIL_TEXT_STYLE)
        draw_outlined_text(surface, lines, size / 2, THUMBNAIL_PADDING, font_size, "top",
                           THUMBNAIL_TEXT_STYLE)
    if bottom.strip():
        lines = layout_lines(surface, bottom, max_width, font_size, THUMBNAIL_TEXT_STYLE)
        draw_outlined_text(surface, lines, size / 2, size - THUMBNAIL_PADDING, font_size, "bottom",
                           THUMBNAIL_TEXT_STYLE)

    return surface.image
