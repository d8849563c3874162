"""
Brand remix: a meme template's pose redrawn with the user's own character.

The user describes an avatar, two brand colours and an art style; the
template supplies the pose. OpenAI image generation draws the result with no
caption text, and the image comes back as a square PNG.
"""

import base64
import io
import math
import os
from typing import Any, Dict

import requests
from PIL import Image, ImageOps

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
OPENAI_IMAGES_URL = os.environ.get("OPENAI_IMAGES_URL", "https://api.openai.com/v1/images/generations")
OPENAI_IMAGE_MODEL = os.environ.get("OPENAI_IMAGE_MODEL", "gpt-image-1")
OPENAI_IMAGE_SIZE = os.environ.get("OPENAI_IMAGE_SIZE", "1024x1024")
REMIX_TIMEOUT = int(os.environ.get("REMIX_TIMEOUT", "120"))

REMIX_IMAGE_SIZE = 1024
MIN_AVATAR_DESCRIPTION = 10
DEFAULT_STYLE = "cartoon"

NAMED_COLORS = {
    "#FF0000": "red", "#FF4500": "orange-red", "#FFA500": "orange",
    "#FFFF00": "yellow", "#00FF00": "lime green", "#008000": "green",
    "#00FFFF": "cyan", "#0000FF": "blue", "#4B0082": "indigo",
    "#8B5CF6": "purple", "#EE82EE": "violet", "#FF00FF": "magenta",
    "#FFC0CB": "pink", "#FFFFFF": "white", "#000000": "black",
    "#808080": "gray", "#A52A2A": "brown", "#1E1E2E": "dark blue-gray",
}

STYLE_GUIDES = {
    "cartoon": "in a clean cartoon style with bold outlines, vibrant colors",
    "realistic": "in a semi-realistic digital art style",
    "anime": "in anime/manga art style with expressive features",
    "sketch": "in a hand-drawn sketch style with pencil textures",
    "pixel": "in pixel art style, retro 16-bit aesthetic",
    "minimalist": "in a minimalist flat design style with simple shapes",
}

REMIX_PROMPT = """Create a meme image {style}.

The image should show: {avatar} doing the following pose/action: {pose}

Key elements:
- The character should be: {avatar}
- Main color theme: {primary} and {secondary}
- Any props or background elements should incorporate these brand colors
- The character should have the personality and essence described, not just be a generic character
- Make sure the character is clearly the main focus
- The pose/action should match the classic "{name}" meme format

Style requirements:
- {style}
- Professional quality suitable for social media
- Clear, readable composition
- The character should be expressive and engaging

Do NOT include any text overlays or captions in the image."""


class RemixError(RuntimeError):
    """Image generation failed. `status_code` is the upstream HTTP status, if any."""

    def __init__(self, message: str, status_code=None, detail: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    @property
    def content_policy(self) -> bool:
        detail = self.detail.lower()
        return self.status_code == 400 and ("safety" in detail or "moderation" in detail)


def image_generation_configured() -> bool:
    return bool(OPENAI_API_KEY)


def _parse_hex(value):
    text = str(value or "").strip().lstrip("#")
    if len(text) == 3:
        text = "".join(c * 2 for c in text)
    if len(text) != 6:
        raise ValueError(f"Not a hex colour: {value!r}")
    return tuple(int(text[i:i + 2], 16) for i in (0, 2, 4))


def hex_to_color_name(value) -> str:
    """Closest named colour by RGB distance; 'colored' when unparseable."""
    try:
        rgb = _parse_hex(value)
    except ValueError:
        return "colored"

    closest, best = "colored", math.inf
    for hex_color, name in NAMED_COLORS.items():
        distance = math.dist(rgb, _parse_hex(hex_color))
        if distance < best:
            closest, best = name, distance
    return closest


def build_remix_prompt(template: Dict[str, Any], profile: Dict[str, Any]) -> str:
    colors = profile.get("brandColors") or {}
    style = STYLE_GUIDES.get(profile.get("characterStyle"), STYLE_GUIDES[DEFAULT_STYLE])
    name = str(template.get("name") or "").strip()
    pose = (
        str(template.get("prompt") or template.get("description") or "").strip()
        or f"the classic pose from the {name} meme"
    )
    return REMIX_PROMPT.format(
        style=style,
        avatar=str(profile.get("avatarDescription") or "").strip(),
        pose=pose,
        primary=hex_to_color_name(colors.get("primary")),
        secondary=hex_to_color_name(colors.get("secondary")),
        name=name,
    )


def to_square_png(raw_bytes: bytes, size: int = REMIX_IMAGE_SIZE) -> bytes:
    """Contain-fit on black, then resize to an exact square."""
    img = Image.open(io.BytesIO(raw_bytes)).convert("RGBA")
    img = ImageOps.exif_transpose(img) or img

    w, h = img.size
    side = max(w, h)
    canvas = Image.new("RGBA", (side, side), (0, 0, 0, 255))
    canvas.paste(img, ((side - w) // 2, (side - h) // 2))
    canvas = canvas.resize((size, size), Image.LANCZOS).convert("RGB")

    buf = io.BytesIO()
    canvas.save(buf, format="PNG")
    return buf.getvalue()


def generate_remix_image(prompt: str) -> bytes:
    """One image generation call; returns square PNG bytes. Raises RemixError."""
    try:
        resp = requests.post(
            OPENAI_IMAGES_URL,
            headers={
                "Authorization": f"Bearer {OPENAI_API_KEY}",
                "Content-Type": "application/json",
            },
            json={
                "model": OPENAI_IMAGE_MODEL,
                "prompt": prompt,
                "size": OPENAI_IMAGE_SIZE,
                "output_format": "png",
            },
            timeout=REMIX_TIMEOUT,
        )
    except requests.RequestException as exc:
        raise RemixError(f"Image generation request failed: {exc}") from exc

    if resp.status_code != 200:
        raise RemixError(
            f"OpenAI image gen failed ({resp.status_code})",
            status_code=resp.status_code,
            detail=resp.text[:500],
        )

    try:
        b64 = (resp.json().get("data") or [{}])[0].get("b64_json")
    except (ValueError, AttributeError) as exc:
        raise RemixError("Image generation response was not JSON") from exc
    if not b64:
        raise RemixError("No b64_json in OpenAI response")

    try:
        return to_square_png(base64.b64decode(b64))
    except (ValueError, OSError) as exc:
        raise RemixError(f"Generated image could not be decoded: {exc}") from exc
