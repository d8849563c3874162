"""
Template catalog: imgflip meme templates with a one-hour in-memory cache.

The template list is fetched in one request and swapped into the cache as a
whole; a failed fetch leaves whatever was cached before untouched and is
raised to the caller, since there is nothing to match against without it.
Also builds the catalog excerpts that go into matching prompts and wraps
imgflip's caption endpoint.
"""

import os
import random
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from meme_formats import get_format_info, is_curated

IMGFLIP_MEMES_URL = os.environ.get("IMGFLIP_MEMES_URL", "https://api.imgflip.com/get_memes")
IMGFLIP_CAPTION_URL = os.environ.get("IMGFLIP_CAPTION_URL", "https://api.imgflip.com/caption_image")
IMGFLIP_USERNAME = os.environ.get("IMGFLIP_USERNAME", "")
IMGFLIP_PASSWORD = os.environ.get("IMGFLIP_PASSWORD", "")
CATALOG_TTL_SECONDS = int(os.environ.get("CATALOG_TTL_SECONDS", "3600"))
CATALOG_TIMEOUT = int(os.environ.get("CATALOG_TIMEOUT", "15"))

# Parts (out of 3) of the non-curated prompt budget given to the most popular
# templates; the rest is a random sample of the long tail.
POPULAR_PARTS = 2


class CatalogUnavailable(RuntimeError):
    """The remote template list could not be fetched."""


class CaptionError(RuntimeError):
    """imgflip refused or failed to caption an image."""


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------

def _parse_template(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        return {
            "id": str(raw["id"]),
            "name": str(raw["name"]),
            "url": str(raw["url"]),
            "width": int(raw.get("width") or 500),
            "height": int(raw.get("height") or 500),
            "box_count": int(raw.get("box_count") or 2),
        }
    except (KeyError, TypeError, ValueError):
        return None


def fetch_imgflip_templates() -> List[Dict[str, Any]]:
    """Fetch the full template list from imgflip. Raises CatalogUnavailable."""
    try:
        resp = requests.get(IMGFLIP_MEMES_URL, timeout=CATALOG_TIMEOUT)
    except requests.RequestException as exc:
        raise CatalogUnavailable(f"Failed to fetch meme templates: {exc}") from exc

    if resp.status_code != 200:
        raise CatalogUnavailable(f"Failed to fetch meme templates ({resp.status_code})")

    try:
        data = resp.json()
    except ValueError as exc:
        raise CatalogUnavailable("Template list response was not JSON") from exc

    if not data.get("success"):
        raise CatalogUnavailable("Failed to fetch meme templates")

    memes = (data.get("data") or {}).get("memes") or []
    templates = [t for t in (_parse_template(m) for m in memes) if t]
    if not templates:
        raise CatalogUnavailable("Template list was empty")

    print(f"[Catalog] Fetched {len(templates)} templates", flush=True)
    return templates


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class TemplateCatalog:
    """
    Process-wide view of the template list.

    Construct once and hand the instance to whoever needs templates. `fetch`
    and `clock` are injectable so the TTL can be tested without the network.
    """

    def __init__(
        self,
        fetch: Optional[Callable[[], List[Dict[str, Any]]]] = None,
        ttl: float = CATALOG_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch or fetch_imgflip_templates
        self._ttl = ttl
        self._clock = clock
        # (templates, fetched_at); replaced as one value, never mutated
        self._cached = None

    def get_templates(self) -> List[Dict[str, Any]]:
        cached = self._cached
        if cached is not None and self._clock() - cached[1] < self._ttl:
            return cached[0]

        templates = self._fetch()
        self._cached = (templates, self._clock())
        return templates

    def invalidate(self) -> None:
        self._cached = None


def get_template_by_id(templates: List[Dict[str, Any]], template_id: str) -> Optional[Dict[str, Any]]:
    for t in templates:
        if t["id"] == template_id:
            return t
    return None


# ---------------------------------------------------------------------------
# Prompt excerpts
# ---------------------------------------------------------------------------

def select_templates_for_prompt(
    templates: List[Dict[str, Any]],
    max_templates: int = 150,
    exclude_ids: Iterable[str] = (),
    rng=None,
) -> List[Dict[str, Any]]:
    """
    Curated templates first (always, even past the budget), then the most
    popular of the rest, then a random sample of the long tail.
    """
    rng = rng or random
    excluded = set(exclude_ids)
    curated = [t for t in templates if is_curated(t["id"]) and t["id"] not in excluded]
    remaining = [t for t in templates if not is_curated(t["id"]) and t["id"] not in excluded]

    budget = max(0, max_templates - len(curated))
    popular_count = budget * POPULAR_PARTS // 3
    popular = remaining[:popular_count]
    tail = remaining[popular_count:]
    sample = rng.sample(tail, min(budget - len(popular), len(tail)))

    return curated + popular + sample


def describe_templates(
    templates: List[Dict[str, Any]],
    max_templates: int = 150,
    exclude_ids: Iterable[str] = (),
    compact: bool = False,
    rng=None,
) -> str:
    chosen = select_templates_for_prompt(templates, max_templates, exclude_ids, rng)

    if compact:
        lines = []
        for t in chosen:
            info = get_format_info(t)
            lines.append(
                f"ID: {t['id']} | {t['name']} | {info['format']} | "
                f"boxes: {t['box_count']} | best: {info['best_for']}"
            )
        return "\n".join(lines)

    blocks = []
    for t in chosen:
        info = get_format_info(t)
        box_info = "; ".join(f"{b['position']}: {b['purpose']}" for b in info["text_boxes"])
        blocks.append(
            f"ID: {t['id']} - \"{t['name']}\" ({info['format']}, {t['box_count']} text boxes)\n"
            f"  Best for: {info['best_for']}\n"
            f"  Description: {info['description']}\n"
            f"  Text boxes: [{box_info}]"
        )
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# imgflip captioning
# ---------------------------------------------------------------------------

def caption_image(template_id: str, top_text: str, bottom_text: str) -> str:
    """Render captions server-side on imgflip and return the image URL."""
    if not IMGFLIP_USERNAME or not IMGFLIP_PASSWORD:
        raise CaptionError("Imgflip credentials not configured")

    try:
        resp = requests.post(
            IMGFLIP_CAPTION_URL,
            data={
                "template_id": template_id,
                "username": IMGFLIP_USERNAME,
                "password": IMGFLIP_PASSWORD,
                "text0": top_text,
                "text1": bottom_text,
            },
            timeout=CATALOG_TIMEOUT,
        )
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise CaptionError(f"Caption request failed: {exc}") from exc

    if not data.get("success"):
        raise CaptionError(data.get("error_message") or "Failed to caption image")

    return data["data"]["url"]
