"""
Last-resort template picks for when every generation attempt came back empty.

There is no signal to rank by at this point, so a few broadly applicable
templates are sampled at random. Pass a seeded `random.Random` as `rng` for
reproducible picks.

Captions are still built from the tweet: well-known templates split
comparison-shaped tweets ("X vs Y", "Tired: X / Wired: Y", arrows, two
lines) into their two boxes, everything else gets the tweet on top and a
generic line underneath.
"""

import random
import re
from typing import Any, Dict, Iterable, List, Optional

from response_parser import normalize_candidate

# Templates that work for almost any topic.
FALLBACK_TEMPLATE_IDS = [
    "181913649",  # Drake Hotline Bling
    "161865971",  # Tuxedo Winnie the Pooh
    "155067746",  # Surprised Pikachu
    "129242436",  # Change My Mind
    "438680",     # Batman Slapping Robin
    "252600902",  # Always Has Been
]

WIDEN_POOL_SIZE = 80
SEED_TEXT_LIMIT = 50
FALLBACK_REASONING = "A versatile meme for this type of content"
FALLBACK_TOP_TEXT = "When you try something new"
FALLBACK_BOTTOM_TEXT = "Me, trying my best"

_FIRST_PART_PATTERNS = [
    re.compile(r"\btired[:\s]+(.+?)\s*[/|]\s*wired", re.IGNORECASE),
    re.compile(r"\bbefore[:\s]+(.+?)\s*[/|]\s*after", re.IGNORECASE),
    re.compile(r"\bold[:\s]+(.+?)\s*[/|]\s*new", re.IGNORECASE),
    re.compile(r"(.+?)\s+vs\.?\s+", re.IGNORECASE),
    re.compile(r"(.+?)\s*(?:→|->)\s*"),
    re.compile(r"(.+?)\s*[/|]\s*"),
]

_SECOND_PART_PATTERNS = [
    re.compile(r"\bwired[:\s]+(.+)", re.IGNORECASE),
    re.compile(r"\bafter[:\s]+(.+)", re.IGNORECASE),
    re.compile(r"\bnew[:\s]+(.+)", re.IGNORECASE),
    re.compile(r"\bvs\.?\s+(.+)", re.IGNORECASE),
    re.compile(r"(?:→|->)\s*(.+)"),
    re.compile(r"[/|]\s*(.+)"),
]

_TRAILING_SPLIT_RE = re.compile(r"\s*[/|].+$")


def truncate(text: str, max_len: int) -> str:
    text = " ".join(text.split())
    if len(text) <= max_len:
        return text
    return text[:max_len - 3].rstrip() + "..."


def _lines(text: str) -> List[str]:
    return [line.strip() for line in re.split(r"[\r\n]+", text) if line.strip()]


def extract_first_part(text: str) -> Optional[str]:
    """Left-hand side of a comparison-shaped tweet, or its first line."""
    for pattern in _FIRST_PART_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return truncate(match.group(1).strip(), SEED_TEXT_LIMIT)

    lines = _lines(text)
    if len(lines) >= 2:
        return truncate(lines[0], SEED_TEXT_LIMIT)
    return None


def extract_second_part(text: str) -> Optional[str]:
    """Right-hand side of a comparison-shaped tweet, or its last line."""
    for pattern in _SECOND_PART_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            part = _TRAILING_SPLIT_RE.sub("", match.group(1).strip()).strip()
            if part:
                return truncate(part, SEED_TEXT_LIMIT)

    lines = _lines(text)
    if len(lines) >= 2:
        return truncate(lines[-1], SEED_TEXT_LIMIT)
    return None


# template id -> (top caption, bottom caption) builders over the seed text
CAPTION_RULES = {
    "181913649": (
        lambda t: extract_first_part(t) or "The old way",
        lambda t: extract_second_part(t) or "The new way",
    ),
    "161865971": (
        lambda t: extract_first_part(t) or "Normal approach",
        lambda t: extract_second_part(t) or "Sophisticated approach",
    ),
    "129242436": (
        lambda t: truncate(t, 60),
        lambda t: "Change my mind",
    ),
    "155067746": (
        lambda t: truncate(t, SEED_TEXT_LIMIT),
        lambda t: "*surprised face*",
    ),
    "438680": (
        lambda t: extract_first_part(t) or truncate(t, 40),
        lambda t: extract_second_part(t) or "No.",
    ),
}


def fallback_captions(template_id: str, seed_text: Optional[str]):
    """(top, bottom) captions for one fallback pick."""
    if not seed_text or not seed_text.strip():
        return FALLBACK_TOP_TEXT, FALLBACK_BOTTOM_TEXT

    rule = CAPTION_RULES.get(template_id)
    if rule is None:
        return truncate(seed_text, SEED_TEXT_LIMIT), FALLBACK_BOTTOM_TEXT
    top, bottom = rule
    return top(seed_text), bottom(seed_text)


def select_fallback(
    templates: List[Dict[str, Any]],
    exclude_ids: Iterable[str] = (),
    count: int = 3,
    seed_text: Optional[str] = None,
    rng=None,
) -> List[Dict[str, Any]]:
    """
    Pick `count` distinct templates, preferring FALLBACK_TEMPLATE_IDS.

    Excluded templates are skipped; when that leaves fewer than `count`, the
    pool widens to the first WIDEN_POOL_SIZE catalog templates, and only if
    even that is short do excluded templates come back in.
    """
    rng = rng or random
    excluded = set(exclude_ids)
    by_id = {t["id"]: t for t in templates}

    curated = [by_id[i] for i in FALLBACK_TEMPLATE_IDS if i in by_id]
    preferred = [t for t in curated if t["id"] not in excluded]

    if len(preferred) >= count:
        chosen = rng.sample(preferred, count)
    else:
        picked = {t["id"] for t in preferred}
        widened = [
            t for t in templates[:WIDEN_POOL_SIZE]
            if t["id"] not in excluded and t["id"] not in picked
        ]
        chosen = preferred + rng.sample(widened, min(count - len(preferred), len(widened)))

        if len(chosen) < count:
            picked = {t["id"] for t in chosen}
            leftovers = []
            for t in curated + templates[:WIDEN_POOL_SIZE]:
                if t["id"] not in picked:
                    leftovers.append(t)
                    picked.add(t["id"])
            chosen += leftovers[:count - len(chosen)]

    candidates = []
    for t in chosen:
        top_text, bottom_text = fallback_captions(t["id"], seed_text)
        candidate = normalize_candidate(
            {
                "templateId": t["id"],
                "templateName": t["name"],
                "reasoning": FALLBACK_REASONING,
                "suggestedTopText": top_text,
                "suggestedBottomText": bottom_text,
            },
            by_id,
        )
        if candidate:
            candidates.append(candidate)
    return candidates
