"""
Turns free-text model output into validated meme match candidates.

Model replies are supposed to be JSON but regularly arrive wrapped in code
fences or prose, truncated, or with fields missing. Extraction never raises:
it hands back a ParseResult, and callers treat an error as "no candidates".
"""

import json
import re
from typing import Any, Dict, List, NamedTuple, Optional

from meme_formats import LAYOUT_KINDS, PANEL_POSITIONS, POSITIONS, get_format_info

MAX_CAPTION_LENGTH = 100
DEFAULT_REASONING = "Great match for this tweet"

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


class ParseResult(NamedTuple):
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _try_load(text: str) -> ParseResult:
    try:
        return ParseResult(json.loads(text))
    except ValueError as exc:
        return ParseResult(error=f"Invalid JSON: {exc}")


def extract_json(text: Optional[str]) -> ParseResult:
    """
    Pull a JSON array or object out of a model reply.

    Strips fence markers, then parses the span from the first opening bracket
    to the last matching closing bracket. Falls back to the other bracket kind,
    then to the whole text.
    """
    if not text or not text.strip():
        return ParseResult(error="Empty response")

    cleaned = _FENCE_RE.sub("", text).strip()

    spans = []
    for opener, closer in (("[", "]"), ("{", "}")):
        start = cleaned.find(opener)
        end = cleaned.rfind(closer)
        if start != -1 and end > start:
            spans.append((start, end))
    spans.sort()

    last_error = "No JSON found in response"
    for start, end in spans:
        result = _try_load(cleaned[start:end + 1])
        if result.ok:
            return result
        last_error = result.error

    whole = _try_load(cleaned)
    if whole.ok:
        return whole
    return ParseResult(error=last_error)


def extract_candidate_list(text: Optional[str]) -> ParseResult:
    """Like extract_json, but the value must be a list of candidate objects."""
    result = extract_json(text)
    if not result.ok:
        return result

    value = result.value
    if isinstance(value, dict):
        for key in ("matches", "candidates", "memes"):
            if isinstance(value.get(key), list):
                value = value[key]
                break
    if not isinstance(value, list):
        return ParseResult(error=f"Expected a JSON array, got {type(value).__name__}")
    return ParseResult(value)


def extract_object(text: Optional[str]) -> ParseResult:
    result = extract_json(text)
    if not result.ok:
        return result
    if not isinstance(result.value, dict):
        return ParseResult(error=f"Expected a JSON object, got {type(result.value).__name__}")
    return result


# ---------------------------------------------------------------------------
# Candidate normalization
# ---------------------------------------------------------------------------

def _first(raw: Dict[str, Any], *keys):
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _caption(value) -> str:
    if value is None:
        return ""
    return str(value).strip()[:MAX_CAPTION_LENGTH]


def _normalize_boxes(raw_boxes, default_boxes: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """
    Accepts [{"position": "top", "text": "..."}] as well as the shorthand
    [{"top": "..."}]. Every returned box has a distinct position.

    The first box naming a valid position keeps it. Boxes without a usable
    position, and repeats, borrow the format's slot at the same index if it
    is still free, otherwise the next free slot. Boxes left over once every
    position is taken are dropped.
    """
    if not isinstance(raw_boxes, list):
        return []

    parsed = []
    for item in raw_boxes:
        if isinstance(item, str):
            position, text = None, item
        elif isinstance(item, dict):
            position = item.get("position")
            text = item.get("text")
            if position is None and text is None and len(item) == 1:
                position, text = next(iter(item.items()))
        else:
            continue

        position = str(position).strip().lower() if position is not None else None
        parsed.append([position if position in POSITIONS else None, _caption(text)])

    taken = set()
    for entry in parsed:
        if entry[0] is not None:
            if entry[0] in taken:
                entry[0] = None
            else:
                taken.add(entry[0])

    spare = [b["position"] for b in default_boxes]
    for p in PANEL_POSITIONS + POSITIONS:
        if p not in spare:
            spare.append(p)

    boxes = []
    for i, (position, text) in enumerate(parsed):
        if position is None:
            preferred = default_boxes[i]["position"] if i < len(default_boxes) else None
            if preferred is not None and preferred not in taken:
                position = preferred
            else:
                position = next((p for p in spare if p not in taken), None)
            if position is None:
                continue
            taken.add(position)
        boxes.append({"position": position, "text": text})
    return boxes


def _box_text(boxes: List[Dict[str, str]], position: str) -> Optional[str]:
    for box in boxes:
        if box["position"] == position:
            return box["text"]
    return None


def normalize_candidate(raw: Any, templates_by_id: Dict[str, Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Build a complete match candidate from one loosely-shaped model item.

    Returns None when the template id does not resolve against the catalog.
    Guarantees: `text_boxes` is never empty, and any top/bottom box agrees
    with `top_text`/`bottom_text`. Normalizing a normalized candidate is a
    no-op.
    """
    if not isinstance(raw, dict):
        return None

    template_id = str(_first(raw, "templateId", "template_id", "id") or "").strip()
    template = templates_by_id.get(template_id)
    if template is None:
        return None

    info = get_format_info(template)

    fmt = _first(raw, "format", "layoutKind", "layout_kind")
    if fmt not in LAYOUT_KINDS:
        fmt = info["format"]

    top_text = _first(raw, "top_text", "primaryTopText", "suggestedTopText", "topText")
    bottom_text = _first(raw, "bottom_text", "primaryBottomText", "suggestedBottomText", "bottomText")
    top_text = _caption(top_text) if top_text is not None else None
    bottom_text = _caption(bottom_text) if bottom_text is not None else None

    boxes = _normalize_boxes(
        _first(raw, "text_boxes", "textBoxes", "textSlots", "text_slots"),
        info["text_boxes"],
    )

    if not boxes:
        boxes = [
            {"position": "top", "text": top_text or ""},
            {"position": "bottom", "text": bottom_text or ""},
        ]

    # Boxes win when they carry text; otherwise the primary captions fill them.
    for position, primary in (("top", top_text), ("bottom", bottom_text)):
        for box in boxes:
            if box["position"] == position and not box["text"] and primary:
                box["text"] = primary

    top_from_box = _box_text(boxes, "top")
    bottom_from_box = _box_text(boxes, "bottom")

    return {
        "template_id": template_id,
        "template_name": str(_first(raw, "template_name", "templateName") or template["name"]),
        "reasoning": str(_first(raw, "reasoning") or DEFAULT_REASONING),
        "format": fmt,
        "text_boxes": boxes,
        "top_text": top_from_box if top_from_box is not None else (top_text or ""),
        "bottom_text": bottom_from_box if bottom_from_box is not None else (bottom_text or ""),
    }


def normalize_candidates(
    items: List[Any],
    templates_by_id: Dict[str, Dict[str, Any]],
    exclude_ids=(),
    limit: int = 3,
) -> List[Dict[str, Any]]:
    """Normalize a batch, dropping unresolvable, excluded and repeated templates."""
    excluded = set(exclude_ids)
    seen = set()
    out = []
    for item in items:
        candidate = normalize_candidate(item, templates_by_id)
        if candidate is None:
            print(f"[MemeMatch] Dropping unresolvable candidate: {str(item)[:120]}", flush=True)
            continue
        if candidate["template_id"] in excluded or candidate["template_id"] in seen:
            continue
        seen.add(candidate["template_id"])
        out.append(candidate)
        if len(out) >= limit:
            break
    return out
