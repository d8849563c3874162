"""
Meme matching API: Flask Blueprint.

  POST /api/match-meme   tweet → up to 3 template suggestions with captions
  POST /api/render       candidate → full-size PNG
  POST /api/thumbnail    candidate → 300x300 PNG preview
  POST /api/caption      imgflip server-side caption (needs credentials)
  POST /api/remix-meme   template pose redrawn with a brand character
"""

import base64
import traceback

from flask import Blueprint, Response, jsonify, request

from meme_matcher import MAX_TWEET_LENGTH, MemeMatcher
from meme_remix import (
    MIN_AVATAR_DESCRIPTION,
    RemixError,
    build_remix_prompt,
    generate_remix_image,
    image_generation_configured,
)
from meme_render import render_meme, render_thumbnail, to_png_bytes
from response_parser import normalize_candidate
from template_catalog import (
    CaptionError,
    CatalogUnavailable,
    TemplateCatalog,
    caption_image,
    get_template_by_id,
)

meme_api_bp = Blueprint("meme_api", __name__)

# One catalog per process; the matcher shares it.
catalog = TemplateCatalog()
matcher = MemeMatcher(catalog)


@meme_api_bp.errorhandler(Exception)
def _handle_meme_error(exc):
    """Ensure API errors always return JSON, not HTML."""
    traceback.print_exc()
    return jsonify({"error": f"{type(exc).__name__}: {exc}"}), 500


def _candidate_json(candidate, template):
    return {
        "templateId": candidate["template_id"],
        "templateName": candidate["template_name"],
        "reasoning": candidate["reasoning"],
        "format": candidate["format"],
        "textBoxes": candidate["text_boxes"],
        "suggestedTopText": candidate["top_text"],
        "suggestedBottomText": candidate["bottom_text"],
        "templateUrl": (template or {}).get("url", ""),
        "width": (template or {}).get("width", 500),
        "height": (template or {}).get("height", 500),
        "boxCount": (template or {}).get("box_count", 2),
    }


def _load_candidate(body):
    """Resolve a posted candidate against the catalog. Returns (template, candidate)."""
    templates = catalog.get_templates()
    template = get_template_by_id(templates, str(body.get("templateId") or ""))
    if template is None:
        return None, None
    candidate = normalize_candidate(body, {template["id"]: template})
    return template, candidate


def _png(image):
    resp = Response(to_png_bytes(image), mimetype="image/png")
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@meme_api_bp.route("/api/match-meme", methods=["POST"])
def match_meme():
    body = request.get_json(silent=True) or {}
    tweet = str(body.get("tweet") or "").strip()

    if not tweet:
        return jsonify({"error": "Tweet text is required"}), 400
    if len(tweet) > MAX_TWEET_LENGTH:
        return jsonify({"error": f"Tweet text too long (max {MAX_TWEET_LENGTH} characters)"}), 400

    feedback = body.get("feedback") or None
    previous_ids = body.get("previousIds") or []
    if not isinstance(previous_ids, list):
        return jsonify({"error": "previousIds must be a list"}), 400

    try:
        result = matcher.match(tweet, feedback=feedback, exclude_ids=previous_ids)
        templates = catalog.get_templates()
    except CatalogUnavailable as exc:
        print(f"[MemeAPI] Catalog unavailable: {exc}", flush=True)
        return jsonify({"error": "Meme templates are unavailable right now. Please try again."}), 503

    matches = [
        _candidate_json(c, get_template_by_id(templates, c["template_id"]))
        for c in result["candidates"]
    ]
    return jsonify({
        "matches": matches,
        "modified": result["was_rewritten"],
        "modifiedTweet": result["rewritten_text"],
        "message": result["message"],
    })


@meme_api_bp.route("/api/render", methods=["POST"])
def render():
    body = request.get_json(silent=True) or {}
    settings = body.get("settings")
    if settings is not None and not isinstance(settings, dict):
        return jsonify({"error": "settings must be an object"}), 400

    try:
        template, candidate = _load_candidate(body)
    except CatalogUnavailable:
        return jsonify({"error": "Meme templates are unavailable right now."}), 503
    if template is None:
        return jsonify({"error": "Template not found"}), 404

    image = render_meme(template, candidate, settings=settings)
    return _png(image)


@meme_api_bp.route("/api/thumbnail", methods=["POST"])
def thumbnail():
    body = request.get_json(silent=True) or {}
    try:
        template, candidate = _load_candidate(body)
    except CatalogUnavailable:
        return jsonify({"error": "Meme templates are unavailable right now."}), 503
    if template is None:
        return jsonify({"error": "Template not found"}), 404

    return _png(render_thumbnail(template, candidate))


@meme_api_bp.route("/api/caption", methods=["POST"])
def caption():
    body = request.get_json(silent=True) or {}
    template_id = str(body.get("templateId") or "")
    if not template_id:
        return jsonify({"error": "Missing templateId"}), 400

    try:
        url = caption_image(template_id, body.get("topText") or "", body.get("bottomText") or "")
    except CaptionError as exc:
        print(f"[MemeAPI] Caption failed: {exc}", flush=True)
        return jsonify({"error": str(exc)}), 502
    return jsonify({"url": url})


@meme_api_bp.route("/api/remix-meme", methods=["POST"])
def remix_meme():
    if not image_generation_configured():
        return jsonify({"error": "Image generation is not configured. Please add OPENAI_API_KEY."}), 500

    body = request.get_json(silent=True) or {}
    template = body.get("template")
    profile = body.get("profile")
    if not isinstance(template, dict) or not isinstance(profile, dict):
        return jsonify({"error": "Missing template or profile data"}), 400
    if len(str(profile.get("avatarDescription") or "").strip()) < MIN_AVATAR_DESCRIPTION:
        return jsonify({"error": "Please provide a more detailed avatar description"}), 400

    prompt = build_remix_prompt(template, profile)
    print(f"[MemeAPI] Generating remix: {prompt[:200]}...", flush=True)

    try:
        png = generate_remix_image(prompt)
    except RemixError as exc:
        print(f"[MemeAPI] Remix failed: {exc} {exc.detail}", flush=True)
        if exc.content_policy:
            return jsonify({"error": "The image could not be generated due to content policy. "
                                     "Please try a different description."}), 400
        if exc.status_code == 429:
            return jsonify({"error": "Too many requests. Please wait a moment and try again."}), 429
        return jsonify({"error": "Failed to generate remix. Please try again."}), 500

    return jsonify({
        "imageUrl": "data:image/png;base64," + base64.b64encode(png).decode("ascii"),
        "prompt": prompt[:100] + "...",
    })
