"""
Tweet → meme matching pipeline.

A strict cascade of generation attempts, each tried only when everything
before it produced zero usable candidates:

  1) premise rewrite (optional enrichment, never required)
  2) primary match: full prompt, 150-template window
  3) compact retry: short prompt, 90-template window
  4) original-text retry: only when step 1 changed the text, 120 templates
  5) simplify the text to <=100 chars, then match again, 120 templates
  6) fallback: popular, broadly applicable templates

Every generation call may fail, time out, or return junk. All of those count
as "zero candidates" for that stage and the cascade moves on. The only error
that escapes is CatalogUnavailable, because there is nothing to match against.
"""

import json
import os
import traceback
from typing import Any, Callable, Dict, Iterable, List, Optional

from fallback import select_fallback
from response_parser import extract_candidate_list, extract_object, normalize_candidates
from template_catalog import TemplateCatalog, describe_templates

OPENAI_TEXT_MODEL = os.environ.get("OPENAI_TEXT_MODEL", "gpt-4o-mini")
GENERATION_TIMEOUT = int(os.environ.get("GENERATION_TIMEOUT", "45"))

MAX_TWEET_LENGTH = 500
SIMPLIFIED_MAX_LENGTH = 100
MAX_CANDIDATES = 3

PRIMARY_WINDOW = 150
COMPACT_WINDOW = 90
RETRY_WINDOW = 120

SIMPLIFIED_MESSAGE = "We simplified your tweet to find a better meme match."
FALLBACK_MESSAGE = (
    "We had trouble analyzing your tweet, so here are some popular memes that "
    "fit almost anything. Click 'Try again' for different choices!"
)

_client = None


def _get_client():
    global _client
    if _client is None:
        from openai import OpenAI
        _client = OpenAI()  # Uses OPENAI_API_KEY
    return _client


def openai_generate(prompt: str, max_tokens: int = 1500, temperature: float = 0.8) -> str:
    """One chat completion; returns the raw reply text."""
    response = _get_client().chat.completions.create(
        model=OPENAI_TEXT_MODEL,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=max_tokens,
        temperature=temperature,
        timeout=GENERATION_TIMEOUT,
    )
    return response.choices[0].message.content or ""


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

PREMISE_PROMPT = """You turn tweets into meme premises.

TWEET:
"{tweet}"

Compress the tweet into a short, punchy premise that a meme can carry.
Keep the original meaning and the joke. Do not add facts.

Reply with a JSON object only:
{{
  "setup": "the situation, under 12 words",
  "punchline": "the twist or reaction, under 10 words",
  "tone": "one word, e.g. frustrated, smug, ironic",
  "tags": ["topic1", "topic2"]
}}"""

SIMPLIFY_PROMPT = """Rewrite this text as ONE plain sentence of at most {limit} characters.
Keep the core situation and feeling. No hashtags, no emoji, no quotes.

TEXT:
"{text}"

Reply with a JSON object only:
{{"simplified": "..."}}"""

MATCH_PROMPT = """You are a meme expert. Your job: turn this tweet into {count} hilarious memes.

TWEET:
"{text}"
{premise_block}{feedback_block}{exclude_block}
AVAILABLE TEMPLATES:
{templates}

YOUR TASK:
1. Understand what the tweet is REALLY saying (the joke, the frustration, the insight)
2. Pick {count} DIFFERENT templates whose format fits the tweet's structure
3. Fill EVERY text box of the chosen template, using the box positions listed for it
4. Write SHORT, PUNCHY captions (5-8 words max per box)

CRITICAL RULES:
- Each meme must use a DIFFERENT template ID from the list above
- Captions must match how the meme format works (e.g. Drake = reject top, approve bottom)
- NO generic text like "Me:" or "When you..." - be specific to the tweet

RESPONSE FORMAT (JSON array only, best match first, no other text):
[
  {{
    "templateId": "exact ID from list",
    "templateName": "template name",
    "reasoning": "one sentence why this format fits",
    "format": "top-bottom | multi-panel | reaction | comparison | label",
    "textBoxes": [
      {{"position": "top", "text": "short caption"}},
      {{"position": "bottom", "text": "short caption"}}
    ],
    "suggestedTopText": "short top text",
    "suggestedBottomText": "short bottom text"
  }}
]"""

COMPACT_MATCH_PROMPT = """Turn this tweet into {count} memes.

Tweet: "{text}"
{feedback_block}{exclude_block}
Templates (ID | name | format | boxes | best for):
{templates}

Reply with a JSON array only, best first, no prose:
[{{"templateId":"ID","templateName":"name","reasoning":"why","textBoxes":[{{"position":"top","text":"..."}},{{"position":"bottom","text":"..."}}]}}]"""


def _premise_block(premise: Optional[Dict[str, Any]]) -> str:
    if not premise:
        return ""
    tags = ", ".join(str(t) for t in premise.get("tags") or [])
    return (
        "\nMEME PREMISE (use this framing):\n"
        f"- Setup: {premise.get('setup', '')}\n"
        f"- Punchline: {premise.get('punchline', '')}\n"
        f"- Tone: {premise.get('tone', '')}\n"
        f"- Tags: {tags}\n"
    )


def _feedback_block(feedback: Optional[str]) -> str:
    if not feedback:
        return ""
    return f"\nUser feedback: \"{feedback}\" - use this to pick DIFFERENT memes than before.\n"


def _exclude_block(exclude_ids: List[str]) -> str:
    if not exclude_ids:
        return ""
    return f"\nDO NOT USE these template IDs (already shown): {', '.join(exclude_ids)}\n"


def premise_text(premise: Optional[Dict[str, Any]]) -> Optional[str]:
    """Flatten a premise into the text the rest of the cascade matches on."""
    if not premise:
        return None
    setup = str(premise.get("setup") or "").strip()
    punchline = str(premise.get("punchline") or "").strip()
    if setup and punchline:
        sep = " " if setup.endswith((".", "!", "?")) else ". "
        return f"{setup}{sep}{punchline}"
    return setup or punchline or None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class MemeMatcher:
    """
    Runs the matching cascade for one tweet at a time.

    `generate(prompt, max_tokens, temperature) -> str` is the text generation
    service; it defaults to OpenAI chat completions. `rng` drives the random
    parts (template sampling for prompts, fallback picks).
    """

    def __init__(
        self,
        catalog: TemplateCatalog,
        generate: Optional[Callable[..., str]] = None,
        rng=None,
    ):
        self.catalog = catalog
        self.generate = generate or openai_generate
        self.rng = rng

    def match(
        self,
        tweet: str,
        feedback: Optional[str] = None,
        exclude_ids: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        tweet = (tweet or "").strip()
        if not tweet:
            raise ValueError("Tweet text is required")
        if len(tweet) > MAX_TWEET_LENGTH:
            raise ValueError(f"Tweet text too long (max {MAX_TWEET_LENGTH} characters)")

        exclude = [str(i) for i in (exclude_ids or [])]
        templates = self.catalog.get_templates()

        print("[MemeMatch] === Starting meme matching ===", flush=True)
        print(f"[MemeMatch] Tweet: {tweet!r} | excluded: {exclude}", flush=True)

        # 1) Premise rewrite
        premise = self._rewrite_premise(tweet)
        working_text = premise_text(premise) or tweet
        rewritten = premise is not None and working_text != tweet

        # 2) Primary attempt
        candidates = self._attempt(
            "primary", working_text, templates, feedback, exclude,
            max_templates=PRIMARY_WINDOW, premise=premise,
        )
        if candidates:
            return _result(candidates, rewritten, working_text if rewritten else None)

        # 3) Compact retry
        candidates = self._attempt(
            "compact", working_text, templates, feedback, exclude,
            max_templates=COMPACT_WINDOW, compact=True,
        )
        if candidates:
            return _result(candidates, rewritten, working_text if rewritten else None)

        # 4) Original text, only if the rewrite actually changed it
        if rewritten:
            candidates = self._attempt(
                "original", tweet, templates, feedback, exclude,
                max_templates=RETRY_WINDOW,
            )
            if candidates:
                return _result(candidates, False)

        # 5) Simplify, then retry
        simplified = self._simplify(working_text)
        if simplified:
            candidates = self._attempt(
                "simplified", simplified, templates, feedback, exclude,
                max_templates=RETRY_WINDOW,
            )
            if candidates:
                return _result(candidates, True, simplified, SIMPLIFIED_MESSAGE)

        # 6) Fallback
        print("[MemeMatch] All generation stages failed, using fallback templates", flush=True)
        candidates = select_fallback(
            templates, exclude, count=MAX_CANDIDATES, seed_text=tweet, rng=self.rng,
        )
        return _result(candidates, True, None, FALLBACK_MESSAGE)

    # -- stages --------------------------------------------------------------

    def _rewrite_premise(self, tweet: str) -> Optional[Dict[str, Any]]:
        print("[MemeMatch] Stage premise: rewriting tweet", flush=True)
        try:
            raw = self.generate(PREMISE_PROMPT.format(tweet=tweet), max_tokens=300, temperature=0.7)
        except Exception as exc:
            print(f"[MemeMatch] Premise rewrite failed: {type(exc).__name__}: {exc}", flush=True)
            return None

        parsed = extract_object(raw)
        if not parsed.ok:
            print(f"[MemeMatch] Premise rewrite unparseable: {parsed.error}", flush=True)
            return None

        premise = parsed.value
        if not premise_text(premise):
            print("[MemeMatch] Premise rewrite had no setup or punchline", flush=True)
            return None

        tags = premise.get("tags")
        if isinstance(tags, str):
            tags = [tags]
        elif not isinstance(tags, list):
            tags = []
        premise["tags"] = [str(t) for t in tags if t is not None and str(t).strip()]
        return premise

    def _simplify(self, text: str) -> Optional[str]:
        print("[MemeMatch] Stage simplify: compressing text", flush=True)
        prompt = SIMPLIFY_PROMPT.format(text=text, limit=SIMPLIFIED_MAX_LENGTH)
        try:
            raw = self.generate(prompt, max_tokens=200, temperature=0.5)
        except Exception as exc:
            print(f"[MemeMatch] Simplify failed: {type(exc).__name__}: {exc}", flush=True)
            return None

        parsed = extract_object(raw)
        if not parsed.ok:
            print(f"[MemeMatch] Simplify unparseable: {parsed.error}", flush=True)
            return None

        simplified = " ".join(str(parsed.value.get("simplified") or "").split())
        if not simplified:
            return None
        return simplified[:SIMPLIFIED_MAX_LENGTH]

    def _attempt(
        self,
        stage: str,
        text: str,
        templates: List[Dict[str, Any]],
        feedback: Optional[str],
        exclude: List[str],
        max_templates: int,
        compact: bool = False,
        premise: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        print(f"[MemeMatch] Stage {stage}: {max_templates}-template window", flush=True)
        try:
            catalog_excerpt = describe_templates(
                templates, max_templates=max_templates, exclude_ids=exclude,
                compact=compact, rng=self.rng,
            )
            template = COMPACT_MATCH_PROMPT if compact else MATCH_PROMPT
            prompt = template.format(
                count=MAX_CANDIDATES,
                text=text,
                premise_block=_premise_block(premise),
                feedback_block=_feedback_block(feedback),
                exclude_block=_exclude_block(exclude),
                templates=catalog_excerpt,
            )
            raw = self.generate(prompt, max_tokens=900 if compact else 1500, temperature=0.8)

            parsed = extract_candidate_list(raw)
            if not parsed.ok:
                print(f"[MemeMatch] Stage {stage} unparseable: {parsed.error} "
                      f"| {json.dumps((raw or '')[:200])}", flush=True)
                return []

            by_id = {t["id"]: t for t in templates}
            candidates = normalize_candidates(parsed.value, by_id, exclude, limit=MAX_CANDIDATES)
        except Exception as exc:
            print(f"[MemeMatch] Stage {stage} failed: {type(exc).__name__}: {exc}", flush=True)
            traceback.print_exc()
            return []

        print(f"[MemeMatch] Stage {stage} produced {len(candidates)} candidates", flush=True)
        return candidates


def _result(
    candidates: List[Dict[str, Any]],
    was_rewritten: bool,
    rewritten_text: Optional[str] = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "candidates": candidates,
        "was_rewritten": was_rewritten,
        "rewritten_text": rewritten_text,
        "message": message,
    }
