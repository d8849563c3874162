"""
Curated meme format database.

Rich layout context for well-known imgflip templates: how many caption boxes
they have, what kind of joke they carry, and what each box is for. Templates
that are not curated get a computed default from their box count.
"""

from typing import Any, Dict, List

LAYOUT_KINDS = ("top-bottom", "multi-panel", "reaction", "comparison", "label")

PANEL_POSITIONS = ("panel1", "panel2", "panel3", "panel4")

POSITIONS = ("top", "bottom", "left", "right", "center") + PANEL_POSITIONS


def _boxes(*pairs) -> List[Dict[str, str]]:
    return [{"position": p, "purpose": purpose} for p, purpose in pairs]


# ---------------------------------------------------------------------------
# Curated formats, keyed by imgflip template id
# ---------------------------------------------------------------------------
MEME_FORMAT_DATABASE: Dict[str, Dict[str, Any]] = {
    # === Comparison (A vs B, preferences) ===
    "181913649": {  # Drake Hotline Bling
        "box_count": 2,
        "format": "comparison",
        "description": "Drake disapproving something (top), then approving alternative (bottom)",
        "best_for": "Showing preference, rejecting one thing for another, ONLY when the tweet has two alternatives",
        "text_boxes": _boxes(("top", "Thing being rejected/disliked"),
                             ("bottom", "Thing being preferred/approved")),
    },
    "161865971": {  # Tuxedo Winnie the Pooh
        "box_count": 2,
        "format": "comparison",
        "description": "Regular Pooh vs Fancy Pooh",
        "best_for": "Fancier/pretentious way of saying the SAME thing, upgrades, sophistication",
        "text_boxes": _boxes(("top", "Normal/basic version"),
                             ("bottom", "Fancy/elevated version")),
    },
    "247375501": {  # Buff Doge vs Cheems
        "box_count": 2,
        "format": "comparison",
        "description": "Strong doge (past) vs weak doge (present)",
        "best_for": "Then vs now comparisons, things getting worse over time, nostalgia",
        "text_boxes": _boxes(("left", "How things were (strong)"),
                             ("right", "How things are now (weak)")),
    },
    "87743020": {  # Two Buttons
        "box_count": 3,
        "format": "comparison",
        "description": "Person sweating while choosing between two buttons",
        "best_for": "Impossible choices, dilemmas, when BOTH options are tempting or terrible",
        "text_boxes": _boxes(("panel1", "First option (button)"),
                             ("panel2", "Second option (button)"),
                             ("panel3", "Who is deciding (optional)")),
    },
    "112126428": {  # Distracted Boyfriend
        "box_count": 3,
        "format": "comparison",
        "description": "Guy looking at another woman while girlfriend looks disapprovingly",
        "best_for": "Being distracted by something shiny/new, temptation pulling away from duties",
        "text_boxes": _boxes(("left", "Current thing being neglected (girlfriend)"),
                             ("center", "Who/what is being distracted (boyfriend)"),
                             ("right", "New tempting thing (other woman)")),
    },
    "135256802": {  # Epic Handshake
        "box_count": 3,
        "format": "comparison",
        "description": "Two arms doing epic handshake, united by common ground",
        "best_for": "Two different groups agreeing on something, unlikely allies",
        "text_boxes": _boxes(("left", "First group/person"),
                             ("center", "What they agree on (handshake)"),
                             ("right", "Second group/person")),
    },
    "217743513": {  # UNO Draw 25
        "box_count": 2,
        "format": "comparison",
        "description": "UNO card: do X or draw 25 cards",
        "best_for": "Refusing to do something reasonable/easy, extreme stubbornness",
        "text_boxes": _boxes(("top", "Reasonable thing to do"),
                             ("bottom", "Who refuses to do it")),
    },
    "124822590": {  # Left Exit 12 Off Ramp
        "box_count": 3,
        "format": "comparison",
        "description": "Car swerving to take exit at last second",
        "best_for": "Choosing the unexpected/bad option over the sensible one",
        "text_boxes": _boxes(("panel1", "Expected/sensible path"),
                             ("panel2", "Unexpected choice (exit)"),
                             ("panel3", "Who is swerving (car)")),
    },
    "316433036": {  # They're the Same Picture
        "box_count": 3,
        "format": "comparison",
        "description": "Pam from The Office saying two pictures are the same",
        "best_for": "Two things that seem different but are actually identical",
        "text_boxes": _boxes(("panel1", "First thing"),
                             ("panel2", "Second thing"),
                             ("panel3", "\"They're the same picture\"")),
    },

    # === Reaction (response to a situation) ===
    "155067746": {  # Surprised Pikachu
        "box_count": 2,
        "format": "reaction",
        "description": "Pikachu with shocked face",
        "best_for": "ONLY for predictable outcomes: does X, X happens, shocked",
        "text_boxes": _boxes(("top", "Action with obvious consequence"),
                             ("bottom", "The obvious consequence happens")),
    },
    "252600902": {  # Always Has Been
        "box_count": 2,
        "format": "reaction",
        "description": "Astronaut realizing truth, other astronaut with gun saying \"Always has been\"",
        "best_for": "Revealing something was ALWAYS true, not a recent change",
        "text_boxes": _boxes(("top", "The realization \"Wait, it's all X?\""),
                             ("bottom", "\"Always has been\" confirmation")),
    },
    "438680": {  # Batman Slapping Robin
        "box_count": 2,
        "format": "reaction",
        "description": "Batman slapping Robin mid-sentence",
        "best_for": "Shutting down bad takes, interrupting nonsense, hard corrections",
        "text_boxes": _boxes(("top", "Wrong/annoying thing being said"),
                             ("bottom", "The slap/correction response")),
    },
    "21735": {  # The Rock Driving
        "box_count": 2,
        "format": "reaction",
        "description": "The Rock smiling then looking concerned while driving",
        "best_for": "Conversation that starts good then goes bad, concerning revelations",
        "text_boxes": _boxes(("top", "Normal/pleasant statement"),
                             ("bottom", "Concerning follow-up that changes everything")),
    },
    "97984": {  # Disaster Girl
        "box_count": 2,
        "format": "reaction",
        "description": "Girl smiling deviously while house burns behind her",
        "best_for": "Causing chaos and enjoying it, watching destruction you caused",
        "text_boxes": _boxes(("top", "Setup/context"),
                             ("bottom", "The chaotic thing you did")),
    },
    "123999232": {  # The Scroll of Truth
        "box_count": 2,
        "format": "reaction",
        "description": "Finding scroll of truth and throwing it away in disgust",
        "best_for": "Rejecting uncomfortable truths, denial of reality",
        "text_boxes": _boxes(("top", "The uncomfortable truth on the scroll"),
                             ("bottom", "Rejection reaction")),
    },
    "196652226": {  # Spongebob Ight Imma Head Out
        "box_count": 1,
        "format": "reaction",
        "description": "SpongeBob getting up to leave",
        "best_for": "Leaving a situation, noping out, when you've had enough",
        "text_boxes": _boxes(("top", "Situation making you leave")),
    },
    "226297822": {  # Monkey Puppet
        "box_count": 2,
        "format": "reaction",
        "description": "Puppet monkey looking away nervously",
        "best_for": "Awkward avoidance, pretending not to notice, guilty side-eye",
        "text_boxes": _boxes(("top", "Awkward situation"),
                             ("bottom", "Your nervous reaction")),
    },
    "61544": {  # This Is Fine
        "box_count": 2,
        "format": "reaction",
        "description": "Dog sitting in burning room saying \"This is fine\"",
        "best_for": "Ignoring obvious problems, denial in crisis",
        "text_boxes": _boxes(("top", "The disaster/problem"),
                             ("bottom", "\"This is fine\" / acceptance")),
    },
    "89370399": {  # Roll Safe Think About It
        "box_count": 2,
        "format": "reaction",
        "description": "Guy tapping head with clever/dumb expression",
        "best_for": "Bad logic presented as genius, loopholes, technically-correct thinking",
        "text_boxes": _boxes(("top", "The problem/situation"),
                             ("bottom", "The \"clever\" but dumb solution")),
    },

    # === Label / hot take ===
    "129242436": {  # Change My Mind
        "box_count": 1,
        "format": "label",
        "description": "Man sitting at table with sign saying \"Change My Mind\"",
        "best_for": "Hot takes, controversial opinions stated as facts",
        "text_boxes": _boxes(("center", "Your controversial opinion")),
    },
    "101470": {  # Ancient Aliens
        "box_count": 1,
        "format": "label",
        "description": "Ancient Aliens guy with wild hair gesturing",
        "best_for": "Absurd explanations for everything, conspiracy-style reasoning",
        "text_boxes": _boxes(("bottom", "Your absurd explanation (usually one word)")),
    },

    # === Multi-panel stories ===
    "93895088": {  # Expanding Brain
        "box_count": 4,
        "format": "multi-panel",
        "description": "Brain getting bigger with increasingly \"enlightened\" ideas",
        "best_for": "Escalating absurdity on ONE topic, normal to galaxy brain",
        "text_boxes": _boxes(("panel1", "Normal/basic approach"),
                             ("panel2", "Slightly \"smarter\" approach"),
                             ("panel3", "Big brain approach"),
                             ("panel4", "Galaxy brain (absurd) approach")),
    },
    "178591752": {  # Clown Applying Makeup
        "box_count": 4,
        "format": "multi-panel",
        "description": "Person progressively applying clown makeup",
        "best_for": "Making yourself look like a fool step by step, escalating bad decisions",
        "text_boxes": _boxes(("panel1", "First bad decision"),
                             ("panel2", "Second bad decision"),
                             ("panel3", "Third bad decision"),
                             ("panel4", "Full clown, the result")),
    },
    "79132341": {  # Bike Fall
        "box_count": 3,
        "format": "multi-panel",
        "description": "Person puts stick in own bike wheel and falls",
        "best_for": "Self-sabotage, causing your own problems then blaming others",
        "text_boxes": _boxes(("panel1", "Action causing the problem"),
                             ("panel2", "The self-sabotage"),
                             ("panel3", "Blaming something else")),
    },
    "188390779": {  # Panik Kalm Panik
        "box_count": 3,
        "format": "multi-panel",
        "description": "Three panels: panic, calm, panic again",
        "best_for": "Emotional rollercoaster, relief turning to panic",
        "text_boxes": _boxes(("panel1", "Initial panic situation"),
                             ("panel2", "Why you calm down"),
                             ("panel3", "Why you panic again (worse)")),
    },
    "134797956": {  # Gru's Plan
        "box_count": 4,
        "format": "multi-panel",
        "description": "Gru presenting plan, last panel shows unexpected bad outcome",
        "best_for": "Plans going wrong, unexpected consequences",
        "text_boxes": _boxes(("panel1", "Step 1 of plan"),
                             ("panel2", "Step 2 of plan"),
                             ("panel3", "Unexpected bad outcome"),
                             ("panel4", "Realizing the bad outcome")),
    },
    "1035805": {  # Boardroom Meeting Suggestion
        "box_count": 4,
        "format": "multi-panel",
        "description": "Boss asks for suggestions, throws person out window for bad answer",
        "best_for": "Unpopular but correct opinions getting rejected",
        "text_boxes": _boxes(("panel1", "The question/problem"),
                             ("panel2", "Suggestion 1"),
                             ("panel3", "Suggestion 2"),
                             ("panel4", "Good suggestion that gets you thrown out")),
    },

    # === Top-bottom classics ===
    "61579": {  # One Does Not Simply
        "box_count": 2,
        "format": "top-bottom",
        "description": "Boromir saying \"One does not simply...\"",
        "best_for": "Explaining why something is harder than people think",
        "text_boxes": _boxes(("top", "\"One does not simply\""),
                             ("bottom", "The thing that's actually difficult")),
    },
    "4087833": {  # Waiting Skeleton
        "box_count": 2,
        "format": "top-bottom",
        "description": "Skeleton on bench, has been waiting forever",
        "best_for": "Waiting forever for something that never happens",
        "text_boxes": _boxes(("top", "What you're waiting for"),
                             ("bottom", "Still waiting / how long")),
    },
    "27813981": {  # Hide the Pain Harold
        "box_count": 2,
        "format": "top-bottom",
        "description": "Old man smiling but clearly in pain",
        "best_for": "Hiding suffering, pretending to be okay",
        "text_boxes": _boxes(("top", "The painful situation"),
                             ("bottom", "Pretending it's fine")),
    },
    "102156234": {  # Mocking SpongeBob
        "box_count": 2,
        "format": "top-bottom",
        "description": "SpongeBob mocking with alternating caps",
        "best_for": "Mocking what someone said, sarcastic repetition",
        "text_boxes": _boxes(("top", "What they said (normal)"),
                             ("bottom", "mOcKiNg VeRsIoN")),
    },
    "61520": {  # Futurama Fry
        "box_count": 2,
        "format": "top-bottom",
        "description": "Fry squinting, not sure if X or Y",
        "best_for": "Uncertainty between two interpretations, suspicious questioning",
        "text_boxes": _boxes(("top", "\"Not sure if X\""),
                             ("bottom", "\"Or Y\"")),
    },
    "61580": {  # Too Damn High
        "box_count": 2,
        "format": "top-bottom",
        "description": "Man saying \"is too damn high\"",
        "best_for": "Complaining something is excessive",
        "text_boxes": _boxes(("top", "The number/amount of X"),
                             ("bottom", "\"Is too damn high!\"")),
    },
}


def is_curated(template_id: str) -> bool:
    return template_id in MEME_FORMAT_DATABASE


def get_format_info(template: Dict[str, Any]) -> Dict[str, Any]:
    """
    Layout semantics for a template: curated entry when we have one,
    otherwise a default derived from the template's box count.
    """
    curated = MEME_FORMAT_DATABASE.get(template["id"])
    if curated:
        info = {"id": template["id"], "name": template["name"]}
        info.update(curated)
        info["text_boxes"] = [dict(b) for b in curated["text_boxes"]]
        return info

    box_count = template.get("box_count", 2)
    if box_count == 1:
        fmt = "label"
        boxes = _boxes(("center", "Main text"))
    else:
        fmt = "top-bottom"
        boxes = _boxes(("top", "Setup or first part"),
                       ("bottom", "Punchline or second part"))

    return {
        "id": template["id"],
        "name": template["name"],
        "box_count": box_count,
        "format": fmt,
        "description": f"{template['name']} meme template",
        "best_for": "General meme usage",
        "text_boxes": boxes,
    }
