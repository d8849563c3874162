"""Shared fixtures: a small template catalog and a scriptable generation stub."""

import pytest

from template_catalog import TemplateCatalog


def make_template(template_id, name, box_count=2, width=500, height=400):
    return {
        "id": template_id,
        "name": name,
        "url": f"https://i.imgflip.com/{template_id}.jpg",
        "width": width,
        "height": height,
        "box_count": box_count,
    }


@pytest.fixture
def templates():
    curated = [
        make_template("181913649", "Drake Hotline Bling"),
        make_template("161865971", "Tuxedo Winnie the Pooh"),
        make_template("155067746", "Surprised Pikachu"),
        make_template("129242436", "Change My Mind", box_count=1),
        make_template("438680", "Batman Slapping Robin"),
        make_template("252600902", "Always Has Been"),
        make_template("4087833", "Waiting Skeleton"),
        make_template("93895088", "Expanding Brain", box_count=4),
    ]
    generic = [make_template(str(9000 + i), f"Generic Meme {i}") for i in range(12)]
    return curated + generic


@pytest.fixture
def catalog(templates):
    return TemplateCatalog(fetch=lambda: templates)


class FakeGenerator:
    """
    Stands in for the text generation service.

    Replies are routed by prompt kind. A reply of None or an Exception makes
    the call raise; `matches` is consumed one reply per match call.
    """

    def __init__(self, premise=None, matches=(), simplify=None):
        self.premise = premise
        self.matches = list(matches)
        self.simplify = simplify
        self.calls = []

    def __call__(self, prompt, max_tokens=1500, temperature=0.8):
        if "meme premises" in prompt:
            kind, reply = "premise", self.premise
        elif "Rewrite this text" in prompt:
            kind, reply = "simplify", self.simplify
        else:
            kind = "match"
            reply = self.matches.pop(0) if self.matches else None
        self.calls.append((kind, prompt))

        if reply is None:
            raise RuntimeError(f"{kind} service unavailable")
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def kinds(self):
        return [kind for kind, _ in self.calls]

    def prompts(self, kind):
        return [prompt for k, prompt in self.calls if k == kind]


@pytest.fixture
def fake_generator_cls():
    return FakeGenerator


class RecordingSurface:
    """Drawing surface that measures 10px per character and records calls."""

    def __init__(self, char_width=10):
        self.char_width = char_width
        self.ops = []

    def measure_text(self, text, font_size):
        return len(text) * self.char_width

    def stroke_text(self, text, x, y, font_size, line_width, align="center"):
        self.ops.append(("stroke", text, x, y, font_size, line_width, align))

    def fill_text(self, text, x, y, font_size, align="center", fill=None):
        self.ops.append(("fill", text, x, y, font_size, align))

    def draw_image(self, image, x, y, width, height):
        self.ops.append(("image", x, y, width, height))


@pytest.fixture
def recording_surface():
    return RecordingSurface()
