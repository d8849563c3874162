"""Tests for caption wrapping, placement and the Pillow renderers."""

import io

import pytest
import requests
from PIL import Image

import meme_render
from meme_render import (
    BACKGROUND,
    FULL_TEXT_STYLE,
    THUMBNAIL_TEXT_STYLE,
    caption_anchor_y,
    draw_outlined_text,
    full_size_font,
    layout_lines,
    load_template_image,
    normalize_settings,
    primary_captions,
    render_meme,
    render_thumbnail,
    to_png_bytes,
    wrap_text,
)

from conftest import make_template

GREY = (128, 128, 128)


def char_measure(text):
    return len(text) * 10


def caption(top="", bottom="", fmt="top-bottom", boxes=None):
    if boxes is None:
        boxes = [{"position": "top", "text": top}, {"position": "bottom", "text": bottom}]
    return {
        "template_id": "4087833",
        "template_name": "Waiting Skeleton",
        "reasoning": "",
        "format": fmt,
        "text_boxes": boxes,
        "top_text": top,
        "bottom_text": bottom,
    }


def has_white(image, box):
    extrema = image.crop(box).getextrema()
    return all(hi >= 200 for _, hi in extrema)


def is_flat(image, box, color, tolerance=2):
    extrema = image.crop(box).getextrema()
    return all(abs(lo - c) <= tolerance and abs(hi - c) <= tolerance
               for (lo, hi), c in zip(extrema, color))


class FakeImageResponse:
    def __init__(self, content):
        self.content = content

    def raise_for_status(self):
        pass


class TestWrapText:
    """Greedy word wrap over an injected measure function."""

    def test_short_text_is_one_line(self):
        assert wrap_text("MAKE IT SHORT", 1000, char_measure) == ["MAKE IT SHORT"]

    def test_constant_measure_never_splits(self):
        text = "a very long single word thatcannotbesplit"
        assert wrap_text(text, 50, lambda s: 200) == [text]

    def test_breaks_on_width(self):
        lines = wrap_text("when the bus finally shows up", 120, char_measure)
        assert lines == ["when the bus", "finally", "shows up"]

    def test_words_preserved_in_order(self):
        text = "one two three four five six seven eight nine ten"
        for width in (30, 55, 80, 200):
            lines = wrap_text(text, width, char_measure)
            assert " ".join(lines).split() == text.split()

    def test_only_single_words_overflow(self):
        text = "tiny supercalifragilistic word here"
        lines = wrap_text(text, 60, char_measure)
        for line in lines:
            assert char_measure(line) <= 60 or " " not in line
        assert "supercalifragilistic" in lines

    def test_empty_text(self):
        assert wrap_text("", 100, char_measure) == []
        assert wrap_text("   ", 100, char_measure) == []


class TestLayoutAndDraw:
    """Line layout and draw order against a recording surface."""

    def test_layout_uppercases(self, recording_surface):
        assert layout_lines(recording_surface, "make it short", 1000, 20) == ["MAKE IT SHORT"]

    def test_thumbnail_style_caps_lines(self, recording_surface):
        text = "one two three four five six"
        full = layout_lines(recording_surface, text, 50, 20, FULL_TEXT_STYLE)
        thumb = layout_lines(recording_surface, text, 50, 20, THUMBNAIL_TEXT_STYLE)
        assert len(full) == 6
        assert thumb == ["ONE", "TWO"]

    def test_outline_before_fill_for_each_line(self, recording_surface):
        draw_outlined_text(recording_surface, ["one", "two"], 100, 10, 20, "top")
        kinds = [op[0] for op in recording_surface.ops]
        assert kinds == ["stroke"] * 4 + ["fill"] + ["stroke"] * 4 + ["fill"]

        stroke = recording_surface.ops[0]
        assert stroke[1] == "ONE"
        assert stroke[5] == pytest.approx(3.0)

    def test_top_lines_hang_down(self, recording_surface):
        draw_outlined_text(recording_surface, ["one", "two"], 100, 10, 20, "top")
        fills = [op for op in recording_surface.ops if op[0] == "fill"]
        assert fills[0][3] == pytest.approx(10)
        assert fills[1][3] == pytest.approx(32)

    def test_bottom_lines_stack_up(self, recording_surface):
        draw_outlined_text(recording_surface, ["one", "two"], 100, 200, 20, "bottom")
        fills = [op for op in recording_surface.ops if op[0] == "fill"]
        assert fills[0][3] == pytest.approx(178)
        assert fills[1][3] == pytest.approx(200)
        assert fills[1][5] == "bottom"

    def test_thumbnail_style_uses_three_passes(self, recording_surface):
        draw_outlined_text(recording_surface, ["x"], 0, 0, 10, "top", THUMBNAIL_TEXT_STYLE)
        kinds = [op[0] for op in recording_surface.ops]
        assert kinds == ["stroke", "stroke", "stroke", "fill"]
        assert recording_surface.ops[0][5] == pytest.approx(1.8)


class TestSizing:
    def test_full_size_font(self):
        assert full_size_font(600, 400, 50) == pytest.approx(25)
        assert full_size_font(600, 400, 100) == pytest.approx(50)
        assert full_size_font(600, 800, 50, text_count=4) == pytest.approx(25)
        assert full_size_font(600, 400, 50, text_count=4) == pytest.approx(12.5)

    def test_caption_anchor_y(self):
        assert caption_anchor_y(400, "top", 0, 12) == pytest.approx(12)
        assert caption_anchor_y(400, "top", 50, 12) == pytest.approx(52)
        assert caption_anchor_y(400, "bottom", 50, 12) == pytest.approx(348)

    def test_normalize_settings(self):
        settings = normalize_settings({
            "topFontScale": 500,
            "bottom_vertical_offset": "-5",
            "top_vertical_offset": "abc",
            "bogus": 1,
        })
        assert settings == {
            "top_font_scale": 100,
            "top_vertical_offset": 0,
            "bottom_font_scale": 50,
            "bottom_vertical_offset": 0,
        }

    def test_normalize_settings_defaults(self):
        assert normalize_settings(None)["top_font_scale"] == 50

    @pytest.mark.parametrize("raw", [[1, 2], "big", 7])
    def test_non_mapping_settings_fall_back_to_defaults(self, raw):
        assert normalize_settings(raw) == normalize_settings(None)


class TestPrimaryCaptions:
    def test_top_and_bottom(self):
        assert primary_captions(caption("Tabs", "Spaces")) == ("Tabs", "Spaces")

    def test_center_box_becomes_top(self):
        c = caption(boxes=[{"position": "center", "text": "Hot take"}], fmt="label")
        assert primary_captions(c) == ("Hot take", "")

    def test_left_right_fill_both(self):
        c = caption(boxes=[{"position": "left", "text": "Me"}, {"position": "right", "text": "Bus"}])
        assert primary_captions(c) == ("Me", "Bus")


class TestRenderMeme:
    """Full-size renders with an in-memory source image."""

    def test_scales_down_to_max_width(self):
        source = Image.new("RGB", (1200, 800), GREY)
        image = render_meme(make_template("4087833", "Waiting Skeleton"), caption("Top", "Bottom"), source=source)
        assert image.size == (600, 400)

    def test_small_images_keep_their_size(self):
        source = Image.new("RGB", (300, 200), GREY)
        image = render_meme(make_template("4087833", "Waiting Skeleton"), caption("Top"), source=source)
        assert image.size == (300, 200)

    def test_captions_drawn_at_edges(self):
        source = Image.new("RGB", (600, 400), GREY)
        image = render_meme(make_template("4087833", "Waiting Skeleton"), caption("Waiting", ""), source=source)

        assert has_white(image, (0, 0, 600, 80))
        assert is_flat(image, (0, 320, 600, 400), GREY)

    def test_no_captions_leaves_image_untouched(self):
        source = Image.new("RGB", (600, 400), GREY)
        image = render_meme(make_template("4087833", "Waiting Skeleton"), caption(), source=source)
        assert is_flat(image, (0, 0, 600, 400), GREY)

    def test_multi_panel_text_stays_in_left_column(self):
        boxes = [{"position": f"panel{i}", "text": t}
                 for i, t in enumerate(["walk", "bike", "car", "teleport"], start=1)]
        source = Image.new("RGB", (600, 800), GREY)
        image = render_meme(make_template("93895088", "Expanding Brain", box_count=4),
                            caption(boxes=boxes, fmt="multi-panel"), source=source)

        assert image.size == (600, 800)
        assert has_white(image, (0, 0, 300, 200))
        assert has_white(image, (0, 600, 300, 800))
        assert is_flat(image, (400, 0, 600, 800), GREY)

    def test_placeholder_when_image_fails_to_load(self, monkeypatch):
        def boom(url, timeout):
            raise requests.ConnectionError("offline")

        monkeypatch.setattr(meme_render.requests, "get", boom)
        image = render_meme(make_template("4087833", "Waiting Skeleton"), caption("Top"))

        assert image.size == (300, 300)
        assert image.getpixel((0, 0)) == BACKGROUND
        assert not is_flat(image, (100, 130, 200, 170), BACKGROUND)


class TestRenderThumbnail:
    def test_contain_fit_with_letterbox(self):
        source = Image.new("RGB", (600, 300), GREY)
        image = render_thumbnail(make_template("4087833", "Waiting Skeleton"), caption(), source=source)

        assert image.size == (300, 300)
        assert is_flat(image, (0, 0, 300, 70), BACKGROUND)
        assert is_flat(image, (0, 80, 300, 220), GREY)

    def test_captions_drawn(self):
        source = Image.new("RGB", (300, 300), GREY)
        image = render_thumbnail(make_template("4087833", "Waiting Skeleton"),
                                 caption("Waiting", "Still waiting"), source=source)
        assert has_white(image, (0, 0, 300, 40))
        assert has_white(image, (0, 260, 300, 300))
        assert is_flat(image, (0, 100, 300, 200), GREY)


class TestLoadTemplateImage:
    def test_decodes_image(self, monkeypatch):
        png = to_png_bytes(Image.new("RGBA", (20, 10), (255, 0, 0, 255)))
        monkeypatch.setattr(meme_render.requests, "get",
                            lambda url, timeout: FakeImageResponse(png))

        image = load_template_image("https://i.imgflip.com/x.png")
        assert image.size == (20, 10)
        assert image.mode == "RGB"

    def test_bad_bytes_return_none(self, monkeypatch):
        monkeypatch.setattr(meme_render.requests, "get",
                            lambda url, timeout: FakeImageResponse(b"definitely not an image"))
        assert load_template_image("https://i.imgflip.com/x.png") is None

    def test_empty_url(self):
        assert load_template_image("") is None

    def test_png_bytes_round_trip(self):
        data = to_png_bytes(Image.new("RGB", (4, 4), GREY))
        assert Image.open(io.BytesIO(data)).size == (4, 4)
