"""
Tests for measured layout blocks: text wrapping, splitting and image slots.
"""

from io import BytesIO

import pytest
from reportlab.lib.colors import black
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen.canvas import Canvas

from asset_store import decode_image
from models.design_tokens import DesignTokens
from prescription_layout.blocks import (
    PLACEHOLDER,
    ChipGroup,
    Column,
    ImageSlot,
    KeyValueGrid,
    Paragraph,
    TableHeader,
    TableLayout,
    TableRow,
    TextLine,
    TextRun,
    TitleBar,
    bullet_list,
    fit_text,
    paragraph_from_text,
    wrap_text,
)

WIDTH = 515.28


@pytest.fixture
def tokens():
    return DesignTokens.default()


def _lines(count: int, leading: float = 12.5):
    return [TextLine(text=f"line {i}", font="Helvetica", size=9.5, color=black, leading=leading)
            for i in range(count)]


class TestTextHelpers:

    def test_wrap_respects_width(self):
        text = "Take one tablet twice daily after meals with plenty of water " * 5
        lines = wrap_text(text, "Helvetica", 9.5, 150)
        assert len(lines) > 1
        assert all(stringWidth(line, "Helvetica", 9.5) <= 150 for line in lines)
        assert " ".join(lines).split() == text.split()

    def test_wrap_keeps_explicit_newlines(self):
        assert wrap_text("first\nsecond", "Helvetica", 9.5, 300) == ["first", "second"]

    def test_wrap_breaks_long_word(self):
        word = "Hydroxychloroquine" * 4
        lines = wrap_text(word, "Helvetica", 9.5, 60)
        assert "".join(lines) == word
        assert all(stringWidth(line, "Helvetica", 9.5) <= 60 for line in lines)

    def test_wrap_empty(self):
        assert wrap_text("", "Helvetica", 9.5, 100) == [""]

    def test_fit_text(self):
        assert fit_text("short", "Helvetica", 9, 200) == "short"
        fitted = fit_text("General Medicine and Diabetology and Endocrinology", "Helvetica", 9, 80)
        assert fitted.endswith("...")
        assert stringWidth(fitted, "Helvetica", 9) <= 80


class TestParagraph:

    def test_height_is_sum_of_leading(self):
        paragraph = Paragraph(_lines(4), padding_bottom=2)
        assert paragraph.height == pytest.approx(4 * 12.5 + 2)

    def test_split_between_lines(self):
        paragraph = Paragraph(_lines(10), label="notes", padding_bottom=2)
        head, tail = paragraph.split(40)

        assert len(head.lines) == 3
        assert head.height == pytest.approx(37.5)
        assert len(tail.lines) == 7
        assert tail.continued
        assert tail.label == "notes"

    def test_split_nothing_fits(self):
        paragraph = Paragraph(_lines(3))
        head, tail = paragraph.split(5)
        assert head is None
        assert tail is paragraph

    def test_split_with_room_to_spare_returns_same_block(self):
        paragraph = Paragraph(_lines(3), label="notes", padding_bottom=2)
        paragraph.continued = True
        head, tail = paragraph.split(1000)
        assert head is paragraph
        assert tail is None
        assert head.height == pytest.approx(3 * 12.5 + 2)

    def test_bottom_padding_counts_against_available(self):
        paragraph = Paragraph(_lines(3), padding_bottom=5)
        head, tail = paragraph.split(3 * 12.5 + 1)
        assert len(head.lines) == 2
        assert len(tail.lines) == 1
        assert tail.height == pytest.approx(12.5 + 5)

    def test_forced_split_takes_one_line(self):
        paragraph = Paragraph(_lines(3))
        head, tail = paragraph.split(5, force=True)
        assert len(head.lines) == 1
        assert len(tail.lines) == 2

    def test_paragraph_from_text_wraps(self, tokens):
        paragraph = paragraph_from_text("word " * 400, tokens.typography.body, black, WIDTH)
        assert len(paragraph.lines) > 5
        assert paragraph.first_atom_height() == pytest.approx(tokens.typography.body.lineHeight)

    def test_bullet_list_hangs_continuation_lines(self, tokens):
        paragraph = bullet_list(["a " * 200, "short"], tokens.typography.body, black, 300)
        assert paragraph.lines[0].label == "• "
        assert paragraph.lines[1].label is None
        assert paragraph.lines[1].x > paragraph.lines[0].x


class TestKeyValueGrid:

    def test_missing_values_use_placeholder(self, tokens):
        grid = KeyValueGrid([[("Pulse:", "78 bpm"), ("Temp:", None)]], tokens, WIDTH)
        _, cells = grid.measured_rows[0]
        assert cells[0][3] == ["78 bpm"]
        assert cells[1][3] == [PLACEHOLDER]
        assert cells[1][4] is True

    def test_height(self, tokens):
        grid = KeyValueGrid([[("A:", "1"), ("B:", "2")]] * 3, tokens, WIDTH)
        assert grid.height == pytest.approx(2 * 4 + 3 * 15)

    def test_split_by_rows(self, tokens):
        grid = KeyValueGrid([[("A:", "1"), ("B:", "2")]] * 6, tokens, WIDTH)
        head, tail = grid.split(8 + 2 * 15 + 1)
        assert len(head.measured_rows) == 2
        assert len(tail.measured_rows) == 4


class TestChipGroup:

    def test_chips_wrap_to_new_rows(self, tokens):
        items = [f"Symptom number {i}" for i in range(20)]
        chips = ChipGroup(items, "complaint", tokens, 300)

        assert len(chips.rows) > 1
        assert chips.chip_count() == 20
        for _, row in chips.rows:
            for offset, chip in row:
                assert offset + chip.width <= 300 - chips.indent + 0.01

    def test_wide_chip_wraps_its_text(self, tokens):
        chips = ChipGroup(["very long warning sign " * 10], "warning", tokens, 200)
        (_, row), = chips.rows
        (_, chip), = row
        assert len(chip.lines) > 1
        assert chip.width <= 200 - chips.indent

    def test_split_between_rows(self, tokens):
        items = [f"Item {i} with some text" for i in range(30)]
        chips = ChipGroup(items, "diet", tokens, 250)
        first_row_height = chips.rows[0][0]

        head, tail = chips.split(first_row_height + chips.bottom_padding + 1)
        assert len(head.rows) == 1
        assert head.chip_count() + tail.chip_count() == 30

    def test_split_head_fits_available_with_padding(self, tokens):
        chips = ChipGroup([f"Warning sign number {i}" for i in range(200)], "warning", tokens, WIDTH)
        for available in (40.0, 123.4, 300.0):
            head, tail = chips.split(available)
            assert head.height <= available + 0.01
            assert tail is not None

    def test_first_atom_includes_padding(self, tokens):
        chips = ChipGroup([f"Item {i} with some text" for i in range(30)], "diet", tokens, 250)
        head, _ = chips.split(chips.first_atom_height())
        assert head is not None
        assert len(head.rows) == 1


class TestTable:

    @pytest.fixture
    def table(self, tokens):
        return TableLayout("medications", [Column("No.", 0.1), Column("Medicine", 0.5), Column("Notes", 0.4)],
                           WIDTH, tokens)

    def test_column_widths_from_fractions(self, table):
        assert sum(table.widths) == pytest.approx(WIDTH)
        assert table.widths[1] == pytest.approx(WIDTH * 0.5)
        assert table.offsets[2] == pytest.approx(WIDTH * 0.6)

    def test_short_row_uses_minimum_height(self, table, tokens):
        row = TableRow(table, 1, [[TextRun("1")], [TextRun("Paracetamol")], [TextRun("-")]])
        assert row.height == pytest.approx(tokens.spacing.min_row_height)
        assert row.label == "medications:1"

    def test_tall_row_grows(self, table):
        row = TableRow(table, 1, [[TextRun("1")], [TextRun("Paracetamol")], [TextRun("note " * 100)]])
        assert row.height > 22

    def test_oversized_row_splits_between_lines(self, table):
        header = TableHeader(table)
        row = TableRow(table, 3, [[TextRun("3")], [TextRun("Insulin")], [TextRun("dose adjustment " * 400)]])
        row.repeat_header = header

        head, tail = row.split(200)
        assert head.height <= 200
        assert head.kind == "table_row"
        assert tail.kind == "table_row_continued"
        assert tail.repeat_header is header
        assert len(head.cell_lines[2]) + len(tail.cell_lines[2]) == len(row.cell_lines[2])


class TestImageSlot:

    def test_optional_slot_collapses(self, tokens):
        slot = ImageSlot(None, 56, 56, tokens, collapse_when_missing=True)
        assert slot.collapsed
        assert slot.width == 0
        assert slot.height == 0

    def test_placeholder_keeps_footprint(self, tokens):
        slot = ImageSlot(None, 150, 50, tokens, placeholder_lines=["DOCTOR'S", "STAMP"], bordered=True)
        assert (slot.width, slot.height) == (150, 50)

    def test_draw_image_and_fallbacks(self, tokens, png_bytes):
        c = Canvas(BytesIO())
        ImageSlot(decode_image(png_bytes), 120, 65, tokens, align="right").draw(c, 10, 10)
        ImageSlot(None, 120, 65, tokens, fallback_text="Sunrise Family Clinic", align="right").draw(c, 10, 10)
        ImageSlot(None, 150, 50, tokens, placeholder_lines=["DOCTOR'S", "STAMP", "(Digital Signature)"],
                  bordered=True).draw(c, 10, 10)
        c.save()


class TestDrawing:

    def test_blocks_draw_on_canvas(self, tokens):
        buffer = BytesIO()
        c = Canvas(buffer)
        table = TableLayout("t", [Column("A", 1), Column("B", 2)], WIDTH, tokens)
        top = 800
        for block in [
            TitleBar("PRESCRIBED MEDICATIONS", tokens, WIDTH),
            TableHeader(table),
            TableRow(table, 1, [[TextRun("1")], [TextRun("Amoxicillin", style="small_bold")]]),
            ChipGroup(["Fever", "Cough"], "complaint", tokens, WIDTH),
            KeyValueGrid([[("Name:", "Ravi"), ("Email:", None)]], tokens, WIDTH),
        ]:
            block.draw(c, 40, top)
            top -= block.height
        c.save()
        assert buffer.getvalue().startswith(b"%PDF")
