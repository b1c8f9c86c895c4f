"""
Measurable drawing blocks for the prescription layout engine.

A block is measured when it is built: `height` is known before anything is
drawn, so the flow controller can decide where page breaks fall without
touching the canvas. `draw(c, x, top)` paints the block with its top edge at
`top`. Blocks that may need to span pages expose `split(available)`, which
cuts at a line (or chip row, or grid row) boundary.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from reportlab.lib.colors import Color
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen.canvas import Canvas

from models.design_tokens import DesignTokens, TypographyToken
from prescription_layout.geometry import EPSILON

logger = logging.getLogger(__name__)

PLACEHOLDER = "Not recorded"


# ============================================================================
# TEXT HELPERS
# ============================================================================

def _break_word(word: str, font: str, size: float, max_width: float) -> List[str]:
    """Hard-break a single word that is wider than the line"""
    if stringWidth(word, font, size) <= max_width:
        return [word]
    pieces = []
    current = ""
    for ch in word:
        if current and stringWidth(current + ch, font, size) > max_width:
            pieces.append(current)
            current = ch
        else:
            current += ch
    if current:
        pieces.append(current)
    return pieces


def wrap_text(text: str, font: str, size: float, max_width: float) -> List[str]:
    """Greedy word wrap; explicit newlines start new lines"""
    lines: List[str] = []
    for raw_line in str(text or "").split("\n"):
        words = raw_line.split()
        if not words:
            lines.append("")
            continue
        current = ""
        for word in words:
            for piece in _break_word(word, font, size, max_width):
                candidate = f"{current} {piece}" if current else piece
                if stringWidth(candidate, font, size) <= max_width:
                    current = candidate
                else:
                    if current:
                        lines.append(current)
                    current = piece
        if current:
            lines.append(current)
    return lines or [""]


def fit_text(text: str, font: str, size: float, max_width: float) -> str:
    """Truncate with an ellipsis so the text fits on one line"""
    text = str(text or "")
    if stringWidth(text, font, size) <= max_width:
        return text
    while text and stringWidth(text + "...", font, size) > max_width:
        text = text[:-1]
    return text.rstrip() + "..."


# ============================================================================
# BASE BLOCKS
# ============================================================================

class Block:
    """A measured, drawable unit of content"""
    kind = "block"
    splittable = False
    keep_with_next = False
    discardable = False

    def __init__(self, label: Optional[str] = None):
        self.label = label
        self.height = 0.0
        # Drawn again at the top of a continuation page before this block
        self.repeat_header: Optional["Block"] = None

    def first_atom_height(self) -> float:
        """Height of the smallest leading piece that may sit alone on a page"""
        return self.height

    def draw(self, c: Canvas, x: float, top: float):
        raise NotImplementedError

    def split(self, available: float, force: bool = False) -> Tuple[Optional["Block"], Optional["Block"]]:
        """(head that fits in `available`, remainder); head is None when nothing fits"""
        raise NotImplementedError(f"{type(self).__name__} cannot be split")


class Spacer(Block):
    """Vertical gap; dropped when it falls on a page break"""
    kind = "spacer"
    discardable = True

    def __init__(self, height: float):
        super().__init__()
        self.height = height

    def draw(self, c: Canvas, x: float, top: float):
        pass


@dataclass(frozen=True)
class TextLine:
    text: str
    font: str
    size: float
    color: Color
    leading: float
    x: float = 0.0
    label: Optional[str] = None
    label_font: Optional[str] = None
    label_color: Optional[Color] = None
    underline: bool = False


class Paragraph(Block):
    """Pre-wrapped lines of text; splits between lines"""
    kind = "paragraph"
    splittable = True

    def __init__(self, lines: Sequence[TextLine], label: Optional[str] = None, padding_bottom: float = 0.0):
        super().__init__(label)
        self.lines = list(lines)
        self.padding_bottom = padding_bottom
        self.continued = False
        self.height = sum(line.leading for line in self.lines) + padding_bottom

    def first_atom_height(self) -> float:
        if not self.lines:
            return self.height
        if len(self.lines) == 1:
            return self.height
        return self.lines[0].leading

    def draw(self, c: Canvas, x: float, top: float):
        y = top
        for line in self.lines:
            baseline = y - line.size
            line_x = x + line.x
            if line.label:
                c.setFont(line.label_font or line.font, line.size)
                c.setFillColor(line.label_color or line.color)
                c.drawString(line_x, baseline, line.label)
                line_x += stringWidth(line.label, line.label_font or line.font, line.size)
            if line.text:
                c.setFont(line.font, line.size)
                c.setFillColor(line.color)
                c.drawString(line_x, baseline, line.text)
                if line.underline:
                    text_width = stringWidth(line.text, line.font, line.size)
                    c.setStrokeColor(line.color)
                    c.setLineWidth(0.5)
                    c.line(line_x, baseline - 1.5, line_x + text_width, baseline - 1.5)
            y -= line.leading

    def split(self, available: float, force: bool = False):
        used = 0.0
        count = 0
        for line in self.lines:
            if used + line.leading > available + EPSILON:
                break
            used += line.leading
            count += 1

        if count >= len(self.lines) and used + self.padding_bottom > available + EPSILON:
            # Every line fits but the bottom padding does not: leave the last line for the tail
            count -= 1
        if count == 0:
            if not force:
                return None, self
            count = 1
        if count >= len(self.lines):
            return self, None

        head = Paragraph(self.lines[:count], self.label)
        head.continued = self.continued
        tail = Paragraph(self.lines[count:], self.label, self.padding_bottom)
        tail.continued = True
        return head, tail


def paragraph_from_text(
    text: str,
    token: TypographyToken,
    color: Color,
    width: float,
    label: Optional[str] = None,
    indent: float = 0.0,
    padding_bottom: float = 0.0,
) -> Paragraph:
    font, size = token.to_reportlab_font()
    lines = [
        TextLine(text=line, font=font, size=size, color=color, leading=token.lineHeight, x=indent)
        for line in wrap_text(text, font, size, width - indent)
    ]
    return Paragraph(lines, label=label, padding_bottom=padding_bottom)


def bullet_list(
    items: Sequence[str],
    token: TypographyToken,
    color: Color,
    width: float,
    label: Optional[str] = None,
    indent: float = 15.0,
    padding_bottom: float = 0.0,
    bullet: str = "•",
) -> Paragraph:
    font, size = token.to_reportlab_font()
    marker = f"{bullet} "
    hang = stringWidth(marker, font, size)
    lines = []
    for item in items:
        for i, text in enumerate(wrap_text(item, font, size, width - indent - hang)):
            lines.append(TextLine(
                text=text, font=font, size=size, color=color, leading=token.lineHeight,
                x=indent + (0 if i == 0 else hang),
                label=marker if i == 0 else None,
            ))
    return Paragraph(lines, label=label, padding_bottom=padding_bottom)


def labeled_lines(
    pairs: Sequence[Tuple[str, str]],
    label_token: TypographyToken,
    value_token: TypographyToken,
    color: Color,
    width: float,
    label: Optional[str] = None,
    indent: float = 10.0,
    padding_bottom: float = 0.0,
    underline_first: bool = False,
) -> Paragraph:
    """Bold "Label:" followed by a wrapped value, one pair per logical line"""
    label_font, size = label_token.to_reportlab_font()
    value_font, value_size = value_token.to_reportlab_font()
    leading = max(label_token.lineHeight, value_token.lineHeight)
    lines = []
    for index, (name, value) in enumerate(pairs):
        prefix = f"{name} "
        prefix_width = stringWidth(prefix, label_font, size)
        wrapped = wrap_text(value, value_font, value_size, width - indent - prefix_width)
        for i, text in enumerate(wrapped):
            lines.append(TextLine(
                text=text, font=value_font, size=value_size, color=color, leading=leading,
                x=indent + (0 if i == 0 else prefix_width),
                label=prefix if i == 0 else None,
                label_font=label_font,
                underline=underline_first and index == 0,
            ))
    return Paragraph(lines, label=label, padding_bottom=padding_bottom)


# ============================================================================
# TITLES
# ============================================================================

class TitleBar(Block):
    """Section title: white text on a dark bar"""
    kind = "section_title"
    keep_with_next = True

    def __init__(self, title: str, tokens: DesignTokens, width: float, label: Optional[str] = None):
        super().__init__(label or title)
        self.title = title
        self.tokens = tokens
        self.width = width
        self.bar_height = tokens.layout.title_bar_height
        self.height = self.bar_height + tokens.spacing.title_bar_gap

    def draw(self, c: Canvas, x: float, top: float):
        colors = self.tokens.colors.to_hex_colors()
        font, size = self.tokens.typography.section_title.to_reportlab_font()

        c.setFillColor(colors["section"])
        c.rect(x, top - self.bar_height, self.width, self.bar_height, fill=1, stroke=0)
        c.setFillColor(colors["white"])
        c.setFont(font, size)
        c.drawString(x + 8, top - self.bar_height + 6, fit_text(self.title, font, size, self.width - 16))


class SubTitle(Block):
    """Bold sub-heading inside a section"""
    kind = "subsection_title"
    keep_with_next = True

    def __init__(self, text: str, tokens: DesignTokens, color: Optional[Color] = None,
                 label: Optional[str] = None, indent: float = 10.0, width: float = 0.0):
        super().__init__(label or text)
        self.text = text
        self.tokens = tokens
        self.color = color
        self.indent = indent
        self.width = width
        self.height = tokens.typography.subsection_title.lineHeight

    def draw(self, c: Canvas, x: float, top: float):
        font, size = self.tokens.typography.subsection_title.to_reportlab_font()
        c.setFont(font, size)
        c.setFillColor(self.color or self.tokens.colors.to_hex_colors()["text"])
        text = self.text
        if self.width:
            text = fit_text(text, font, size, self.width - self.indent)
        c.drawString(x + self.indent, top - size, text)


# ============================================================================
# KEY-VALUE GRID
# ============================================================================

class KeyValueGrid(Block):
    """
    Label/value pairs in a fixed-column grid.

    Missing values are written as "Not recorded" so the columns stay aligned.
    """
    kind = "key_value"
    splittable = True

    def __init__(self, rows: Sequence[Sequence[Tuple[str, Optional[str]]]], tokens: DesignTokens,
                 width: float, columns: int = 2, label: Optional[str] = None, framed: bool = True,
                 _measured: Optional[List[Tuple[float, list]]] = None):
        super().__init__(label)
        self.tokens = tokens
        self.width = width
        self.columns = columns
        self.framed = framed
        self.padding = 4.0
        self.inner_x = 10.0

        typo = tokens.typography
        self.label_font, self.size = typo.small_bold.to_reportlab_font()
        self.value_font, _ = typo.small.to_reportlab_font()
        self.leading = typo.small.lineHeight

        if _measured is not None:
            self.measured_rows = _measured
        else:
            self.measured_rows = [self._measure_row(row) for row in rows]
        self.height = self.padding * 2 + sum(h for h, _ in self.measured_rows)

    def _measure_row(self, row):
        col_width = (self.width - self.inner_x * 2) / self.columns
        cells = []
        max_lines = 1
        for col, (name, value) in enumerate(row[:self.columns]):
            prefix = f"{name} "
            prefix_width = stringWidth(prefix, self.label_font, self.size)
            shown = value if value is not None else PLACEHOLDER
            value_lines = wrap_text(shown, self.value_font, self.size, max(col_width - prefix_width - 6, 20))
            cells.append((col, prefix, prefix_width, value_lines, value is None))
            max_lines = max(max_lines, len(value_lines))
        row_height = max(self.tokens.spacing.grid_row_height, max_lines * self.leading + 3)
        return row_height, cells

    def first_atom_height(self) -> float:
        if not self.measured_rows:
            return self.height
        return self.padding * 2 + self.measured_rows[0][0]

    def draw(self, c: Canvas, x: float, top: float):
        colors = self.tokens.colors.to_hex_colors()
        if self.framed:
            c.setFillColor(colors["light_bg"])
            c.rect(x, top - self.height, self.width, self.height, fill=1, stroke=0)
            c.setStrokeColor(colors["section"])
            c.setLineWidth(1.5)
            c.rect(x, top - self.height, self.width, self.height, fill=0, stroke=1)

        col_width = (self.width - self.inner_x * 2) / self.columns
        y = top - self.padding
        for row_height, cells in self.measured_rows:
            for col, prefix, prefix_width, value_lines, missing in cells:
                cell_x = x + self.inner_x + col * col_width
                baseline = y - self.size - 1
                c.setFont(self.label_font, self.size)
                c.setFillColor(colors["text"])
                c.drawString(cell_x, baseline, prefix)
                c.setFont(self.value_font, self.size)
                c.setFillColor(colors["muted"] if missing else colors["text"])
                for i, text in enumerate(value_lines):
                    c.drawString(cell_x + prefix_width, baseline - i * self.leading, text)
            y -= row_height

    def split(self, available: float, force: bool = False):
        budget = available - self.padding * 2
        used = 0.0
        count = 0
        for row_height, _ in self.measured_rows:
            if used + row_height > budget + EPSILON:
                break
            used += row_height
            count += 1
        if count == 0:
            if not force:
                return None, self
            count = 1
        if count >= len(self.measured_rows):
            return self, None
        head = KeyValueGrid([], self.tokens, self.width, self.columns, self.label, self.framed,
                            _measured=self.measured_rows[:count])
        tail = KeyValueGrid([], self.tokens, self.width, self.columns, self.label, self.framed,
                            _measured=self.measured_rows[count:])
        return head, tail


# ============================================================================
# CHIP GROUP
# ============================================================================

@dataclass(frozen=True)
class _Chip:
    lines: Tuple[str, ...]
    width: float
    height: float


class ChipGroup(Block):
    """
    Tag chips flowing left to right, wrapping to a new row when the next chip
    would overflow the content width. Splits between chip rows only.
    """
    kind = "chips"
    splittable = True

    def __init__(self, items: Sequence[str], category: str, tokens: DesignTokens, width: float,
                 label: Optional[str] = None, indent: float = 10.0,
                 _rows: Optional[List[Tuple[float, List[Tuple[float, _Chip]]]]] = None):
        super().__init__(label or category)
        self.category = category
        self.tokens = tokens
        self.width = width
        self.indent = indent
        self.font, self.size = tokens.typography.chip.to_reportlab_font()
        self.leading = tokens.typography.chip.lineHeight
        self.gap = tokens.spacing.chip_gap
        self.bottom_padding = tokens.spacing.subsection_gap + 2

        self.rows = _rows if _rows is not None else self._layout(items)
        self.height = self._rows_height(self.rows) + self.bottom_padding

    def _measure(self, text: str) -> _Chip:
        spacing = self.tokens.spacing
        max_inner = self.width - self.indent - spacing.chip_padding_x * 2
        lines = wrap_text(text, self.font, self.size, max_inner)
        text_width = max(stringWidth(line, self.font, self.size) for line in lines)
        return _Chip(
            lines=tuple(lines),
            width=min(text_width + spacing.chip_padding_x * 2, self.width - self.indent),
            height=len(lines) * self.leading + spacing.chip_padding_y * 2,
        )

    def _layout(self, items: Sequence[str]):
        available = self.width - self.indent
        rows = []
        current: List[Tuple[float, _Chip]] = []
        cursor = 0.0
        for item in items:
            chip = self._measure(item)
            if current and cursor + chip.width > available + EPSILON:
                rows.append((max(ch.height for _, ch in current), current))
                current = []
                cursor = 0.0
            current.append((cursor, chip))
            cursor += chip.width + self.gap
        if current:
            rows.append((max(ch.height for _, ch in current), current))
        return rows

    def _rows_height(self, rows) -> float:
        if not rows:
            return 0.0
        return sum(h for h, _ in rows) + self.gap * (len(rows) - 1)

    def chip_count(self) -> int:
        return sum(len(chips) for _, chips in self.rows)

    def first_atom_height(self) -> float:
        if len(self.rows) <= 1:
            return self.height
        return self.rows[0][0] + self.bottom_padding

    def draw(self, c: Canvas, x: float, top: float):
        fill, text_color = self.tokens.chips.for_category(self.category)
        pad_x = self.tokens.spacing.chip_padding_x
        pad_y = self.tokens.spacing.chip_padding_y

        y = top
        for row_height, chips in self.rows:
            for offset, chip in chips:
                chip_x = x + self.indent + offset
                radius = min(chip.height / 2, 8)
                c.setFillColor(fill)
                c.roundRect(chip_x, y - chip.height, chip.width, chip.height, radius, fill=1, stroke=0)
                c.setFillColor(text_color)
                c.setFont(self.font, self.size)
                for i, line in enumerate(chip.lines):
                    c.drawString(chip_x + pad_x, y - pad_y - self.size - i * self.leading + 1, line)
            y -= row_height + self.gap

    def split(self, available: float, force: bool = False):
        budget = available - self.bottom_padding
        used = 0.0
        count = 0
        for row_height, _ in self.rows:
            extra = row_height + (self.gap if count else 0)
            if used + extra > budget + EPSILON:
                break
            used += extra
            count += 1
        if count == 0:
            if not force:
                return None, self
            count = 1
        if count >= len(self.rows):
            return self, None
        head = ChipGroup([], self.category, self.tokens, self.width, self.label, self.indent, _rows=self.rows[:count])
        tail = ChipGroup([], self.category, self.tokens, self.width, self.label, self.indent, _rows=self.rows[count:])
        return head, tail


# ============================================================================
# TABLES
# ============================================================================

@dataclass(frozen=True)
class Column:
    title: str
    fraction: float
    align: str = "left"  # "left" or "center"


@dataclass(frozen=True)
class TextRun:
    """One styled paragraph inside a table cell"""
    text: str
    style: str = "table_cell"  # typography token name
    color: str = "text"        # color token name


class TableLayout:
    """Column widths, computed once from the content width"""

    def __init__(self, name: str, columns: Sequence[Column], width: float, tokens: DesignTokens):
        self.name = name
        self.columns = list(columns)
        self.width = width
        self.tokens = tokens
        total = sum(col.fraction for col in self.columns)
        self.widths = [width * col.fraction / total for col in self.columns]
        self.offsets = []
        offset = 0.0
        for w in self.widths:
            self.offsets.append(offset)
            offset += w

    def draw_borders(self, c: Canvas, x: float, top: float, height: float, color: Color, line_width: float):
        c.setStrokeColor(color)
        c.setLineWidth(line_width)
        c.line(x, top - height, x + self.width, top - height)
        for offset in self.offsets + [self.width]:
            c.line(x + offset, top, x + offset, top - height)


class TableHeader(Block):
    """Column titles; repeated on every page a table spans"""
    kind = "table_header"
    keep_with_next = True

    def __init__(self, table: TableLayout):
        super().__init__(table.name)
        self.table = table
        self.bar_height = 18.0
        self.height = self.bar_height + 2.0

    def draw(self, c: Canvas, x: float, top: float):
        tokens = self.table.tokens
        colors = tokens.colors.to_hex_colors()
        font, size = tokens.typography.table_header.to_reportlab_font()

        c.setFillColor(colors["table_header"])
        c.rect(x, top - self.bar_height, self.table.width, self.bar_height, fill=1, stroke=0)

        c.setFillColor(colors["text"])
        c.setFont(font, size)
        for col, width, offset in zip(self.table.columns, self.table.widths, self.table.offsets):
            title = fit_text(col.title, font, size, width - 6)
            if col.align == "center":
                c.drawCentredString(x + offset + width / 2, top - 13, title)
            else:
                c.drawString(x + offset + 4, top - 13, title)

        c.setStrokeColor(colors["text"])
        c.setLineWidth(0.5)
        c.line(x, top, x + self.table.width, top)
        self.table.draw_borders(c, x, top, self.bar_height, colors["text"], 0.5)


class TableRow(Block):
    """
    One table row. Every cell is wrapped to its column width before the row
    is placed, so the row is moved to the next page whole when it does not fit.
    """
    kind = "table_row"
    splittable = True

    def __init__(self, table: TableLayout, index: int, cells: Optional[Sequence[Sequence[TextRun]]] = None,
                 _lines: Optional[List[List[TextLine]]] = None, continued: bool = False):
        super().__init__(f"{table.name}:{index}")
        self.table = table
        self.index = index
        self.padding = table.tokens.spacing.cell_padding
        self.continued = continued
        if continued:
            self.kind = "table_row_continued"

        self.cell_lines = _lines if _lines is not None else [
            self._wrap_cell(runs, col_index) for col_index, runs in enumerate(cells or [])
        ]
        content = max((sum(line.leading for line in lines) for lines in self.cell_lines), default=0.0)
        minimum = 0.0 if continued or _lines is not None else table.tokens.spacing.min_row_height
        self.height = max(minimum, content + self.padding * 2)

    def _wrap_cell(self, runs: Sequence[TextRun], col_index: int) -> List[TextLine]:
        tokens = self.table.tokens
        colors = tokens.colors.to_hex_colors()
        inner = self.table.widths[col_index] - self.padding * 2
        lines = []
        for run in runs:
            token = getattr(tokens.typography, run.style)
            font, size = token.to_reportlab_font()
            for text in wrap_text(run.text, font, size, inner):
                lines.append(TextLine(text=text, font=font, size=size, color=colors[run.color],
                                      leading=token.lineHeight))
        return lines

    def first_atom_height(self) -> float:
        leadings = [lines[0].leading for lines in self.cell_lines if lines]
        if not leadings:
            return self.height
        return min(self.height, max(leadings) + self.padding * 2)

    def draw(self, c: Canvas, x: float, top: float):
        colors = self.table.tokens.colors.to_hex_colors()
        for col_index, lines in enumerate(self.cell_lines):
            column = self.table.columns[col_index]
            width = self.table.widths[col_index]
            cell_x = x + self.table.offsets[col_index]
            y = top - self.padding
            for line in lines:
                c.setFont(line.font, line.size)
                c.setFillColor(line.color)
                if column.align == "center":
                    c.drawCentredString(cell_x + width / 2, y - line.size, line.text)
                else:
                    c.drawString(cell_x + self.padding, y - line.size, line.text)
                y -= line.leading
        self.table.draw_borders(c, x, top, self.height, colors["border"], 0.3)

    def split(self, available: float, force: bool = False):
        budget = available - self.padding * 2
        heads, tails = [], []
        for lines in self.cell_lines:
            used = 0.0
            count = 0
            for line in lines:
                if used + line.leading > budget + EPSILON:
                    break
                used += line.leading
                count += 1
            heads.append(lines[:count])
            tails.append(lines[count:])

        if not any(heads):
            if not force:
                return None, self
            heads = [lines[:1] for lines in self.cell_lines]
            tails = [lines[1:] for lines in self.cell_lines]
        if not any(tails):
            return self, None

        head = TableRow(self.table, self.index, _lines=heads, continued=self.continued)
        head.repeat_header = self.repeat_header
        tail = TableRow(self.table, self.index, _lines=tails, continued=True)
        tail.repeat_header = self.repeat_header
        return head, tail


# ============================================================================
# IMAGE SLOT
# ============================================================================

class ImageSlot:
    """
    Fixed-footprint area for an optional image.

    With no image the slot either draws a bordered placeholder / fallback text
    inside the same footprint, or collapses to zero size when it is optional.
    """

    def __init__(self, image: Optional[ImageReader], max_width: float, max_height: float,
                 tokens: DesignTokens, fallback_text: Optional[str] = None,
                 placeholder_lines: Sequence[str] = (), bordered: bool = False,
                 collapse_when_missing: bool = False, align: str = "left",
                 fallback_style: str = "clinic_name"):
        self.image = image
        self.max_width = max_width
        self.max_height = max_height
        self.tokens = tokens
        self.fallback_text = fallback_text
        self.placeholder_lines = list(placeholder_lines)
        self.bordered = bordered
        self.collapse_when_missing = collapse_when_missing
        self.align = align
        self.fallback_style = fallback_style

    @property
    def collapsed(self) -> bool:
        return self.image is None and self.collapse_when_missing

    @property
    def width(self) -> float:
        return 0.0 if self.collapsed else self.max_width

    @property
    def height(self) -> float:
        return 0.0 if self.collapsed else self.max_height

    def draw(self, c: Canvas, x: float, y: float):
        """Draw with the slot's bottom-left corner at (x, y)"""
        if self.image is not None:
            try:
                self._draw_image(c, x, y)
                return
            except Exception as e:
                logger.warning(f"Failed to draw branding image, using fallback: {e}")
        if self.collapsed:
            return
        self._draw_fallback(c, x, y)

    def _draw_image(self, c: Canvas, x: float, y: float):
        img_width, img_height = self.image.getSize()
        scale = min(self.max_width / img_width, self.max_height / img_height)
        width = img_width * scale
        height = img_height * scale

        if self.align == "right":
            img_x = x + self.max_width - width
        elif self.align == "center":
            img_x = x + (self.max_width - width) / 2
        else:
            img_x = x
        img_y = y + (self.max_height - height) / 2

        c.drawImage(self.image, img_x, img_y, width=width, height=height,
                    preserveAspectRatio=True, mask="auto")

    def _draw_fallback(self, c: Canvas, x: float, y: float):
        colors = self.tokens.colors.to_hex_colors()
        typo = self.tokens.typography

        if self.bordered:
            c.setStrokeColor(colors["text"])
            c.setLineWidth(1)
            c.rect(x, y, self.max_width, self.max_height, fill=0, stroke=1)

        if self.placeholder_lines:
            font, size = typo.small_bold.to_reportlab_font()
            leading = size + 3
            block_height = leading * len(self.placeholder_lines)
            line_y = y + (self.max_height + block_height) / 2 - size
            for i, line in enumerate(self.placeholder_lines):
                # Parenthesised lines are secondary
                if line.startswith("("):
                    c.setFont(typo.caption.fontFamily, typo.caption.fontSize)
                    c.setFillColor(colors["muted"])
                else:
                    c.setFont(font, size)
                    c.setFillColor(colors["text"])
                c.drawCentredString(x + self.max_width / 2, line_y - i * leading, line)

        if self.fallback_text:
            font, size = getattr(typo, self.fallback_style).to_reportlab_font()
            text = fit_text(self.fallback_text, font, size, self.max_width)
            c.setFont(font, size)
            c.setFillColor(colors["primary"])
            text_y = y + (self.max_height - size) / 2
            if self.align == "right":
                c.drawRightString(x + self.max_width, text_y, text)
            elif self.align == "center":
                c.drawCentredString(x + self.max_width / 2, text_y, text)
            else:
                c.drawString(x, text_y, text)
