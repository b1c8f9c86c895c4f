"""
Canvas that stamps "Page N of M" on every page once the total is known.
"""

from typing import Any, Callable, Dict, List, Optional

from reportlab.pdfgen import canvas

from models.design_tokens import DesignTokens


def draw_page_number(c: canvas.Canvas, page_number: int, page_count: int, tokens: DesignTokens):
    """Small centred page-number line inside the reserved footer band"""
    colors = tokens.colors.to_hex_colors()
    font, size = tokens.typography.caption.to_reportlab_font()
    layout = tokens.layout

    c.saveState()
    c.setFont(font, size)
    c.setFillColor(colors["muted"])
    c.drawCentredString(layout.page_width / 2, layout.margin / 2, f"Page {page_number} of {page_count}")
    c.restoreState()


class NumberedCanvas(canvas.Canvas):
    """
    Deferred-footer canvas.

    showPage() only stores the page state; save() replays every stored page,
    calls the footer callback with the final page count and then writes the
    file. Base Canvas.save() is not used because it calls self.showPage().
    """

    def __init__(self, *args, footer_cb: Optional[Callable[[canvas.Canvas, int, int], None]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states: List[Dict[str, Any]] = []
        self._footer_cb = footer_cb

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    @property
    def page_count(self) -> int:
        return len(self._saved_page_states)

    def save(self):
        if len(self._code) or not self._saved_page_states:
            self._saved_page_states.append(dict(self.__dict__))

        total_pages = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            if callable(self._footer_cb):
                self._footer_cb(self, self._pageNumber, total_pages)
            canvas.Canvas.showPage(self)

        self._code = []
        self._doc.SaveToFile(self._filename, self)
