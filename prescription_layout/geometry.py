"""
Page geometry and the vertical write cursor.

Coordinates follow ReportLab: the origin is the bottom-left corner and the
cursor moves down the page as content is written, so `current_y` shrinks.
"""

from models.design_tokens import LayoutTokens

# Tolerance for float comparisons on heights
EPSILON = 0.01


class PageGeometry:
    """
    Cursor over one logical page at a time.

    The usable band runs from `content_top` (page height minus margin) down to
    `content_bottom` (the reserved footer band). The flow controller owns one
    instance per render and is its only writer.
    """

    def __init__(self, layout: LayoutTokens):
        self.layout = layout
        if self.content_top - self.content_bottom <= layout.running_header_height:
            raise ValueError(
                f"Page geometry leaves no room for content: top={self.content_top}, "
                f"bottom={self.content_bottom}, running header={layout.running_header_height}"
            )
        self.page_number = 1
        self.current_y = self.content_top
        self.body_top = self.content_top

    @property
    def page_width(self) -> float:
        return self.layout.page_width

    @property
    def page_height(self) -> float:
        return self.layout.page_height

    @property
    def content_left(self) -> float:
        return self.layout.margin

    @property
    def content_right(self) -> float:
        return self.layout.page_width - self.layout.margin

    @property
    def content_width(self) -> float:
        return self.content_right - self.content_left

    @property
    def content_top(self) -> float:
        return self.layout.page_height - self.layout.margin

    @property
    def content_bottom(self) -> float:
        return self.layout.footer_reserve

    def remaining_height(self) -> float:
        return self.current_y - self.content_bottom

    def fits(self, height: float) -> bool:
        return height <= self.remaining_height() + EPSILON

    def at_page_bottom(self, threshold: float = 0.0) -> bool:
        """True when no more than `threshold` units are left above the footer band"""
        return self.remaining_height() <= threshold + EPSILON

    def at_body_top(self) -> bool:
        """Nothing has been written below the page header yet"""
        return abs(self.current_y - self.body_top) <= EPSILON

    def advance(self, amount: float):
        if amount < 0:
            raise ValueError(f"Cannot advance the cursor by a negative amount: {amount}")
        self.current_y -= amount

    def mark_body_top(self):
        """Record where body content starts on the current page (after its header)"""
        self.body_top = self.current_y

    def new_page(self):
        self.page_number += 1
        self.current_y = self.content_top
        self.body_top = self.content_top

    def body_height(self) -> float:
        """Usable height of a fresh continuation page, below the running header"""
        return self.content_top - self.layout.running_header_height - self.content_bottom
