"""
Flow / pagination controller.

Walks the sections in order, asks the geometry whether each measured block
fits, and inserts page breaks (with a running header and, for tables, the
repeated column header) when it does not. Every placed block is recorded in a
LayoutReport so pagination can be checked without reading the PDF.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Sequence, Tuple

from reportlab.pdfgen.canvas import Canvas

from errors import RenderCancelled
from prescription_layout.blocks import Block
from prescription_layout.geometry import EPSILON, PageGeometry
from prescription_layout.sections import Section

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    HEADER = "HEADER"
    BODY_SECTION = "BODY_SECTION"
    PAGE_BREAK = "PAGE_BREAK"
    FOOTER = "FOOTER"
    DONE = "DONE"


@dataclass(frozen=True)
class Placement:
    page: int
    section: str
    kind: str
    label: Optional[str]
    top: float
    bottom: float


@dataclass
class LayoutReport:
    page_count: int = 0
    placements: List[Placement] = field(default_factory=list)
    transitions: List[Tuple[FlowState, Optional[str]]] = field(default_factory=list)

    def find(self, section: Optional[str] = None, kind: Optional[str] = None,
             label: Optional[str] = None) -> List[Placement]:
        return [
            p for p in self.placements
            if (section is None or p.section == section)
            and (kind is None or p.kind == kind)
            and (label is None or p.label == label)
        ]

    def pages_for(self, section: str) -> List[int]:
        return sorted({p.page for p in self.placements if p.section == section})

    def states(self) -> List[FlowState]:
        return [state for state, _ in self.transitions]

    def layout_signature(self) -> List[Tuple]:
        """Comparable summary of every placement (page, section, kind, label, rounded box)"""
        return [
            (p.page, p.section, p.kind, p.label, round(p.top, 2), round(p.bottom, 2))
            for p in self.placements
        ]

    def to_dict(self) -> Dict:
        return {
            "page_count": self.page_count,
            "placements": [asdict(p) for p in self.placements],
            "transitions": [[state.value, section] for state, section in self.transitions],
        }


class FlowController:
    """
    Single-pass layout of one document onto one canvas.

    Units are moved whole to the next page when they do not fit. Only a
    splittable unit taller than a fresh page body is cut, and a fresh page
    always accepts at least one line, so the loop always progresses.
    """

    def __init__(self, c: Canvas, geometry: PageGeometry, running_header: Block,
                 should_cancel: Optional[Callable[[], bool]] = None):
        self.c = c
        self.geometry = geometry
        self.running_header = running_header
        self.should_cancel = should_cancel
        self.report = LayoutReport()
        self.state: Optional[FlowState] = None

    # ----- bookkeeping -----

    def _enter(self, state: FlowState, section: Optional[str] = None):
        self.state = state
        self.report.transitions.append((state, section))

    def _check_cancel(self):
        if self.should_cancel is not None and self.should_cancel():
            logger.info(f"Render cancelled on page {self.geometry.page_number}")
            raise RenderCancelled(f"Render cancelled on page {self.geometry.page_number}")

    def _place(self, block: Block, section: str, top: Optional[float] = None):
        geometry = self.geometry
        if top is None:
            top = geometry.current_y
            geometry.advance(block.height)
        block.draw(self.c, geometry.content_left, top)
        if not block.discardable:
            self.report.placements.append(Placement(
                page=geometry.page_number,
                section=section,
                kind=block.kind,
                label=block.label,
                top=top,
                bottom=top - block.height,
            ))

    def _capacity(self, block: Block) -> float:
        """Body height a block gets on a fresh continuation page"""
        capacity = self.geometry.body_height()
        if block.repeat_header is not None:
            capacity -= block.repeat_header.height
        return capacity

    def _lead_height(self, block: Block) -> float:
        """Space the block needs on the current page to start there"""
        if block.splittable and block.height > self._capacity(block) + EPSILON:
            return block.first_atom_height()
        return block.height

    def page_break(self, section: str, next_block: Optional[Block] = None,
                   resume: FlowState = FlowState.BODY_SECTION):
        self._check_cancel()
        self._enter(FlowState.PAGE_BREAK, section)
        self.c.showPage()
        self.geometry.new_page()

        self._enter(FlowState.HEADER, section)
        self._place(self.running_header, "running_header")
        if next_block is not None and next_block.repeat_header is not None:
            self._place(next_block.repeat_header, section)
        self.geometry.mark_body_top()

        self._enter(resume, section)
        logger.debug(f"Page break in {section}, now on page {self.geometry.page_number}")

    # ----- flow -----

    def _flow_block(self, block: Block, section: str, split_here: bool = False):
        geometry = self.geometry
        while block is not None:
            if geometry.fits(block.height):
                self._place(block, section)
                return

            if split_here or block.height > self._capacity(block) + EPSILON:
                split_here = False
                if block.splittable:
                    head, tail = block.split(geometry.remaining_height(), force=geometry.at_body_top())
                    if head is not None:
                        self._place(head, section)
                    if tail is None:
                        return
                    self.page_break(section, tail)
                    block = tail
                    continue
                if geometry.at_body_top():
                    logger.warning(
                        f"{block.kind} '{block.label}' is taller than a page and cannot be split; "
                        f"drawing it past the footer band on page {geometry.page_number}"
                    )
                    self._place(block, section)
                    return

            self.page_break(section, block)

    def _flow_section(self, section: Section):
        geometry = self.geometry
        queue: Deque[Block] = deque(section.blocks)

        while queue:
            block = queue.popleft()

            if block.discardable:
                # Gaps are dropped at the top of a page and at a page break
                if not geometry.at_body_top() and geometry.fits(block.height):
                    self._place(block, section.name)
                continue

            if block.keep_with_next:
                chain = [block]
                while chain[-1].keep_with_next and queue and not queue[0].discardable:
                    chain.append(queue.popleft())
                follower = chain[-1] if not chain[-1].keep_with_next else None
                keepers = chain[:-1] if follower is not None else chain

                keepers_height = sum(b.height for b in keepers)
                needed = keepers_height
                split_follower = False
                if follower is not None:
                    lead = self._lead_height(follower)
                    # Titles and follower never fit one page together: start the follower under its titles
                    if (follower.splittable
                            and keepers_height + follower.height > geometry.body_height() + EPSILON):
                        lead = follower.first_atom_height()
                        split_follower = True
                    needed += lead
                if not geometry.fits(needed) and not geometry.at_body_top():
                    self.page_break(section.name)

                for keeper in keepers:
                    self._place(keeper, section.name)
                if follower is not None:
                    self._flow_block(follower, section.name, split_here=split_follower)
                continue

            self._flow_block(block, section.name)

    def _place_final(self, final_block: Block):
        geometry = self.geometry
        if not geometry.fits(final_block.height):
            self.page_break("final_block", resume=FlowState.FOOTER)
        # Anchored to the bottom of the body band
        top = geometry.content_bottom + final_block.height
        self._place(final_block, "final_block", top=top)
        geometry.current_y = geometry.content_bottom

    def run(self, document_header: Block, sections: Sequence[Section], final_block: Block) -> LayoutReport:
        self._enter(FlowState.HEADER, "document_header")
        self._place(document_header, "document_header")
        self.geometry.mark_body_top()

        for section in sections:
            self._check_cancel()
            self._enter(FlowState.BODY_SECTION, section.name)
            self._flow_section(section)

        self._check_cancel()
        self._enter(FlowState.FOOTER, "final_block")
        self._place_final(final_block)
        self._enter(FlowState.DONE)

        self.report.page_count = self.geometry.page_number
        return self.report
