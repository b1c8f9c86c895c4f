"""Prescription Layout Engine Package"""

from .geometry import PageGeometry
from .canvas import NumberedCanvas, draw_page_number
from .sections import DocumentHeader, FinalBlock, RenderContext, RunningHeader, Section, build_sections
from .flow import FlowController, FlowState, LayoutReport, Placement

__all__ = [
    'PageGeometry',
    'NumberedCanvas',
    'draw_page_number',
    'DocumentHeader',
    'FinalBlock',
    'RenderContext',
    'RunningHeader',
    'Section',
    'build_sections',
    'FlowController',
    'FlowState',
    'LayoutReport',
    'Placement',
]
