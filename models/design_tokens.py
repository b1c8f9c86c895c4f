"""
Design Token Model
Colors, typography, spacing and page geometry for prescription PDFs.
Every numeric layout constant lives here so a clinic can tune the template
without touching the layout engine.
"""

from pydantic import BaseModel
from typing import Dict, Optional, Tuple
from reportlab.lib.colors import HexColor
import json
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


class ColorTokens(BaseModel):
    """Color design tokens"""
    primary: str = "#006666"
    section: str = "#004D4D"
    light_bg: str = "#F0F0F0"
    warn: str = "#CC0000"
    text: str = "#333333"
    muted: str = "#666666"
    white: str = "#FFFFFF"
    table_header: str = "#D9EDED"
    border: str = "#BBBBBB"
    rule: str = "#AAAAAA"

    def to_hex_colors(self) -> Dict[str, HexColor]:
        """Convert to ReportLab HexColor objects"""
        return {name: HexColor(value) for name, value in self.model_dump().items()}


class ChipColor(BaseModel):
    fill: str
    text: str


class ChipPalette(BaseModel):
    """Chip colors per clinical category (cosmetic only)"""
    complaint: ChipColor = ChipColor(fill="#E3F2FD", text="#0D47A1")
    finding: ChipColor = ChipColor(fill="#EDE7F6", text="#4527A0")
    diagnosis: ChipColor = ChipColor(fill="#E0F2F1", text="#004D40")
    history: ChipColor = ChipColor(fill="#F1F8E9", text="#33691E")
    allergy: ChipColor = ChipColor(fill="#FFEBEE", text="#B71C1C")
    medication_note: ChipColor = ChipColor(fill="#FFF8E1", text="#8D6E00")
    diet: ChipColor = ChipColor(fill="#E8F5E9", text="#1B5E20")
    lifestyle: ChipColor = ChipColor(fill="#E1F5FE", text="#01579B")
    warning: ChipColor = ChipColor(fill="#FFEBEE", text="#CC0000")
    default: ChipColor = ChipColor(fill="#F0F0F0", text="#333333")

    def for_category(self, category: str) -> Tuple[HexColor, HexColor]:
        chip = getattr(self, category, None) or self.default
        return HexColor(chip.fill), HexColor(chip.text)


class TypographyToken(BaseModel):
    """Single typography token"""
    fontFamily: str = "Helvetica"
    fontSize: float = 9.5
    fontWeight: str = "Normal"  # "Normal", "Bold" or "Oblique"
    lineHeight: float = 12.0

    def to_reportlab_font(self) -> Tuple[str, float]:
        """Convert to ReportLab (fontName, fontSize)"""
        font_name = self.fontFamily
        if self.fontWeight in ("Bold", "Oblique"):
            font_name = f"{font_name}-{self.fontWeight}"
        return (font_name, self.fontSize)


class TypographyTokens(BaseModel):
    """Typography design tokens"""
    doctor_name: TypographyToken = TypographyToken(fontSize=15, fontWeight="Bold", lineHeight=18)
    clinic_name: TypographyToken = TypographyToken(fontSize=14, fontWeight="Bold", lineHeight=17)
    section_title: TypographyToken = TypographyToken(fontSize=10, fontWeight="Bold", lineHeight=12)
    subsection_title: TypographyToken = TypographyToken(fontSize=9.5, fontWeight="Bold", lineHeight=14)
    body: TypographyToken = TypographyToken(fontSize=9.5, lineHeight=12.5)
    body_bold: TypographyToken = TypographyToken(fontSize=9.5, fontWeight="Bold", lineHeight=12.5)
    small: TypographyToken = TypographyToken(fontSize=9, lineHeight=12)
    small_bold: TypographyToken = TypographyToken(fontSize=9, fontWeight="Bold", lineHeight=12)
    italic: TypographyToken = TypographyToken(fontSize=9.5, fontWeight="Oblique", lineHeight=13)
    caption: TypographyToken = TypographyToken(fontSize=8, fontWeight="Oblique", lineHeight=13)
    chip: TypographyToken = TypographyToken(fontSize=8.5, lineHeight=11)
    table_header: TypographyToken = TypographyToken(fontSize=9, fontWeight="Bold", lineHeight=11)
    table_cell: TypographyToken = TypographyToken(fontSize=8.5, lineHeight=11)
    mono: TypographyToken = TypographyToken(fontFamily="Courier", fontSize=10, lineHeight=15)


class SpacingTokens(BaseModel):
    """Spacing design tokens (points)"""
    section_gap: float = 8.0
    subsection_gap: float = 2.0
    title_bar_gap: float = 4.0
    cell_padding: float = 4.0
    min_row_height: float = 22.0
    chip_padding_x: float = 6.0
    chip_padding_y: float = 3.0
    chip_gap: float = 5.0
    grid_row_height: float = 15.0


class LayoutTokens(BaseModel):
    """Page geometry (points, A4 by default)"""
    page_width: float = 595.28
    page_height: float = 841.89
    margin: float = 40.0
    footer_reserve: float = 92.0
    running_header_height: float = 40.0
    header_box_height: float = 80.0
    title_bar_height: float = 20.0
    logo_max_width: float = 120.0
    logo_max_height: float = 65.0
    profile_size: float = 56.0
    signature_width: float = 150.0
    signature_height: float = 50.0
    qr_size: float = 80.0


class DesignTokens(BaseModel):
    """Complete design token set"""
    colors: ColorTokens = ColorTokens()
    chips: ChipPalette = ChipPalette()
    typography: TypographyTokens = TypographyTokens()
    spacing: SpacingTokens = SpacingTokens()
    layout: LayoutTokens = LayoutTokens()

    @classmethod
    def default(cls) -> "DesignTokens":
        """Get default Medizo design tokens"""
        return cls()

    @classmethod
    def from_file(cls, path: Optional[str]) -> "DesignTokens":
        """Load token overrides from a JSON file, falling back to defaults"""
        if not path:
            return cls.default()

        token_path = Path(path)
        if not token_path.exists():
            logger.warning(f"Design token file not found: {token_path}, using defaults")
            return cls.default()

        with open(token_path) as f:
            data = json.load(f)
        return cls.model_validate(data)

    def save(self, path: str):
        """Write tokens as JSON (useful as a starting point for a clinic template)"""
        token_path = Path(path)
        token_path.parent.mkdir(parents=True, exist_ok=True)
        with open(token_path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
