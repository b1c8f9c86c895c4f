"""
Models package for data structures and domain models
"""

from .design_tokens import DesignTokens, ColorTokens, ChipPalette, TypographyTokens, SpacingTokens, LayoutTokens
from .prescription import (
    PrescriptionDocument,
    BrandingAssets,
    DoctorInfo,
    PatientInfo,
    VitalSigns,
    Medication,
    Investigation,
    FollowUp,
)

__all__ = [
    "DesignTokens", "ColorTokens", "ChipPalette", "TypographyTokens", "SpacingTokens", "LayoutTokens",
    "PrescriptionDocument", "BrandingAssets", "DoctorInfo", "PatientInfo", "VitalSigns",
    "Medication", "Investigation", "FollowUp",
]
