"""
Section builders: turn a PrescriptionDocument into ordered, measured blocks.

Building sections never touches the canvas. Each builder returns None when its data is
empty so the section is omitted entirely (no title, no placeholder).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from reportlab.lib.utils import ImageReader
from reportlab.pdfgen.canvas import Canvas

from models.design_tokens import DesignTokens
from models.prescription import Medication, PrescriptionDocument
from prescription_layout.blocks import (
    Block,
    ChipGroup,
    Column,
    ImageSlot,
    KeyValueGrid,
    Spacer,
    SubTitle,
    TableHeader,
    TableLayout,
    TableRow,
    TextRun,
    TitleBar,
    bullet_list,
    fit_text,
    labeled_lines,
    paragraph_from_text,
)

logger = logging.getLogger(__name__)

FREQUENCY_LABELS = {
    "1": "Once daily",
    "2": "Twice daily",
    "3": "Thrice daily",
    "4": "Four times daily",
    "SOS": "As needed (SOS)",
}

MEDICATION_COLUMNS = [
    Column("No.", 0.06, align="center"),
    Column("Medicine", 0.26),
    Column("Dosage", 0.20),
    Column("Timing", 0.14),
    Column("Duration", 0.12, align="center"),
    Column("Instructions", 0.22),
]

INVESTIGATION_COLUMNS = [
    Column("No.", 0.07, align="center"),
    Column("Test", 0.31),
    Column("Reason", 0.32),
    Column("Priority", 0.15, align="center"),
    Column("Fasting", 0.15, align="center"),
]

SPECIALIZATION_MAX_CHARS = 35


@dataclass
class RenderContext:
    """Per-render values shared by the header, running header and final block"""
    prescription_number: str
    issued_at: datetime
    platform_site: str
    logo: Optional[ImageReader] = None
    signature: Optional[ImageReader] = None
    profile_image: Optional[ImageReader] = None
    qr_image: Optional[ImageReader] = None


@dataclass
class Section:
    name: str
    blocks: List[Block] = field(default_factory=list)


def format_long_date(value: datetime) -> str:
    return f"{value.day} {value:%B %Y}"


def format_time(value: datetime) -> str:
    return value.strftime("%I:%M %p")


def _format_appointment_date(raw: str) -> str:
    try:
        return format_long_date(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        return raw


def doctor_display_name(name: str) -> str:
    return name if name.lower().startswith(("dr.", "dr ")) else f"Dr. {name}"


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


# ============================================================================
# DOCUMENT-LEVEL BLOCKS
# ============================================================================

class DocumentHeader(Block):
    """
    First-page header: doctor details on the left, clinic logo (or clinic
    name) on the right, then the prescription number and issue time.
    The box height is fixed so a missing logo never moves anything else.
    """
    kind = "document_header"

    def __init__(self, document: PrescriptionDocument, context: RenderContext, tokens: DesignTokens, width: float):
        super().__init__("document_header")
        self.document = document
        self.context = context
        self.tokens = tokens
        self.width = width
        layout = tokens.layout
        self.box_height = layout.header_box_height
        self.id_line_height = 15.0
        self.height = self.box_height + 8 + self.id_line_height * 2 + 6

        self.logo_slot = ImageSlot(
            context.logo, layout.logo_max_width, layout.logo_max_height, tokens,
            fallback_text=document.doctor.clinic_name, align="right",
        )
        self.profile_slot = ImageSlot(
            context.profile_image, layout.profile_size, layout.profile_size, tokens,
            collapse_when_missing=True, align="center",
        )

    def _doctor_lines(self) -> List[Tuple[str, str, float]]:
        doctor = self.document.doctor
        typo = self.tokens.typography
        lines = []
        if doctor.specialization:
            lines.append((doctor.specialization, typo.italic.to_reportlab_font()[0], typo.italic.fontSize))
        if doctor.license:
            lines.append((f"Reg. No: {doctor.license}", typo.small.to_reportlab_font()[0], typo.small.fontSize))
        contact = []
        if doctor.phone:
            contact.append(f"Phone: {doctor.phone}")
        if doctor.email:
            contact.append(f"Email: {doctor.email}")
        if contact:
            lines.append(("      ".join(contact), typo.small.to_reportlab_font()[0], typo.small.fontSize))
        if doctor.clinic_address:
            lines.append((f"Address: {doctor.clinic_address}", typo.small.to_reportlab_font()[0], 8.5))
        return lines

    def draw(self, c: Canvas, x: float, top: float):
        colors = self.tokens.colors.to_hex_colors()
        typo = self.tokens.typography
        layout = self.tokens.layout
        box_bottom = top - self.box_height

        c.setStrokeColor(colors["primary"])
        c.setFillColor(colors["white"])
        c.setLineWidth(1.5)
        c.roundRect(x, box_bottom, self.width, self.box_height, 4, fill=1, stroke=1)

        # Right: logo, then the optional profile photo to its left
        logo_x = x + self.width - layout.logo_max_width - 8
        self.logo_slot.draw(c, logo_x, top - 6 - layout.logo_max_height)
        text_right = logo_x - 8
        if not self.profile_slot.collapsed:
            profile_x = logo_x - 8 - self.profile_slot.width
            self.profile_slot.draw(c, profile_x, box_bottom + (self.box_height - self.profile_slot.height) / 2)
            text_right = profile_x - 8

        # Left: doctor details
        text_width = text_right - (x + 10)
        name_font, name_size = typo.doctor_name.to_reportlab_font()
        c.setFont(name_font, name_size)
        c.setFillColor(colors["primary"])
        c.drawString(x + 10, top - 8 - name_size,
                     fit_text(doctor_display_name(self.document.doctor.name), name_font, name_size, text_width))

        line_y = top - 26 - 9.5
        c.setFillColor(colors["text"])
        doctor_lines = self._doctor_lines()
        for index, (text, font, size) in enumerate(doctor_lines):
            if line_y < box_bottom + 4:
                logger.debug(f"Header box full, dropped {len(doctor_lines) - index} doctor detail line(s)")
                break
            c.setFont(font, size)
            c.drawString(x + 10, line_y, fit_text(text, font, size, text_width))
            line_y -= 12.5

        # Prescription number and issue time below the box
        bold_font, bold_size = typo.body_bold.to_reportlab_font()
        mono_font, mono_size = typo.mono.to_reportlab_font()
        body_font, body_size = typo.body.to_reportlab_font()
        y = box_bottom - 8 - bold_size

        c.setFont(bold_font, bold_size)
        c.drawString(x, y, "Prescription ID:")
        label_width = c.stringWidth("Date & Time:      ", bold_font, bold_size)
        c.setFont(mono_font, mono_size)
        c.drawString(x + label_width, y, self.context.prescription_number)

        y -= self.id_line_height
        c.setFont(bold_font, bold_size)
        c.drawString(x, y, "Date & Time:")
        c.setFont(body_font, body_size)
        issued = self.context.issued_at
        c.drawString(x + label_width, y, f"{format_long_date(issued)}, {format_time(issued)}")


class RunningHeader(Block):
    """Downsized banner repeated at the top of every continuation page"""
    kind = "running_header"

    def __init__(self, document: PrescriptionDocument, context: RenderContext, tokens: DesignTokens, width: float):
        super().__init__("running_header")
        self.document = document
        self.context = context
        self.tokens = tokens
        self.width = width
        self.height = tokens.layout.running_header_height
        self.logo_slot = ImageSlot(
            context.logo, 90, self.height - 12, tokens,
            fallback_text=document.doctor.clinic_name or doctor_display_name(document.doctor.name),
            fallback_style="body_bold",
        )

    def draw(self, c: Canvas, x: float, top: float):
        colors = self.tokens.colors.to_hex_colors()
        font, size = self.tokens.typography.small.to_reportlab_font()
        bold_font, _ = self.tokens.typography.small_bold.to_reportlab_font()

        self.logo_slot.draw(c, x, top - self.logo_slot.height - 2)

        right = x + self.width
        c.setFont(bold_font, size)
        c.setFillColor(colors["text"])
        c.drawRightString(right, top - 12, f"Prescription ID: {self.context.prescription_number}")
        c.setFont(font, size)
        c.setFillColor(colors["muted"])
        c.drawRightString(right, top - 24, fit_text(f"Patient: {self.document.patient.name}", font, size, self.width / 2))

        c.setStrokeColor(colors["primary"])
        c.setLineWidth(1)
        c.line(x, top - self.height + 4, right, top - self.height + 4)


class FinalBlock(Block):
    """
    Signature, QR code and legal lines. Placed once, on the last page,
    anchored to the bottom of the body band.
    """
    kind = "final_block"

    def __init__(self, document: PrescriptionDocument, context: RenderContext, tokens: DesignTokens, width: float):
        super().__init__("final_block")
        self.document = document
        self.context = context
        self.tokens = tokens
        self.width = width
        layout = tokens.layout

        self.signature_slot = ImageSlot(
            context.signature, layout.signature_width, layout.signature_height, tokens,
            placeholder_lines=["DOCTOR'S", "STAMP", "(Digital Signature)"], bordered=True,
        )
        self.qr_slot = ImageSlot(
            context.qr_image, layout.qr_size, layout.qr_size, tokens,
            placeholder_lines=["QR", "(unavailable)"], bordered=True,
        )

        self.doctor_lines = self._doctor_lines()
        left = 14 + layout.signature_height + 6 + 14 + 12 * len(self.doctor_lines)
        right = layout.qr_size + 12
        self.body_height = max(left, right)
        self.legal_lines = self._legal_lines()
        self.height = self.body_height + 10 + 13 * len(self.legal_lines)

    def _doctor_lines(self) -> List[str]:
        doctor = self.document.doctor
        lines = []
        if doctor.specialization:
            lines.append(_truncate(doctor.specialization, SPECIALIZATION_MAX_CHARS))
        if doctor.license:
            lines.append(f"Reg. No: {doctor.license}")
        lines.append(f"Date: {format_long_date(self.context.issued_at)}")
        return lines

    def _legal_lines(self) -> List[str]:
        lines = [
            f"This is a digitally generated prescription by {self.context.platform_site}",
            "For verification, scan the QR code to get the Prescription ID",
        ]
        if self.document.emergency_helpline:
            lines.append(f"24x7 Emergency Helpline: {self.document.emergency_helpline}")
        return lines

    def draw(self, c: Canvas, x: float, top: float):
        colors = self.tokens.colors.to_hex_colors()
        typo = self.tokens.typography
        layout = self.tokens.layout
        bold_font, _ = typo.body_bold.to_reportlab_font()
        small_font, small_size = typo.small.to_reportlab_font()

        c.setFillColor(colors["text"])
        c.setFont(bold_font, 10)
        c.drawString(x, top - 10, "Prescribed by:")

        sig_top = top - 14
        self.signature_slot.draw(c, x, sig_top - layout.signature_height)
        rule_y = sig_top - layout.signature_height - 4
        c.setStrokeColor(colors["text"])
        c.setLineWidth(0.5)
        c.line(x, rule_y, x + 170, rule_y)

        c.setFillColor(colors["text"])
        c.setFont(bold_font, 10)
        y = rule_y - 12
        c.drawString(x, y, doctor_display_name(self.document.doctor.name))
        c.setFont(small_font, small_size)
        for line in self.doctor_lines:
            y -= 12
            c.drawString(x, y, line)

        # QR on the right
        qr_x = x + self.width - layout.qr_size
        self.qr_slot.draw(c, qr_x, top - layout.qr_size)
        caption_font, caption_size = typo.caption.to_reportlab_font()
        c.setFont(caption_font, caption_size)
        c.setFillColor(colors["muted"])
        c.drawCentredString(qr_x + layout.qr_size / 2, top - layout.qr_size - 10, "Scan to verify")

        # Legal lines
        legal_top = top - self.body_height - 10
        c.setStrokeColor(colors["rule"])
        c.setLineWidth(0.5)
        c.line(x, legal_top + 4, x + self.width, legal_top + 4)
        c.setFont(caption_font, caption_size)
        for i, line in enumerate(self.legal_lines):
            c.setFillColor(colors["warn"] if line.startswith("24x7") else colors["muted"])
            c.drawCentredString(x + self.width / 2, legal_top - 9 - i * 13, line)


# ============================================================================
# SECTION BUILDERS
# ============================================================================

class SectionBuilder:
    """Builds every body section for one document at one content width"""

    def __init__(self, document: PrescriptionDocument, context: RenderContext, tokens: DesignTokens, width: float):
        self.document = document
        self.context = context
        self.tokens = tokens
        self.width = width
        self.colors = tokens.colors.to_hex_colors()

    # ----- helpers -----

    def _section(self, name: str, title: str, blocks: Sequence[Block]) -> Section:
        return Section(name, [TitleBar(title, self.tokens, self.width, label=title), *blocks,
                              Spacer(self.tokens.spacing.section_gap)])

    def _chip_subsection(self, label: str, items: Sequence[str], category: str,
                         heading: Optional[str] = None, warn: bool = False) -> List[Block]:
        if not items:
            return []
        return [
            SubTitle(heading or f"{label}:", self.tokens, color=self.colors["warn"] if warn else None,
                     label=label, width=self.width),
            ChipGroup(items, category, self.tokens, self.width, label=label),
        ]

    # ----- sections in document order -----

    def patient_info(self) -> Section:
        doc = self.document
        patient = doc.patient
        age = patient.age_years(self.context.issued_at.date())
        age_gender = " / ".join(p for p in [
            f"{age} Years" if age is not None else None,
            patient.gender.capitalize() if patient.gender else None,
        ] if p) or None
        patient_id = f"PT-{patient.patient_code[-6:]}" if patient.patient_code else None

        rows = [
            [("Name:", patient.name), ("Patient ID:", patient_id)],
            [("Age/Gender:", age_gender), ("Blood Type:", patient.blood_type)],
            [("Weight:", f"{patient.weight_kg} kg" if patient.weight_kg else None),
             ("Height:", f"{patient.height_cm} cm" if patient.height_cm else None)],
            [("Contact:", patient.phone), ("Email:", patient.email)],
            [("Address:", patient.address), ("Emergency Contact:", patient.emergency_contact)],
            [("Doctor:", doctor_display_name(doc.doctor.name)), ("Reg. No:", doc.doctor.license)],
        ]
        grid = KeyValueGrid(rows, self.tokens, self.width, columns=2, label="PATIENT INFORMATION")
        return self._section("patient_info", "PATIENT INFORMATION", [grid])

    def diagnosis(self) -> Section:
        paragraph = paragraph_from_text(
            self.document.diagnosis, self.tokens.typography.body, self.colors["text"], self.width,
            label="DIAGNOSIS", indent=10, padding_bottom=2,
        )
        return self._section("diagnosis", "DIAGNOSIS", [paragraph])

    def vital_signs(self) -> Optional[Section]:
        if not self.document.has_vitals():
            return None
        vs = self.document.vital_signs

        bp = None
        if vs.blood_pressure:
            parts = vs.blood_pressure.split("/")
            if len(parts) == 2:
                bp = f"{parts[0].strip()} mmHg (Systolic) / {parts[1].strip()} mmHg (Diastolic)"
            else:
                bp = f"{vs.blood_pressure} mmHg"

        def unit(value, suffix):
            return f"{value} {suffix}" if value is not None else None

        rows = [
            [("BP:", bp), ("Pulse:", unit(vs.pulse, "bpm"))],
            [("Temp:", unit(vs.temperature, "°F")), ("SpO2:", unit(vs.spo2, "%"))],
            [("Resp. Rate:", unit(vs.respiratory_rate, "breaths/min")), ("BMI:", unit(vs.bmi, "kg/m²"))],
            [("Pain Scale:", unit(vs.pain_scale, "/ 10"))],
        ]
        grid = KeyValueGrid(rows, self.tokens, self.width, columns=2, label="VITAL SIGNS")
        return self._section("vital_signs", "VITAL SIGNS (Recorded at consultation)", [grid])

    def clinical_notes(self) -> Optional[Section]:
        doc = self.document
        blocks = (
            self._chip_subsection("Presenting Complaints", doc.presenting_complaints, "complaint")
            + self._chip_subsection("Clinical Examination Findings", doc.clinical_findings, "finding")
            + self._chip_subsection("Provisional Diagnosis", doc.provisional_diagnosis, "diagnosis")
        )
        if not blocks:
            return None
        return self._section("clinical_notes", "CHIEF COMPLAINTS & CLINICAL NOTES", blocks)

    def medical_history(self) -> Optional[Section]:
        doc = self.document
        blocks = (
            self._chip_subsection("Known Allergies", doc.patient.allergies, "allergy", warn=True)
            + self._chip_subsection("Current Medications", doc.current_medications, "history")
            + self._chip_subsection("Past Surgical History", doc.past_surgical_history, "history")
        )
        if not blocks:
            return None
        return self._section("medical_history", "MEDICAL HISTORY", blocks)

    def _table(self, name: str, columns: Sequence[Column], rows: Sequence[Sequence[TextRun]]) -> List[Block]:
        table = TableLayout(name, columns, self.width, self.tokens)
        header = TableHeader(table)
        blocks: List[Block] = [header]
        for index, cells in enumerate(rows, start=1):
            row = TableRow(table, index, cells)
            row.repeat_header = header
            blocks.append(row)
        return blocks

    def medications(self) -> Optional[Section]:
        doc = self.document
        if not doc.medications:
            return None
        rows = [self._medication_cells(i, med) for i, med in enumerate(doc.medications, start=1)]
        blocks = self._table("medications", MEDICATION_COLUMNS, rows)
        blocks.append(Spacer(6))
        blocks += self._chip_subsection(
            "Medication Notes", doc.medication_notes, "medication_note",
            heading="Important Medication Notes:", warn=True,
        )
        return self._section("medications", "PRESCRIBED MEDICATIONS", blocks)

    @staticmethod
    def _medication_cells(index: int, med: Medication) -> List[List[TextRun]]:
        dosage = med.dosage or ""
        if med.frequency:
            label = FREQUENCY_LABELS.get(med.frequency.upper(), med.frequency)
            dosage = f"{dosage} ({label})" if dosage else label

        name = [TextRun(med.name, style="small_bold")]
        if med.type:
            name.append(TextRun(f"({med.type})", style="table_cell", color="muted"))

        return [
            [TextRun(str(index))],
            name,
            [TextRun(dosage or "-")],
            [TextRun(med.timing or "-")],
            [TextRun(med.duration or "-")],
            [TextRun(med.instructions or "-")],
        ]

    def investigations(self) -> Optional[Section]:
        doc = self.document
        investigations = doc.investigation_list()
        if not investigations:
            return None
        rows = [
            [
                [TextRun(str(i))],
                [TextRun(inv.test_name, style="small_bold")],
                [TextRun(inv.reason or "-")],
                [TextRun(inv.priority or "-")],
                [TextRun(inv.fasting or "-")],
            ]
            for i, inv in enumerate(investigations, start=1)
        ]
        blocks = self._table("investigations", INVESTIGATION_COLUMNS, rows)
        if doc.investigation_notes:
            blocks.append(Spacer(6))
            blocks.append(labeled_lines(
                [("Note:", doc.investigation_notes)],
                self.tokens.typography.small_bold, self.tokens.typography.small,
                self.colors["text"], self.width, label="Investigation Notes",
            ))
        return self._section("investigations", "INVESTIGATIONS REQUIRED", blocks)

    def diet_lifestyle(self) -> Optional[Section]:
        doc = self.document
        blocks = (
            self._chip_subsection("Diet Modifications", doc.diet_modifications, "diet")
            + self._chip_subsection("Lifestyle Changes", doc.lifestyle_changes, "lifestyle")
            + self._chip_subsection(
                "Warning Signs", doc.warning_signs, "warning",
                heading="Warning Signs - Seek Immediate Medical Attention if:", warn=True,
            )
        )
        if not blocks:
            return None
        return self._section("diet_lifestyle", "DIETARY & LIFESTYLE RECOMMENDATIONS", blocks)

    def follow_up(self) -> Optional[Section]:
        doc = self.document
        if not doc.has_follow_up():
            return None
        fu = doc.follow_up
        typo = self.tokens.typography
        blocks: List[Block] = []

        pairs = []
        if fu.appointment_date:
            appointment = _format_appointment_date(fu.appointment_date)
            if fu.appointment_time:
                appointment += f" at {fu.appointment_time}"
            pairs.append(("Next Appointment:", appointment))
        if fu.purpose:
            pairs.append(("Purpose:", fu.purpose))
        if pairs:
            blocks.append(labeled_lines(
                pairs, typo.body_bold, typo.body, self.colors["text"], self.width,
                label="Follow-up", underline_first=bool(fu.appointment_date), padding_bottom=3,
            ))
        if fu.bring_items:
            blocks.append(SubTitle("Bring to follow-up:", self.tokens, label="Bring to follow-up", width=self.width))
            blocks.append(bullet_list(fu.bring_items, typo.body, self.colors["text"], self.width,
                                      label="Bring to follow-up", padding_bottom=2))
        if doc.doctor.phone:
            blocks.append(labeled_lines(
                [("For Appointments:", f"Call {doc.doctor.phone}")],
                typo.body_bold, typo.body, self.colors["text"], self.width, label="For Appointments",
            ))
        return self._section("follow_up", "FOLLOW-UP INFORMATION", blocks)

    def notes(self) -> Optional[Section]:
        if not self.document.notes:
            return None
        paragraph = paragraph_from_text(
            self.document.notes, self.tokens.typography.body, self.colors["text"], self.width,
            label="ADDITIONAL NOTES", indent=10, padding_bottom=2,
        )
        return self._section("notes", "ADDITIONAL NOTES", [paragraph])

    def build(self) -> List[Section]:
        builders: List[Callable[[], Optional[Section]]] = [
            self.patient_info,
            self.diagnosis,
            self.vital_signs,
            self.clinical_notes,
            self.medical_history,
            self.medications,
            self.investigations,
            self.diet_lifestyle,
            self.follow_up,
            self.notes,
        ]
        sections = []
        for build in builders:
            section = build()
            if section is not None:
                sections.append(section)
        return sections


def build_sections(document: PrescriptionDocument, context: RenderContext,
                   tokens: DesignTokens, width: float) -> List[Section]:
    """Body sections in fixed clinical order, empty ones omitted"""
    sections = SectionBuilder(document, context, tokens, width).build()
    logger.debug(f"Built {len(sections)} sections: {[s.name for s in sections]}")
    return sections
