"""
Prescription Document Model
Structured, validated input for the prescription PDF layout engine
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from errors import PrescriptionDataError


class _Record(BaseModel):
    """
    Shared config: immutable, camelCase aliases accepted, blank strings
    become None and string lists lose their blank entries.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    @field_validator("*", mode="before")
    @classmethod
    def _normalise(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if isinstance(value, str):
            value = value.strip()
            return value or None
        if isinstance(value, (list, tuple)):
            cleaned = []
            for item in value:
                if isinstance(item, str):
                    item = item.strip()
                    if not item:
                        continue
                elif item is None:
                    continue
                cleaned.append(item)
            return cleaned
        return value


def _join_name(*parts: Optional[str]) -> Optional[str]:
    name = " ".join(str(p).strip() for p in parts if p and str(p).strip())
    return name or None


class VitalSigns(_Record):
    blood_pressure: Optional[str] = None
    pulse: Optional[str] = None
    temperature: Optional[str] = None
    spo2: Optional[str] = None
    respiratory_rate: Optional[str] = None
    bmi: Optional[str] = None
    pain_scale: Optional[str] = None

    def any_recorded(self) -> bool:
        return any(v is not None for v in self.model_dump().values())


class Medication(_Record):
    name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    timing: Optional[str] = None
    duration: Optional[str] = None
    type: Optional[str] = None
    instructions: Optional[str] = None


class Investigation(_Record):
    test_name: str
    reason: Optional[str] = None
    priority: Optional[str] = None
    fasting: Optional[str] = None


class FollowUp(_Record):
    appointment_date: Optional[str] = None
    appointment_time: Optional[str] = None
    purpose: Optional[str] = None
    bring_items: List[str] = Field(default_factory=list)


class DoctorInfo(_Record):
    name: str
    specialization: Optional[str] = None
    license: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("license", "registrationNumber", "registration_number", "licenseNumber"),
    )
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("clinic_address", "clinicAddress", "address"),
    )
    phone: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("phone", "contactNumber", "contact_number"),
    )
    email: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _compose_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            name = _join_name(data.get("firstName"), data.get("lastName"))
            if name:
                data = {**data, "name": name}
        return data


class PatientInfo(_Record):
    name: str
    email: Optional[str] = None
    date_of_birth: Optional[str] = None
    patient_code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("patient_code", "patientCode", "id"),
    )
    gender: Optional[str] = None
    phone: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("phone", "contactNumber", "contact_number"),
    )
    address: Optional[str] = None
    weight_kg: Optional[str] = Field(default=None, validation_alias=AliasChoices("weight_kg", "weightKg", "weight"))
    height_cm: Optional[str] = Field(default=None, validation_alias=AliasChoices("height_cm", "heightCm", "height"))
    blood_type: Optional[str] = None
    emergency_contact: Optional[str] = None
    allergies: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _compose_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("name"):
            name = _join_name(data.get("firstName"), data.get("middleName"), data.get("lastName"))
            if name:
                data["name"] = name
        # Allergies arrive as a list, a comma separated string, or a dict of category -> list
        allergies = data.get("allergies")
        if isinstance(allergies, str):
            data["allergies"] = [a.strip() for a in allergies.split(",")]
        elif isinstance(allergies, dict):
            flattened = []
            for group in allergies.values():
                if isinstance(group, list):
                    flattened.extend(group)
            data["allergies"] = flattened
        return data

    def age_years(self, asof: Optional[date] = None) -> Optional[int]:
        if not self.date_of_birth:
            return None
        try:
            dob = datetime.fromisoformat(self.date_of_birth.replace("Z", "+00:00")).date()
        except ValueError:
            return None
        asof = asof or date.today()
        years = asof.year - dob.year - ((asof.month, asof.day) < (dob.month, dob.day))
        return max(0, years)


class BrandingAssets(_Record):
    """References (URL or path) to optional branding images"""
    clinic_logo: Optional[str] = None
    signature: Optional[str] = None
    profile_image: Optional[str] = None


class PrescriptionDocument(_Record):
    """A single prescription, exactly as it should appear on paper"""

    # identity
    id: str
    created_at: Optional[datetime] = None
    status: Literal["active", "completed"] = "active"

    # parties
    doctor: DoctorInfo
    patient: PatientInfo

    # clinical
    diagnosis: str
    vital_signs: VitalSigns = Field(default_factory=VitalSigns)
    presenting_complaints: List[str] = Field(default_factory=list)
    clinical_findings: List[str] = Field(default_factory=list)
    provisional_diagnosis: List[str] = Field(default_factory=list)

    # history
    current_medications: List[str] = Field(default_factory=list)
    past_surgical_history: List[str] = Field(default_factory=list)

    # treatment
    medications: List[Medication] = Field(default_factory=list)
    medication_notes: List[str] = Field(default_factory=list)
    tests_required: List[str] = Field(default_factory=list)
    investigations: List[Investigation] = Field(default_factory=list)
    investigation_notes: Optional[str] = None

    # guidance
    diet_modifications: List[str] = Field(default_factory=list)
    lifestyle_changes: List[str] = Field(default_factory=list)
    warning_signs: List[str] = Field(default_factory=list)

    # follow-up
    follow_up: FollowUp = Field(
        default_factory=FollowUp,
        validation_alias=AliasChoices("follow_up", "followUp", "followUpInfo"),
    )
    emergency_helpline: Optional[str] = None
    notes: Optional[str] = None

    # verification
    qr_payload: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("qr_payload", "qrPayload", "qrCode"),
    )

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_shapes(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "id" not in data and "_id" in data:
            data["id"] = data["_id"]
        # Investigations may be a comma separated string or a list of bare names
        investigations = data.get("investigations")
        if isinstance(investigations, str):
            investigations = investigations.split(",")
        if isinstance(investigations, list):
            data["investigations"] = [
                {"test_name": i} if isinstance(i, str) else i
                for i in investigations
                if not (isinstance(i, str) and not i.strip())
            ]
        # Legacy top-level follow-up date
        if data.get("followUpDate") and not (data.get("followUpInfo") or data.get("follow_up") or data.get("followUp")):
            data["follow_up"] = {"appointment_date": data["followUpDate"]}
        return data

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "PrescriptionDocument":
        """Validate a raw record, raising PrescriptionDataError on bad shape"""
        try:
            return cls.model_validate(record)
        except ValidationError as e:
            errors = [
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in e.errors()
            ]
            raise PrescriptionDataError(errors) from e

    # ----- derived views (never mutate the record) -----

    def investigation_list(self) -> List[Investigation]:
        merged = list(self.investigations)
        known = {inv.test_name for inv in merged}
        for test in self.tests_required:
            if test not in known:
                merged.append(Investigation(test_name=test))
                known.add(test)
        return merged

    def has_vitals(self) -> bool:
        return self.vital_signs.any_recorded()

    def has_follow_up(self) -> bool:
        fu = self.follow_up
        return bool(fu.appointment_date or fu.purpose or fu.bring_items)
