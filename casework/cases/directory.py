"""Fixed reference data for the mock case backend (read-only)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

CASE_STATUSES: Tuple[str, ...] = (
    "Pending Review",
    "Under Investigation",
    "Documentation Required",
    "Awaiting Medical Records",
    "Scheduled for Hearing",
    "Approved",
    "Denied",
    "Appeal Filed",
    "Closed",
)

# Statuses with no estimated completion date.
CONCLUDED_STATUSES = frozenset({"Approved", "Denied", "Closed"})

DISABILITY_TYPES: Tuple[str, ...] = (
    "Physical Disability",
    "Mental Health Condition",
    "Intellectual Disability",
    "Sensory Impairment",
    "Chronic Illness",
    "Multiple Disabilities",
)


@dataclass(frozen=True)
class Caseworker:
    id: str
    name: str
    department: str
    caseload: int
    specialty: str


# Order matters: specialty matching takes the first match; caseload ties go to the later entry.
CASEWORKERS: Tuple[Caseworker, ...] = (
    Caseworker("CW001", "Sarah Johnson", "Disability Services", 45, "Physical Disabilities"),
    Caseworker("CW002", "Michael Chen", "Disability Services", 38, "Mental Health"),
    Caseworker("CW003", "Emily Rodriguez", "Appeals Division", 52, "Appeals & Reviews"),
    Caseworker("CW004", "James Williams", "Medical Review", 41, "Medical Documentation"),
    Caseworker("CW005", "Lisa Thompson", "Disability Services", 35, "Intellectual Disabilities"),
)

NEW_CASE_NEXT_STEPS: Tuple[str, ...] = (
    "Complete initial application review",
    "Submit medical documentation",
    "Schedule initial consultation",
)

NO_PENDING_ACTIONS = "None - awaiting processing"
NO_REQUIRED_ACTIONS = "No additional actions required"
CASE_CONCLUDED = "N/A - Case concluded"

PENDING_ACTIONS_BY_STATUS: Dict[str, Tuple[str, ...]] = {
    "Documentation Required": ("Submit medical records", "Complete employment history form"),
    "Scheduled for Hearing": ("Prepare for hearing", "Review case documents"),
}
DEFAULT_PENDING_ACTIONS: Tuple[str, ...] = (NO_PENDING_ACTIONS,)

UPDATE_NEXT_STEPS: Dict[str, Tuple[str, ...]] = {
    "Medical Documentation": ("Documentation will be reviewed within 5-7 business days",),
    "Contact Information": ("Your caseworker will be notified of the change",),
}
DEFAULT_UPDATE_NEXT_STEPS: Tuple[str, ...] = ("Update has been recorded and will be processed",)

DOCUMENT_REQUIRED_ACTIONS: Dict[str, Tuple[str, ...]] = {
    "Medical Records": ("Ensure all pages are legible", "Include physician signature"),
    "Employment History": ("Verify dates of employment", "Include job descriptions"),
}
DEFAULT_REQUIRED_ACTIONS: Tuple[str, ...] = (NO_REQUIRED_ACTIONS,)

APPOINTMENT_LOCATIONS: Dict[str, str] = {
    "Initial Consultation": "Main Office - Room 201",
    "Medical Examination": "Medical Center - Suite 105",
    "Hearing": "Administrative Hearings Office - Hearing Room A",
    "Document Review": "Virtual (Zoom link will be sent)",
    "Appeal Review": "Appeals Division - Conference Room B",
}
DEFAULT_APPOINTMENT_LOCATION = "Main Office - Room 101"

APPOINTMENT_DURATIONS: Dict[str, str] = {"Hearing": "60 minutes"}
DEFAULT_APPOINTMENT_DURATION = "30 minutes"

PREPARATION_INSTRUCTIONS: Dict[str, Tuple[str, ...]] = {
    "Medical Examination": ("Bring photo ID", "Bring current medications list", "Arrive 15 minutes early"),
    "Hearing": ("Bring all supporting documents", "Review case summary", "Legal representation is allowed"),
}
DEFAULT_PREPARATION_INSTRUCTIONS: Tuple[str, ...] = ("Bring photo ID", "Bring any relevant documents")


@dataclass(frozen=True)
class EligibilityCriteria:
    requirements: Tuple[str, ...]
    documentation: Tuple[str, ...]
    processing_time: str


ELIGIBILITY_CRITERIA: Dict[str, EligibilityCriteria] = {
    "Physical Disability": EligibilityCriteria(
        requirements=(
            "Medical documentation of physical impairment",
            "Impact on daily activities must be demonstrated",
            "Impairment expected to last 12+ months or result in death",
            "Unable to perform substantial gainful activity",
        ),
        documentation=(
            "Medical records from treating physicians",
            "Diagnostic test results (X-rays, MRIs, etc.)",
            "Functional capacity evaluation",
            "Employment history and job descriptions",
        ),
        processing_time="3-6 months",
    ),
    "Mental Health Condition": EligibilityCriteria(
        requirements=(
            "Documented mental health diagnosis",
            "Treatment history of at least 6 months",
            "Functional limitations in work or daily activities",
            "Evidence that condition limits ability to work",
        ),
        documentation=(
            "Psychiatric evaluation",
            "Treatment records and medication history",
            "Psychological testing results",
            "Statement from mental health provider",
        ),
        processing_time="4-8 months",
    ),
    "Intellectual Disability": EligibilityCriteria(
        requirements=(
            "IQ score documentation",
            "Evidence of onset before age 22",
            "Significant limitations in adaptive functioning",
            "School or institutional records",
        ),
        documentation=(
            "Psychological evaluation",
            "Educational records",
            "Adaptive behavior assessment",
            "Historical medical records",
        ),
        processing_time="3-5 months",
    ),
    "Sensory Impairment": EligibilityCriteria(
        requirements=(
            "Documentation of vision or hearing loss",
            "Specialist medical evaluation",
            "Impact on work capacity demonstrated",
            "Best corrected measurements required",
        ),
        documentation=(
            "Ophthalmologist or audiologist reports",
            "Visual field or audiometric testing",
            "Functional vision/hearing assessment",
            "Assistive device records",
        ),
        processing_time="2-4 months",
    ),
    "Chronic Illness": EligibilityCriteria(
        requirements=(
            "Documented diagnosis of chronic condition",
            "Evidence of ongoing treatment",
            "Functional limitations documentation",
            "Prognosis from treating physician",
        ),
        documentation=(
            "Treatment records spanning 12+ months",
            "Laboratory and diagnostic test results",
            "Medication and side effects documentation",
            "Hospitalization records if applicable",
        ),
        processing_time="4-7 months",
    ),
    "Multiple Disabilities": EligibilityCriteria(
        requirements=(
            "Documentation for each disability",
            "Combined impact assessment",
            "Evidence of functional limitations from each condition",
            "Comprehensive medical evaluation",
        ),
        documentation=(
            "Medical records for all conditions",
            "Specialist evaluations for each disability",
            "Comprehensive functional assessment",
            "Combined treatment plan documentation",
        ),
        processing_time="5-9 months",
    ),
}
DEFAULT_ELIGIBILITY_TYPE = "Physical Disability"

ELIGIBILITY_DISCLAIMER = "All documentation must be dated within the last 12 months unless otherwise specified."
HELPLINE_NUMBER = "1-800-555-HELP (4357)"
ONLINE_PORTAL = "https://disability-services.example.gov"


def find_by_specialty(preferred: str) -> List[Caseworker]:
    """Caseworkers whose specialty contains `preferred` (case-insensitive), in directory order."""
    needle = (preferred or "").strip().lower()
    if not needle:
        return []
    return [cw for cw in CASEWORKERS if needle in cw.specialty.lower()]


def lowest_caseload() -> Caseworker:
    best = CASEWORKERS[0]
    for cw in CASEWORKERS[1:]:
        if cw.caseload <= best.caseload:
            best = cw
    return best


def match_eligibility_type(disability_type: str) -> str:
    needle = (disability_type or "").lower()
    for key in ELIGIBILITY_CRITERIA:
        if needle in key.lower():
            return key
    return DEFAULT_ELIGIBILITY_TYPE
