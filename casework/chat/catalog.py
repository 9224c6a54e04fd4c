"""
Operation catalog: the case operations exposed as agent tools.

Each entry carries a description, a pydantic argument model and the bound
operation. Arguments are validated before the operation runs, so a rejected
call never touches the random source.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from casework.cases.operations import CaseOperations

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")


class ToolInputError(ValueError):
    """Unknown tool or arguments rejected by the tool's schema."""


class _Args(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CreateCaseArgs(_Args):
    applicantName: str = Field(description="Full legal name of the applicant")
    dateOfBirth: str = Field(description="Date of birth in YYYY-MM-DD format")
    disabilityType: str = Field(
        description=(
            "Type of disability (e.g., Physical Disability, Mental Health Condition, Intellectual Disability, "
            "Sensory Impairment, Chronic Illness, Multiple Disabilities)"
        )
    )
    description: str = Field(description="Brief description of the disability and how it affects daily life")


class CheckCaseStatusArgs(_Args):
    caseId: str = Field(description="The case ID (e.g., DC123ABC)")


class UpdateCaseArgs(_Args):
    caseId: str = Field(description="The case ID to update")
    updateType: str = Field(
        description="Type of update (e.g., Contact Information, Medical Documentation, Employment Status, Additional Notes)"
    )
    details: str = Field(description="Details of the update")


class AssignCaseworkerArgs(_Args):
    caseId: str = Field(description="The case ID")
    reason: Optional[str] = Field(default=None, description="Reason for assignment/reassignment request")
    preferredSpecialty: Optional[str] = Field(
        default=None,
        description="Preferred caseworker specialty (e.g., Physical Disabilities, Mental Health, Appeals)",
    )


class AddDocumentationArgs(_Args):
    caseId: str = Field(description="The case ID")
    documentType: str = Field(
        description="Type of document (e.g., Medical Records, Employment History, Physician Statement, Diagnostic Report)"
    )
    description: str = Field(description="Description of the document contents")
    issuingAuthority: Optional[str] = Field(
        default=None, description="Organization or person who issued the document"
    )


class ScheduleAppointmentArgs(_Args):
    caseId: str = Field(description="The case ID")
    appointmentType: str = Field(
        description="Type of appointment (Initial Consultation, Medical Examination, Hearing, Document Review, Appeal Review)"
    )
    preferredDate: Optional[str] = Field(default=None, description="Preferred date in YYYY-MM-DD format")
    preferredTime: Optional[str] = Field(default=None, description="Preferred time in HH:MM format")
    notes: Optional[str] = Field(default=None, description="Any additional notes or accessibility requirements")

    @field_validator("preferredDate")
    @classmethod
    def _date_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        try:
            date.fromisoformat(v.strip())
        except ValueError:
            raise ValueError("preferredDate must be YYYY-MM-DD")
        return v.strip()

    @field_validator("preferredTime")
    @classmethod
    def _time_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        if not _TIME_RE.match(v.strip()):
            raise ValueError("preferredTime must be HH:MM (24h)")
        return v.strip()


class GetEligibilityCriteriaArgs(_Args):
    disabilityType: str = Field(description="Type of disability to get criteria for")


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    description: str
    args_model: Type[BaseModel]
    operation: str

    def validate(self, args: Any) -> Dict[str, Any]:
        try:
            parsed = self.args_model.model_validate(args if args is not None else {})
        except ValidationError as e:
            raise ToolInputError(f"{self.name}: invalid input: {_validation_summary(e)}") from e
        return parsed.model_dump(exclude_none=True)

    def spec(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.args_model.model_json_schema(),
        }


CATALOG: Dict[str, CatalogEntry] = {
    e.name: e
    for e in (
        CatalogEntry(
            "createCase",
            "Create a new disability case for an applicant seeking benefits or services",
            CreateCaseArgs,
            "create_case",
        ),
        CatalogEntry(
            "checkCaseStatus",
            "Check the current status of an existing disability case",
            CheckCaseStatusArgs,
            "check_case_status",
        ),
        CatalogEntry(
            "updateCase",
            "Update information or add notes to an existing case",
            UpdateCaseArgs,
            "update_case",
        ),
        CatalogEntry(
            "assignCaseworker",
            "Request assignment or reassignment of a caseworker for a case",
            AssignCaseworkerArgs,
            "assign_caseworker",
        ),
        CatalogEntry(
            "addDocumentation",
            "Add supporting documentation to a disability case",
            AddDocumentationArgs,
            "add_documentation",
        ),
        CatalogEntry(
            "scheduleAppointment",
            "Schedule an appointment related to a disability case",
            ScheduleAppointmentArgs,
            "schedule_appointment",
        ),
        CatalogEntry(
            "getEligibilityCriteria",
            "Get eligibility criteria and required documentation for a specific disability type",
            GetEligibilityCriteriaArgs,
            "get_eligibility_criteria",
        ),
    )
}


@dataclass
class ToolResult:
    ok: bool
    result: Any = None
    error: Optional[str] = None
    retryable: bool = False
    attempts: int = 0


def _validation_summary(e: ValidationError) -> str:
    parts: List[str] = []
    for err in e.errors()[:4]:
        loc = ".".join(str(x) for x in err.get("loc") or ()) or "args"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def get_entry(tool: str) -> CatalogEntry:
    entry = CATALOG.get(str(tool or "").strip())
    if entry is None:
        raise ToolInputError(f"unknown tool: {tool}")
    return entry


def validate_tool_args(tool: str, args: Any) -> Dict[str, Any]:
    return get_entry(tool).validate(args)


def tool_specs() -> List[Dict[str, Any]]:
    return [e.spec() for e in CATALOG.values()]


async def invoke_tool(*, tool: str, args: Any, operations: CaseOperations) -> Dict[str, Any]:
    """
    Validate `args` and run the operation once.

    Raises ToolInputError before the operation runs; OperationError subclasses
    from the operation propagate unchanged.
    """
    entry = get_entry(tool)
    clean = entry.validate(args)
    fn = getattr(operations, entry.operation)
    return await fn(**clean)
