"""
Mock case-management operations.

Each operation synthesizes a plausible result and may fail on purpose so the
agent runtime's retry and fatal-error paths get exercised:
- check_case_status: TransientError (default 10%)
- schedule_appointment: TransientError (default 10%)
- update_case: FatalError (default 5%), never retried

All randomness goes through the injected `random.Random`, so tests can pin
both the failure and the success branches.
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from dateutil import parser as date_parser

from casework.cases import directory
from casework.cases.errors import FatalError, TransientError
from casework.config import FailurePolicy

logger = logging.getLogger(__name__)

ID_ALPHABET = string.ascii_uppercase + string.digits

# Simulated backend latency per operation (seconds, before scaling).
_LATENCY = {
    "create_case": 0.8,
    "check_case_status": 0.5,
    "update_case": 0.6,
    "assign_caseworker": 0.7,
    "add_documentation": 0.5,
    "schedule_appointment": 0.6,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a `Z` suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_preferred_time(raw: str) -> Tuple[int, int]:
    hh, mm = str(raw).strip().split(":", 1)
    return int(hh), int(mm)


def parse_preferred_date(raw: str) -> datetime:
    dt = date_parser.isoparse(str(raw).strip())
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _caseworker_ref(cw: directory.Caseworker) -> Dict[str, Any]:
    return {"id": cw.id, "name": cw.name, "department": cw.department}


class CaseOperations:
    """The seven case operations, bound to a random source and failure policy."""

    def __init__(
        self,
        *,
        rng: Optional[random.Random] = None,
        failures: Optional[FailurePolicy] = None,
        clock: Callable[[], datetime] = utcnow,
        latency_scale: float = 1.0,
    ) -> None:
        self.rng = rng or random.Random()
        self.failures = failures or FailurePolicy()
        self.clock = clock
        self.latency_scale = max(0.0, float(latency_scale))

    async def _pause(self, op: str) -> None:
        delay = _LATENCY.get(op, 0.0) * self.latency_scale
        if delay > 0:
            await asyncio.sleep(delay)

    def _roll(self, chance: float) -> bool:
        return self.rng.random() < chance

    def _make_id(self, prefix: str, length: int) -> str:
        return prefix + "".join(self.rng.choices(ID_ALPHABET, k=length))

    def _pick_caseworker(self) -> directory.Caseworker:
        return directory.CASEWORKERS[int(self.rng.random() * len(directory.CASEWORKERS))]

    async def create_case(
        self,
        *,
        applicantName: str,
        dateOfBirth: str,
        disabilityType: str,
        description: str,
    ) -> Dict[str, Any]:
        logger.info("Creating disability case for %s", applicantName)
        await self._pause("create_case")

        case_id = self._make_id("DC", 10)
        filing_date = to_iso(self.clock())
        cw = self._pick_caseworker()

        return {
            "success": True,
            "caseId": case_id,
            "applicantName": applicantName,
            "dateOfBirth": dateOfBirth,
            "disabilityType": disabilityType,
            "description": description,
            "status": "Pending Review",
            "filingDate": filing_date,
            "assignedCaseworker": _caseworker_ref(cw),
            "nextSteps": list(directory.NEW_CASE_NEXT_STEPS),
            "message": f"Case {case_id} created successfully. Your assigned caseworker is {cw.name}.",
        }

    async def check_case_status(self, *, caseId: str) -> Dict[str, Any]:
        logger.info("Checking status for case %s", caseId)

        if self._roll(self.failures.check_status):
            raise TransientError("Case management system temporarily unavailable")

        await self._pause("check_case_status")

        rng = self.rng
        status = directory.CASE_STATUSES[int(rng.random() * len(directory.CASE_STATUSES))]
        disability_type = directory.DISABILITY_TYPES[int(rng.random() * len(directory.DISABILITY_TYPES))]
        cw = self._pick_caseworker()

        now = self.clock()
        filing_date = now - timedelta(days=rng.random() * 180)
        last_updated = now - timedelta(days=rng.random() * 14)
        if status in directory.CONCLUDED_STATUSES:
            estimated_completion = directory.CASE_CONCLUDED
        else:
            estimated_completion = to_iso(now + timedelta(days=rng.random() * 90))

        phone = "(555) 000-" + str(int(rng.random() * 9000 + 1000))
        pending = directory.PENDING_ACTIONS_BY_STATUS.get(status, directory.DEFAULT_PENDING_ACTIONS)

        return {
            "caseId": caseId.upper(),
            "status": status,
            "disabilityType": disability_type,
            "filingDate": to_iso(filing_date),
            "lastUpdated": to_iso(last_updated),
            "estimatedCompletion": estimated_completion,
            "assignedCaseworker": {**_caseworker_ref(cw), "phone": phone},
            "pendingActions": list(pending),
        }

    async def update_case(self, *, caseId: str, updateType: str, details: str) -> Dict[str, Any]:
        logger.info("Updating case %s: %s", caseId, updateType)
        await self._pause("update_case")

        if self._roll(self.failures.update_case):
            raise FatalError(
                "Unable to update case. The case may be locked for review. Please contact your caseworker."
            )

        update_id = self._make_id("UPD", 8)
        next_steps = directory.UPDATE_NEXT_STEPS.get(updateType, directory.DEFAULT_UPDATE_NEXT_STEPS)

        return {
            "success": True,
            "updateId": update_id,
            "caseId": caseId.upper(),
            "updateType": updateType,
            "details": details,
            "timestamp": to_iso(self.clock()),
            "message": f"Case {caseId} updated successfully. Update reference: {update_id}",
            "nextSteps": list(next_steps),
        }

    async def assign_caseworker(
        self,
        *,
        caseId: str,
        reason: Optional[str] = None,
        preferredSpecialty: Optional[str] = None,
    ) -> Dict[str, Any]:
        logger.info("Assigning caseworker for case %s", caseId)
        await self._pause("assign_caseworker")

        selected: Optional[directory.Caseworker] = None
        if preferredSpecialty:
            matches = directory.find_by_specialty(preferredSpecialty)
            if matches:
                selected = matches[0]
        if selected is None:
            selected = directory.lowest_caseload()

        return {
            "success": True,
            "caseId": caseId.upper(),
            "assignedCaseworker": {
                **_caseworker_ref(selected),
                "specialty": selected.specialty,
                "currentCaseload": selected.caseload,
            },
            "reason": reason or "Standard assignment",
            "assignmentDate": to_iso(self.clock()),
            "message": (
                f"Case {caseId} has been assigned to {selected.name}. "
                "They will contact you within 2-3 business days."
            ),
        }

    async def add_documentation(
        self,
        *,
        caseId: str,
        documentType: str,
        description: str,
        issuingAuthority: Optional[str] = None,
    ) -> Dict[str, Any]:
        logger.info("Adding documentation to case %s: %s", caseId, documentType)
        await self._pause("add_documentation")

        document_id = self._make_id("DOC", 8)
        required = directory.DOCUMENT_REQUIRED_ACTIONS.get(documentType, directory.DEFAULT_REQUIRED_ACTIONS)

        return {
            "success": True,
            "documentId": document_id,
            "caseId": caseId.upper(),
            "documentType": documentType,
            "description": description,
            "issuingAuthority": issuingAuthority or "Not specified",
            "uploadDate": to_iso(self.clock()),
            "status": "Pending Review",
            "message": (
                f"Document {document_id} has been added to case {caseId}. "
                "It will be reviewed within 3-5 business days."
            ),
            "requiredActions": list(required),
        }

    async def schedule_appointment(
        self,
        *,
        caseId: str,
        appointmentType: str,
        preferredDate: Optional[str] = None,
        preferredTime: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        logger.info("Scheduling %s for case %s", appointmentType, caseId)
        await self._pause("schedule_appointment")

        if self._roll(self.failures.schedule):
            raise TransientError("Scheduling conflict. Please try a different date or time.")

        appointment_id = self._make_id("APT", 8)

        if preferredDate:
            when = parse_preferred_date(preferredDate)
        else:
            when = self.clock() + timedelta(days=7 + self.rng.random() * 21)

        if preferredTime:
            hour, minute = parse_preferred_time(preferredTime)
        else:
            hour, minute = 9 + int(self.rng.random() * 7), 0  # 9 AM to 3 PM starts
        when = when.replace(hour=hour, minute=minute, second=0, microsecond=0)

        instructions = directory.PREPARATION_INSTRUCTIONS.get(
            appointmentType, directory.DEFAULT_PREPARATION_INSTRUCTIONS
        )

        return {
            "success": True,
            "appointmentId": appointment_id,
            "caseId": caseId.upper(),
            "appointmentType": appointmentType,
            "dateTime": to_iso(when),
            "location": directory.APPOINTMENT_LOCATIONS.get(appointmentType, directory.DEFAULT_APPOINTMENT_LOCATION),
            "duration": directory.APPOINTMENT_DURATIONS.get(appointmentType, directory.DEFAULT_APPOINTMENT_DURATION),
            "notes": notes or "None",
            "message": (
                f"Appointment {appointment_id} scheduled successfully for "
                f"{when:%m/%d/%Y} at {when:%I:%M %p}."
            ),
            "preparationInstructions": list(instructions),
        }

    async def get_eligibility_criteria(self, *, disabilityType: str) -> Dict[str, Any]:
        logger.info("Getting eligibility criteria for %s", disabilityType)

        matched = directory.match_eligibility_type(disabilityType)
        info = directory.ELIGIBILITY_CRITERIA[matched]

        return {
            "disabilityType": matched,
            "requirements": list(info.requirements),
            "requiredDocumentation": list(info.documentation),
            "estimatedProcessingTime": info.processing_time,
            "additionalInfo": directory.ELIGIBILITY_DISCLAIMER,
            "helplineNumber": directory.HELPLINE_NUMBER,
            "onlinePortal": directory.ONLINE_PORTAL,
        }


def build_operations() -> CaseOperations:
    """Operations configured from env (failure chances, latency scale, optional seed)."""
    from casework.config import load_case_settings, load_failure_policy

    settings = load_case_settings()
    rng = random.Random(settings.random_seed) if settings.random_seed is not None else random.Random()
    return CaseOperations(rng=rng, failures=load_failure_policy(), latency_scale=settings.latency_scale)
