"""Domain records for email requests and their stored verification results."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from verifier.decision.engine import DecisionOutcome, IdentityProfile
from verifier.extraction.field_parser import ExtractionResult


class RequestStatus(StrEnum):
    """Lifecycle of an email request.

    ``PENDING -> APPROVED | REJECTED`` by admin review, then
    ``APPROVED -> ISSUED`` once the college email is generated.
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ISSUED = "ISSUED"


@dataclass(frozen=True)
class VerificationResult:
    """Pipeline output stored for a request: parsed fields plus the decision."""

    extraction: ExtractionResult
    outcome: DecisionOutcome


@dataclass
class EmailRequest:
    """Represents a row from the email_requests table."""

    id: str
    profile: IdentityProfile
    document_ref: str
    media_type: str
    status: RequestStatus
    created_at: datetime
    result: VerificationResult | None = None
    ocr_completed_at: datetime | None = None
    processed_at: datetime | None = None
    admin_notes: str | None = None
    last_error: str | None = None
    college_email: str | None = None
    issued_at: datetime | None = None

    @property
    def ocr_completed(self) -> bool:
        return self.result is not None


class AuditAction(StrEnum):
    """Admin actions recorded in a request's audit trail."""

    APPROVE_REQUEST = "APPROVE_REQUEST"
    REJECT_REQUEST = "REJECT_REQUEST"
    ISSUE_EMAIL = "ISSUE_EMAIL"


@dataclass(frozen=True)
class AuditEntry:
    """One row of the audit_logs table."""

    id: int
    request_id: str
    action: AuditAction
    created_at: datetime
    details: str | None = None
    admin_id: str | None = None
