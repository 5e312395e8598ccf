"""Pydantic request/response schemas for the FastAPI endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from verifier.decision.engine import DecisionCategory
from verifier.storage.models import (
    AuditAction,
    AuditEntry,
    EmailRequest,
    RequestStatus,
    VerificationResult,
)


class ExtractionResponse(BaseModel):
    """Fields parsed from the OCR text of an ID card."""

    raw_text: str
    extracted_name: str | None = None
    extracted_roll: str | None = None
    extracted_college_id: str | None = None


class DecisionResponse(BaseModel):
    """Scores and recommendation for a verified ID card."""

    category: DecisionCategory
    confidence_score: float
    name_match_score: float
    roll_match_score: float


class VerificationResponse(BaseModel):
    """Response schema for a completed verification."""

    request_id: str
    extraction: ExtractionResponse
    decision: DecisionResponse

    @classmethod
    def from_result(
        cls, request_id: str, result: VerificationResult
    ) -> "VerificationResponse":
        extraction, outcome = result.extraction, result.outcome
        return cls(
            request_id=request_id,
            extraction=ExtractionResponse(
                raw_text=extraction.raw_text,
                extracted_name=extraction.extracted_name,
                extracted_roll=extraction.extracted_roll,
                extracted_college_id=extraction.extracted_college_id,
            ),
            decision=DecisionResponse(
                category=outcome.category,
                confidence_score=outcome.confidence_score,
                name_match_score=outcome.name_match_score,
                roll_match_score=outcome.roll_match_score,
            ),
        )


class EmailRequestResponse(BaseModel):
    """Response schema for a single email request."""

    id: str
    student_name: str
    student_email: str
    media_type: str
    status: RequestStatus
    created_at: datetime
    ocr_completed: bool
    extraction: ExtractionResponse | None = None
    decision: DecisionResponse | None = None
    ocr_completed_at: datetime | None = None
    processed_at: datetime | None = None
    admin_notes: str | None = None
    last_error: str | None = None
    college_email: str | None = None
    issued_at: datetime | None = None

    @classmethod
    def from_request(cls, request: EmailRequest) -> "EmailRequestResponse":
        verification = (
            VerificationResponse.from_result(request.id, request.result)
            if request.result is not None
            else None
        )
        return cls(
            id=request.id,
            student_name=request.profile.declared_name,
            student_email=request.profile.declared_email,
            media_type=request.media_type,
            status=request.status,
            created_at=request.created_at,
            ocr_completed=request.ocr_completed,
            extraction=verification.extraction if verification else None,
            decision=verification.decision if verification else None,
            ocr_completed_at=request.ocr_completed_at,
            processed_at=request.processed_at,
            admin_notes=request.admin_notes,
            last_error=request.last_error,
            college_email=request.college_email,
            issued_at=request.issued_at,
        )


class RequestListResponse(BaseModel):
    """Response schema listing email requests."""

    total: int
    requests: list[EmailRequestResponse]


class ApproveRequest(BaseModel):
    """Request body for approving an email request."""

    admin_notes: str | None = None
    admin_id: str | None = None


class RejectRequest(BaseModel):
    """Request body for rejecting an email request."""

    admin_notes: str = Field(min_length=1)
    admin_id: str | None = None


class IssueRequest(BaseModel):
    """Request body for issuing a college email."""

    admin_notes: str | None = None
    admin_id: str | None = None


class IssueResponse(BaseModel):
    """Response schema for an issued college email."""

    request_id: str
    college_email: str
    temp_password: str


class StatsResponse(BaseModel):
    """Response schema for dashboard statistics."""

    total: int
    pending: int
    approved: int
    rejected: int
    issued: int
    pending_ocr: int
    today_requests: int
    average_processing_hours: float | None = None


class AuditEntryResponse(BaseModel):
    """One admin action from a request's audit trail."""

    action: AuditAction
    details: str | None = None
    admin_id: str | None = None
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> "AuditEntryResponse":
        return cls(
            action=entry.action,
            details=entry.details,
            admin_id=entry.admin_id,
            created_at=entry.created_at,
        )


class AuditLogResponse(BaseModel):
    """Response schema for a request's audit trail, newest first."""

    request_id: str
    total: int
    entries: list[AuditEntryResponse]


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
