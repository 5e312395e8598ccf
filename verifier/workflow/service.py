"""Admin review workflow for email requests.

``RequestService`` owns the status rules: a request is created PENDING,
an admin approves or rejects it once the pipeline has produced its
recommendation, and an approved request is turned into an issued
college email address. Status changes go through compare-and-set
updates, so two admins acting on the same request cannot both win, and
every admin action is written to the request's audit trail.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from verifier.decision.engine import IdentityProfile
from verifier.exceptions import InvalidRequestStateError
from verifier.storage.documents import DocumentStore
from verifier.storage.models import (
    AuditAction,
    AuditEntry,
    EmailRequest,
    RequestStatus,
)
from verifier.storage.repository import RequestRepository
from verifier.utils.config import IssuanceConfig
from verifier.utils.logger import get_logger

from .issuance import generate_college_email, generate_secure_password

logger = get_logger(__name__)


@dataclass(frozen=True)
class IssuedCredentials:
    """Login details handed to a student whose request was issued."""

    college_email: str
    temp_password: str


@dataclass(frozen=True)
class DashboardStats:
    """Request counts for the admin dashboard."""

    total: int
    pending: int
    approved: int
    rejected: int
    issued: int
    pending_ocr: int
    today_requests: int = 0
    average_processing_hours: float | None = None


class RequestService:
    """Creates email requests and applies admin review decisions.

    Args:
        repository: Request store.
        documents: Store for uploaded ID card documents.
        issuance: Domain and password settings for issued accounts.
    """

    def __init__(
        self,
        repository: RequestRepository,
        documents: DocumentStore,
        issuance: IssuanceConfig | None = None,
    ) -> None:
        self.repository = repository
        self.documents = documents
        self.issuance = issuance or IssuanceConfig()

    def create_request(
        self,
        profile: IdentityProfile,
        data: bytes,
        filename: str | None,
        content_type: str | None = None,
    ) -> EmailRequest:
        """Register a new email request with its ID card upload.

        Args:
            profile: The student's declared identity.
            data: ID card file content.
            filename: Client-supplied file name.
            content_type: Client-supplied MIME type.

        Returns:
            The created PENDING request.

        Raises:
            UnsupportedMediaType: If the upload is not JPEG, PNG or PDF.
            InvalidRequestStateError: If the student already has a
                request awaiting review.
        """
        # Media gate runs before anything is written.
        document_ref, media_type = self.documents.save(data, filename, content_type)
        try:
            if self.repository.has_pending(profile.declared_email):
                raise InvalidRequestStateError(
                    f"{profile.declared_email} already has a pending request"
                )
            # The repository enforces the same rule for concurrent uploads.
            return self.repository.create(profile, document_ref, media_type.value)
        except InvalidRequestStateError:
            self.documents.delete(document_ref)
            raise

    def get(self, request_id: str) -> EmailRequest:
        return self.repository.get(request_id)

    def list_requests(self, status: RequestStatus | None = None) -> list[EmailRequest]:
        return self.repository.list_requests(status)

    def approve(
        self,
        request_id: str,
        notes: str | None = None,
        admin_id: str | None = None,
    ) -> EmailRequest:
        """Approve a PENDING request whose pipeline run has completed.

        The audit entry carries ``notes`` or, without them, the pipeline's
        recommendation and confidence.

        Raises:
            RequestNotFoundError: If the request does not exist.
            InvalidRequestStateError: If the request is not PENDING or has
                no verification result yet.
        """
        request = self.repository.get(request_id)
        self._require_status(request, RequestStatus.PENDING, "approve")
        if request.result is None:
            raise InvalidRequestStateError(
                f"Cannot approve request {request_id}: OCR has not completed"
            )
        self._transition(request, RequestStatus.APPROVED, notes)
        outcome = request.result.outcome
        self.repository.add_audit_entry(
            request_id,
            AuditAction.APPROVE_REQUEST,
            notes
            or f"Approved. AI: {outcome.category}, "
            f"Confidence: {outcome.confidence_score * 100:.0f}%",
            admin_id,
        )
        logger.info("Request %s approved", request_id)
        return self.repository.get(request_id)

    def reject(
        self, request_id: str, notes: str, admin_id: str | None = None
    ) -> EmailRequest:
        """Reject a PENDING request.

        Args:
            request_id: Request to reject.
            notes: Reason shown to the student; must not be blank.
            admin_id: Reviewer recorded in the audit trail.

        Raises:
            ValueError: If ``notes`` is blank.
            RequestNotFoundError: If the request does not exist.
            InvalidRequestStateError: If the request is not PENDING.
        """
        if not notes or not notes.strip():
            raise ValueError("A rejection reason is required")
        request = self.repository.get(request_id)
        self._require_status(request, RequestStatus.PENDING, "reject")
        self._transition(request, RequestStatus.REJECTED, notes.strip())
        self.repository.add_audit_entry(
            request_id, AuditAction.REJECT_REQUEST, notes.strip(), admin_id
        )
        logger.info("Request %s rejected", request_id)
        return self.repository.get(request_id)

    def issue(
        self,
        request_id: str,
        notes: str | None = None,
        admin_id: str | None = None,
    ) -> IssuedCredentials:
        """Generate a college email address for an APPROVED request.

        The address is derived from the declared name and the roll number
        read from the ID card.

        Returns:
            The issued address and its temporary password.

        Raises:
            RequestNotFoundError: If the request does not exist.
            InvalidRequestStateError: If the request is not APPROVED, has
                no extracted roll number, or was issued concurrently.
        """
        request = self.repository.get(request_id)
        self._require_status(request, RequestStatus.APPROVED, "issue an email for")
        roll = request.result.extraction.extracted_roll if request.result else None
        if not roll:
            raise InvalidRequestStateError(
                f"Cannot issue email for request {request_id}: "
                "roll number not extracted from ID card"
            )

        college_email = generate_college_email(
            request.profile.declared_name,
            roll,
            exists=self.repository.college_email_exists,
            domain=self.issuance.college_domain,
        )
        password = generate_secure_password(
            self.issuance.password_min_length,
            self.issuance.password_max_length,
        )
        if not self.repository.mark_issued(request_id, college_email, notes):
            raise InvalidRequestStateError(
                f"Request {request_id} changed while issuing {college_email}"
            )
        self.repository.add_audit_entry(
            request_id,
            AuditAction.ISSUE_EMAIL,
            f"College email {college_email} issued",
            admin_id,
        )
        logger.info("Issued %s for request %s", college_email, request_id)
        return IssuedCredentials(college_email=college_email, temp_password=password)

    def audit_log(self, request_id: str) -> list[AuditEntry]:
        """Admin actions taken on a request, newest first.

        Raises:
            RequestNotFoundError: If the request does not exist.
        """
        self.repository.get(request_id)
        return self.repository.list_audit_entries(request_id)

    def stats(self) -> DashboardStats:
        counts = self.repository.status_counts()
        today_start = datetime.now(timezone.utc).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        return DashboardStats(
            total=sum(counts.values()),
            pending=counts[RequestStatus.PENDING],
            approved=counts[RequestStatus.APPROVED],
            rejected=counts[RequestStatus.REJECTED],
            issued=counts[RequestStatus.ISSUED],
            pending_ocr=self.repository.pending_ocr_count(),
            today_requests=self.repository.count_created_since(today_start),
            average_processing_hours=self.repository.average_processing_hours(),
        )

    def _transition(
        self,
        request: EmailRequest,
        new_status: RequestStatus,
        notes: str | None,
    ) -> None:
        if not self.repository.transition(
            request.id, request.status, new_status, notes
        ):
            current = self.repository.get(request.id).status
            raise InvalidRequestStateError(
                f"Request {request.id} is {current}, expected {request.status}"
            )

    @staticmethod
    def _require_status(
        request: EmailRequest, expected: RequestStatus, action: str
    ) -> None:
        if request.status != expected:
            raise InvalidRequestStateError(
                f"Cannot {action} request {request.id} with status "
                f"{request.status}; must be {expected}"
            )
