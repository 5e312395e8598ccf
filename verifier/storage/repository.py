"""SQLite persistence for email requests and their verification results.

Writes that must happen at most once per request (storing a decision,
moving between statuses, issuing an address) are compare-and-set
``UPDATE`` statements guarded on the current column value, so a losing
concurrent writer changes nothing. A partial unique index allows at most
one PENDING request per student email.
"""

import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from verifier.decision.engine import DecisionCategory, DecisionOutcome, IdentityProfile
from verifier.exceptions import InvalidRequestStateError, RequestNotFoundError
from verifier.extraction.field_parser import ExtractionResult
from verifier.utils.logger import get_logger

from .models import (
    AuditAction,
    AuditEntry,
    EmailRequest,
    RequestStatus,
    VerificationResult,
)

logger = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS email_requests (
    id TEXT PRIMARY KEY,
    student_name TEXT NOT NULL,
    student_email TEXT NOT NULL,
    document_ref TEXT NOT NULL,
    media_type TEXT NOT NULL,
    status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    raw_text TEXT,
    extracted_name TEXT,
    extracted_roll TEXT,
    extracted_college_id TEXT,
    ai_decision TEXT,
    confidence_score REAL,
    name_match REAL,
    roll_match REAL,
    ocr_completed_at TEXT,
    processed_at TEXT,
    admin_notes TEXT,
    last_error TEXT,
    college_email TEXT UNIQUE,
    issued_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_email_requests_status ON email_requests (status);
CREATE UNIQUE INDEX IF NOT EXISTS idx_email_requests_one_pending
    ON email_requests (student_email) WHERE status = 'PENDING';
CREATE TABLE IF NOT EXISTS audit_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id TEXT NOT NULL REFERENCES email_requests (id),
    action TEXT NOT NULL,
    admin_id TEXT,
    details TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_audit_logs_request ON audit_logs (request_id);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class RequestRepository:
    """Stores email requests in a SQLite database.

    A single connection is shared behind a lock so the repository can be
    used from the event loop and from worker threads alike.

    Args:
        database_path: SQLite file path, or ``":memory:"``.
    """

    def __init__(self, database_path: str = ":memory:") -> None:
        if database_path != ":memory:":
            Path(database_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(database_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._lock, self._conn:
            self._conn.executescript(_SCHEMA)
        logger.debug("Opened request database at %s", database_path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock, self._conn:
            return self._conn.execute(sql, params)

    def _fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def create(
        self,
        profile: IdentityProfile,
        document_ref: str,
        media_type: str,
    ) -> EmailRequest:
        """Insert a new PENDING request.

        Args:
            profile: The requester's declared identity.
            document_ref: Document store reference of the uploaded ID card.
            media_type: Resolved media type of the upload.

        Returns:
            The created request.

        Raises:
            InvalidRequestStateError: If the student already has a PENDING
                request.
        """
        request_id = uuid.uuid4().hex
        try:
            self._execute(
                "INSERT INTO email_requests (id, student_name, student_email, "
                "document_ref, media_type, status, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    request_id,
                    profile.declared_name,
                    profile.declared_email,
                    document_ref,
                    media_type,
                    RequestStatus.PENDING.value,
                    _now(),
                ),
            )
        except sqlite3.IntegrityError as exc:
            raise InvalidRequestStateError(
                f"{profile.declared_email} already has a pending request"
            ) from exc
        logger.info(
            "Created email request %s for %s", request_id, profile.declared_email
        )
        return self.get(request_id)

    def get(self, request_id: str) -> EmailRequest:
        """Fetch a request by id.

        Raises:
            RequestNotFoundError: If no request has this id.
        """
        row = self._fetchone(
            "SELECT * FROM email_requests WHERE id = ?", (request_id,)
        )
        if row is None:
            raise RequestNotFoundError(f"Request {request_id} not found")
        return self._to_request(row)

    def list_requests(
        self, status: RequestStatus | None = None
    ) -> list[EmailRequest]:
        """List requests oldest first, optionally filtered by status."""
        if status is None:
            rows = self._fetchall(
                "SELECT * FROM email_requests ORDER BY created_at, rowid"
            )
        else:
            rows = self._fetchall(
                "SELECT * FROM email_requests WHERE status = ? "
                "ORDER BY created_at, rowid",
                (status.value,),
            )
        return [self._to_request(row) for row in rows]

    def has_pending(self, student_email: str) -> bool:
        """Whether the student already has a request awaiting review."""
        row = self._fetchone(
            "SELECT 1 FROM email_requests WHERE student_email = ? AND status = ?",
            (student_email, RequestStatus.PENDING.value),
        )
        return row is not None

    def get_result(self, request_id: str) -> VerificationResult | None:
        """Return the stored verification result, or ``None`` if not computed yet."""
        return self.get(request_id).result

    def save_result(
        self, request_id: str, result: VerificationResult
    ) -> VerificationResult:
        """Store a verification result unless one already exists.

        The write only succeeds while ``ai_decision`` is still NULL. When
        another writer got there first, its result is returned and the
        new one is discarded.

        Args:
            request_id: Request the result belongs to.
            result: Freshly computed result.

        Returns:
            The result that is stored for the request.

        Raises:
            RequestNotFoundError: If no request has this id.
        """
        extraction, outcome = result.extraction, result.outcome
        cursor = self._execute(
            "UPDATE email_requests SET raw_text = ?, extracted_name = ?, "
            "extracted_roll = ?, extracted_college_id = ?, ai_decision = ?, "
            "confidence_score = ?, name_match = ?, roll_match = ?, "
            "ocr_completed_at = ?, last_error = NULL "
            "WHERE id = ? AND ai_decision IS NULL",
            (
                extraction.raw_text,
                extraction.extracted_name,
                extraction.extracted_roll,
                extraction.extracted_college_id,
                outcome.category.value,
                outcome.confidence_score,
                outcome.name_match_score,
                outcome.roll_match_score,
                _now(),
                request_id,
            ),
        )
        if cursor.rowcount == 1:
            return result

        existing = self.get(request_id).result
        logger.warning(
            "Request %s already has a stored decision; keeping it", request_id
        )
        return existing if existing is not None else result

    def record_failure(self, request_id: str, message: str) -> None:
        """Remember why the last pipeline run for a request failed."""
        self._execute(
            "UPDATE email_requests SET last_error = ? WHERE id = ?",
            (message, request_id),
        )

    def transition(
        self,
        request_id: str,
        expected: RequestStatus,
        new_status: RequestStatus,
        admin_notes: str | None = None,
    ) -> bool:
        """Move a request between statuses if it is still in ``expected``.

        Returns:
            ``True`` if this call performed the transition.
        """
        cursor = self._execute(
            "UPDATE email_requests SET status = ?, "
            "admin_notes = COALESCE(?, admin_notes), processed_at = ? "
            "WHERE id = ? AND status = ?",
            (new_status.value, admin_notes, _now(), request_id, expected.value),
        )
        return cursor.rowcount == 1

    def college_email_exists(self, college_email: str) -> bool:
        row = self._fetchone(
            "SELECT 1 FROM email_requests WHERE college_email = ?", (college_email,)
        )
        return row is not None

    def mark_issued(
        self, request_id: str, college_email: str, admin_notes: str | None = None
    ) -> bool:
        """Record an issued college email and move APPROVED -> ISSUED.

        Returns:
            ``True`` on success, ``False`` if the request is no longer
            APPROVED or the address was taken concurrently.
        """
        now = _now()
        try:
            cursor = self._execute(
                "UPDATE email_requests SET status = ?, college_email = ?, "
                "issued_at = ?, processed_at = ?, "
                "admin_notes = COALESCE(?, admin_notes) "
                "WHERE id = ? AND status = ?",
                (
                    RequestStatus.ISSUED.value,
                    college_email,
                    now,
                    now,
                    admin_notes,
                    request_id,
                    RequestStatus.APPROVED.value,
                ),
            )
        except sqlite3.IntegrityError:
            logger.warning("College email %s was issued concurrently", college_email)
            return False
        return cursor.rowcount == 1

    def status_counts(self) -> dict[RequestStatus, int]:
        """Count requests per status; statuses without requests count as 0."""
        rows = self._fetchall(
            "SELECT status, COUNT(*) AS n FROM email_requests GROUP BY status"
        )
        counts = {status: 0 for status in RequestStatus}
        for row in rows:
            counts[RequestStatus(row["status"])] = row["n"]
        return counts

    def pending_ocr_count(self) -> int:
        """Number of PENDING requests still waiting for a pipeline result."""
        row = self._fetchone(
            "SELECT COUNT(*) AS n FROM email_requests "
            "WHERE status = ? AND ai_decision IS NULL",
            (RequestStatus.PENDING.value,),
        )
        return row["n"] if row else 0

    def count_created_since(self, since: datetime) -> int:
        """Number of requests created at or after ``since`` (timezone-aware)."""
        row = self._fetchone(
            "SELECT COUNT(*) AS n FROM email_requests WHERE created_at >= ?",
            (since.astimezone(timezone.utc).isoformat(),),
        )
        return row["n"] if row else 0

    def average_processing_hours(self) -> float | None:
        """Mean hours from creation to the last admin action, to one decimal.

        Returns:
            ``None`` when no request has been processed yet.
        """
        rows = self._fetchall(
            "SELECT created_at, processed_at FROM email_requests "
            "WHERE processed_at IS NOT NULL"
        )
        if not rows:
            return None
        total_hours = sum(
            (
                datetime.fromisoformat(row["processed_at"])
                - datetime.fromisoformat(row["created_at"])
            ).total_seconds()
            / 3600
            for row in rows
        )
        return round(total_hours / len(rows), 1)

    def add_audit_entry(
        self,
        request_id: str,
        action: AuditAction,
        details: str | None = None,
        admin_id: str | None = None,
    ) -> AuditEntry:
        """Append an admin action to the request's audit trail."""
        created_at = _now()
        cursor = self._execute(
            "INSERT INTO audit_logs (request_id, action, admin_id, details, "
            "created_at) VALUES (?, ?, ?, ?, ?)",
            (request_id, action.value, admin_id, details, created_at),
        )
        logger.info(
            "Audit: %s by %s on request %s", action, admin_id or "admin", request_id
        )
        return AuditEntry(
            id=cursor.lastrowid,
            request_id=request_id,
            action=action,
            created_at=datetime.fromisoformat(created_at),
            details=details,
            admin_id=admin_id,
        )

    def list_audit_entries(self, request_id: str) -> list[AuditEntry]:
        """Audit trail of a request, newest first."""
        rows = self._fetchall(
            "SELECT * FROM audit_logs WHERE request_id = ? "
            "ORDER BY created_at DESC, id DESC",
            (request_id,),
        )
        return [
            AuditEntry(
                id=row["id"],
                request_id=row["request_id"],
                action=AuditAction(row["action"]),
                created_at=datetime.fromisoformat(row["created_at"]),
                details=row["details"],
                admin_id=row["admin_id"],
            )
            for row in rows
        ]

    @staticmethod
    def _to_request(row: sqlite3.Row) -> EmailRequest:
        result = None
        if row["ai_decision"] is not None:
            result = VerificationResult(
                extraction=ExtractionResult(
                    raw_text=row["raw_text"] or "",
                    extracted_name=row["extracted_name"],
                    extracted_roll=row["extracted_roll"],
                    extracted_college_id=row["extracted_college_id"],
                ),
                outcome=DecisionOutcome(
                    category=DecisionCategory(row["ai_decision"]),
                    confidence_score=row["confidence_score"],
                    name_match_score=row["name_match"],
                    roll_match_score=row["roll_match"],
                ),
            )
        return EmailRequest(
            id=row["id"],
            profile=IdentityProfile(
                declared_name=row["student_name"],
                declared_email=row["student_email"],
            ),
            document_ref=row["document_ref"],
            media_type=row["media_type"],
            status=RequestStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            result=result,
            ocr_completed_at=_parse_ts(row["ocr_completed_at"]),
            processed_at=_parse_ts(row["processed_at"]),
            admin_notes=row["admin_notes"],
            last_error=row["last_error"],
            college_email=row["college_email"],
            issued_at=_parse_ts(row["issued_at"]),
        )
