"""FastAPI application for the college email verification service.

Students upload an ID card with their declared name and email; the
OCR-to-decision pipeline runs in the background and admins review the
recommendation before approving, rejecting or issuing a college email.
"""

import shutil
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import (
    BackgroundTasks,
    Body,
    FastAPI,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from verifier.decision.engine import IdentityProfile
from verifier.exceptions import (
    DocumentNotFoundError,
    ExtractionError,
    ExtractionTimeout,
    InvalidRequestStateError,
    PreprocessingError,
    RequestNotFoundError,
    UnsupportedMediaType,
    VerifierError,
)
from verifier.pipeline.processor import build_pipeline
from verifier.pipeline.runner import PipelineRunner
from verifier.storage.documents import DocumentStore
from verifier.storage.models import RequestStatus
from verifier.storage.repository import RequestRepository
from verifier.utils.config import load_config
from verifier.utils.logger import get_logger
from verifier.workflow.service import RequestService

from .schemas import (
    ApproveRequest,
    AuditEntryResponse,
    AuditLogResponse,
    EmailRequestResponse,
    HealthResponse,
    IssueRequest,
    IssueResponse,
    RejectRequest,
    RequestListResponse,
    StatsResponse,
    VerificationResponse,
)

logger = get_logger(__name__)

API_VERSION = "1.0.0"

_ERROR_STATUS: dict[type[VerifierError], int] = {
    RequestNotFoundError: 404,
    DocumentNotFoundError: 404,
    UnsupportedMediaType: 415,
    InvalidRequestStateError: 400,
    PreprocessingError: 422,
    ExtractionTimeout: 504,
    ExtractionError: 502,
}


@dataclass(frozen=True)
class Services:
    """Shared components behind the endpoints."""

    requests: RequestService
    runner: PipelineRunner


@lru_cache(maxsize=1)
def _get_services() -> Services:
    """Initialize and return shared services.

    Returns:
        The request service and pipeline runner, sharing one repository.
    """
    config = load_config()
    repository = RequestRepository(config.storage.database_path)
    documents = DocumentStore(Path(config.storage.uploads_dir))
    pipeline = build_pipeline(config, repository)
    return Services(
        requests=RequestService(repository, documents, config.issuance),
        runner=PipelineRunner(pipeline, repository),
    )


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    if _get_services.cache_info().currsize:
        await _get_services().runner.drain()


app = FastAPI(
    title="College Email Verifier API",
    description="Verify student ID cards and issue institutional email accounts",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(VerifierError)
async def verifier_error_handler(_: Request, exc: VerifierError) -> JSONResponse:
    """Translate domain errors into HTTP error responses."""
    status_code = next(
        (
            code
            for error_type, code in _ERROR_STATUS.items()
            if isinstance(exc, error_type)
        ),
        500,
    )
    if status_code >= 500:
        logger.error("Request failed with %s: %s", type(exc).__name__, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return system health status."""
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        tesseract_available=shutil.which("tesseract") is not None,
    )


@app.post("/requests", response_model=EmailRequestResponse, status_code=201)
async def create_request(
    background_tasks: BackgroundTasks,
    name: Annotated[str, Form(min_length=1)],
    email: Annotated[str, Form(min_length=3)],
    file: Annotated[UploadFile, File(...)],
) -> EmailRequestResponse:
    """Submit an email request with an ID card upload.

    The verification pipeline runs after the response is sent.

    Args:
        name: Student's full name as declared at sign-up.
        email: Student's registered email address.
        file: ID card image (JPEG or PNG) or PDF.

    Returns:
        The created PENDING request.
    """
    services = _get_services()
    content = await file.read()
    request = services.requests.create_request(
        IdentityProfile(declared_name=name.strip(), declared_email=email.strip()),
        content,
        file.filename,
        file.content_type,
    )
    background_tasks.add_task(services.runner.run_detached, request.id)
    return EmailRequestResponse.from_request(request)


@app.get("/requests", response_model=RequestListResponse)
async def list_requests(
    status: Annotated[RequestStatus | None, Query()] = None,
) -> RequestListResponse:
    """List email requests, optionally filtered by status."""
    requests = _get_services().requests.list_requests(status)
    return RequestListResponse(
        total=len(requests),
        requests=[EmailRequestResponse.from_request(r) for r in requests],
    )


@app.get("/requests/{request_id}", response_model=EmailRequestResponse)
async def get_request(request_id: str) -> EmailRequestResponse:
    """Return a single email request with its verification result."""
    return EmailRequestResponse.from_request(
        _get_services().requests.get(request_id)
    )


@app.post("/requests/{request_id}/ocr", response_model=VerificationResponse)
async def run_verification(request_id: str) -> VerificationResponse:
    """Run the pipeline for a request, or return its stored result."""
    result = await _get_services().runner.run(request_id)
    return VerificationResponse.from_result(request_id, result)


@app.post("/requests/{request_id}/approve", response_model=EmailRequestResponse)
async def approve_request(
    request_id: str,
    body: Annotated[ApproveRequest | None, Body()] = None,
) -> EmailRequestResponse:
    """Approve a PENDING request after its verification completed."""
    body = body or ApproveRequest()
    return EmailRequestResponse.from_request(
        _get_services().requests.approve(request_id, body.admin_notes, body.admin_id)
    )


@app.post("/requests/{request_id}/reject", response_model=EmailRequestResponse)
async def reject_request(
    request_id: str,
    body: RejectRequest,
) -> EmailRequestResponse:
    """Reject a PENDING request with a reason."""
    try:
        request = _get_services().requests.reject(
            request_id, body.admin_notes, body.admin_id
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return EmailRequestResponse.from_request(request)


@app.post("/requests/{request_id}/issue", response_model=IssueResponse)
async def issue_email(
    request_id: str,
    body: Annotated[IssueRequest | None, Body()] = None,
) -> IssueResponse:
    """Generate the college email account for an APPROVED request."""
    body = body or IssueRequest()
    try:
        credentials = _get_services().requests.issue(
            request_id, body.admin_notes, body.admin_id
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return IssueResponse(
        request_id=request_id,
        college_email=credentials.college_email,
        temp_password=credentials.temp_password,
    )


@app.get("/requests/{request_id}/audit", response_model=AuditLogResponse)
async def get_audit_log(request_id: str) -> AuditLogResponse:
    """Return the admin actions taken on a request, newest first."""
    entries = _get_services().requests.audit_log(request_id)
    return AuditLogResponse(
        request_id=request_id,
        total=len(entries),
        entries=[AuditEntryResponse.from_entry(e) for e in entries],
    )


@app.get("/stats", response_model=StatsResponse)
async def get_stats() -> StatsResponse:
    """Return request counts for the admin dashboard."""
    stats = _get_services().requests.stats()
    return StatsResponse(
        total=stats.total,
        pending=stats.pending,
        approved=stats.approved,
        rejected=stats.rejected,
        issued=stats.issued,
        pending_ocr=stats.pending_ocr,
        today_requests=stats.today_requests,
        average_processing_hours=stats.average_processing_hours,
    )
