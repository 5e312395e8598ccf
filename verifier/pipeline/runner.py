"""Fire-and-forget submission of pipeline runs.

Uploads do not wait for verification. ``submit`` starts the run as an
asyncio task and hands the task back as the completion signal; failures
are logged and recorded on the request rather than lost with the task.
"""

import asyncio

from verifier.exceptions import VerifierError
from verifier.storage.models import VerificationResult
from verifier.storage.repository import RequestRepository
from verifier.utils.logger import get_logger

from .processor import VerificationPipeline

logger = get_logger(__name__)


class PipelineRunner:
    """Schedules pipeline runs, one in-flight task per request.

    A second submission for a request whose run is still in flight gets
    the same task back instead of starting a duplicate run.

    Args:
        pipeline: Pipeline executing the stages.
        repository: Store used to record failures.
    """

    def __init__(
        self,
        pipeline: VerificationPipeline,
        repository: RequestRepository,
    ) -> None:
        self._pipeline = pipeline
        self._repository = repository
        self._inflight: dict[str, asyncio.Task[VerificationResult]] = {}

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def submit(self, request_id: str) -> asyncio.Task[VerificationResult]:
        """Start verifying a request in the background.

        Must be called from a running event loop.

        Args:
            request_id: Email request to verify.

        Returns:
            Task resolving to the stored result, or raising the pipeline error.
        """
        task = self._inflight.get(request_id)
        if task is not None:
            logger.debug(
                "Request %s already in flight; joining existing run", request_id
            )
            return task

        task = asyncio.get_running_loop().create_task(
            self._run(request_id), name=f"verify-{request_id}"
        )
        self._inflight[request_id] = task
        task.add_done_callback(lambda t: self._finished(request_id, t))
        return task

    async def run(self, request_id: str) -> VerificationResult:
        """Verify a request and wait for the result."""
        return await self.submit(request_id)

    async def run_detached(self, request_id: str) -> None:
        """Verify a request where nobody waits on the outcome.

        Pipeline errors are already logged and stored on the request by
        the time they reach here, so they end the run quietly.
        """
        try:
            await self.submit(request_id)
        except VerifierError:
            return

    async def drain(self) -> None:
        """Wait for every in-flight run to finish."""
        tasks = list(self._inflight.values())
        if tasks:
            logger.info("Waiting for %d pipeline run(s) to finish", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, request_id: str) -> VerificationResult:
        try:
            return await self._pipeline.run(request_id)
        except VerifierError as exc:
            logger.error("Pipeline failed for request %s: %s", request_id, exc)
            self._record_failure(request_id, f"{type(exc).__name__}: {exc}")
            raise
        except Exception as exc:
            logger.exception("Unexpected pipeline failure for request %s", request_id)
            self._record_failure(request_id, f"{type(exc).__name__}: {exc}")
            raise

    def _record_failure(self, request_id: str, message: str) -> None:
        try:
            self._repository.record_failure(request_id, message)
        except VerifierError as exc:
            logger.warning("Could not record failure for %s: %s", request_id, exc)

    def _finished(
        self, request_id: str, task: asyncio.Task[VerificationResult]
    ) -> None:
        if self._inflight.get(request_id) is task:
            del self._inflight[request_id]
        if not task.cancelled():
            # Marks the exception as retrieved; _run has already logged it.
            task.exception()
