import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from .archive import build_zip
from .broadcaster import ProgressBroadcaster
from .errors import ArchiveFailed, EmptyBatch
from .job_runner import JobRunner
from .model import BatchCompleteEvent, BatchResult, JobResult, MockupSpec
from .utils import gen_session_id

logger = logging.getLogger(__name__)

ArchiveBuilder = Callable[[Iterable[Tuple[str, bytes]]], bytes]


class BatchOrchestrator:
    """
    Fans a batch out to one JobRunner per MockupSpec and zips what succeeded.

    Runners are independent: a failing job only produces its own error
    event and is left out of the archive. The batch as a whole fails only
    when the archive cannot be built, or when `fail_on_empty` is set and
    every configured job failed.
    """

    def __init__(
        self,
        runner: JobRunner,
        broadcaster: ProgressBroadcaster,
        archive_builder: ArchiveBuilder = build_zip,
        fail_on_empty: bool = False,
    ):
        self.runner = runner
        self.broadcaster = broadcaster
        self.archive_builder = archive_builder
        self.fail_on_empty = fail_on_empty

    async def run_batch(
        self,
        specs: Sequence[MockupSpec],
        title: str,
        collection: str,
        session_id: Optional[str] = None,
    ) -> BatchResult:
        session_id = session_id or gen_session_id()
        logger.info(
            "[Orchestrator] Session %s: %d mockup(s) for %r / %r (listener: %s)",
            session_id,
            len(specs),
            title,
            collection,
            self.broadcaster.is_subscribed(session_id),
        )

        def emit(event: BaseModel) -> None:
            self.broadcaster.publish(session_id, event)

        outcomes = await asyncio.gather(
            *(self.runner.run(spec, title, collection, emit) for spec in specs),
            return_exceptions=True,
        )

        results: List[JobResult] = []
        succeeded: List[str] = []
        failed: List[str] = []
        for spec, outcome in zip(specs, outcomes):
            if isinstance(outcome, JobResult):
                results.append(outcome)
                succeeded.append(spec.type)
                continue
            if isinstance(outcome, BaseException):
                # JobRunner.run reports its own failures; this is a bug in the runner itself.
                logger.error("[Orchestrator] Runner for %s raised", spec.type, exc_info=outcome)
            failed.append(spec.type)

        logger.info("[Orchestrator] Session %s: %d/%d succeeded", session_id, len(succeeded), len(specs))

        if specs:
            emit(BatchCompleteEvent(
                session_id=session_id, total=len(specs), succeeded=succeeded, failed=failed
            ))

        if specs and not results and self.fail_on_empty:
            raise EmptyBatch(f"All {len(specs)} mockup generations failed")

        try:
            archive = self.archive_builder((r.filename, r.data) for r in results)
        except ArchiveFailed:
            logger.exception("[Orchestrator] Archive failed for session %s", session_id)
            raise
        except Exception as e:
            logger.exception("[Orchestrator] Archive failed for session %s", session_id)
            raise ArchiveFailed(f"Failed to create ZIP: {e}") from e

        return BatchResult(session_id=session_id, archive=archive, succeeded=succeeded, failed=failed)
