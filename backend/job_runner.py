# backend/job_runner.py

import datetime
import logging
from typing import Callable, Optional

import httpx
from pydantic import BaseModel

from .errors import FetchFailed, MissingOutput
from .imaging import normalize_image_async, to_data_url
from .model import (
    ErrorEvent,
    JobResult,
    MockupSpec,
    PredictionHandle,
    ProcessingEvent,
    QueuedEvent,
    SucceededEvent,
)
from .poller import poll_until_terminal
from .prediction_client import PredictionClient
from .utils import build_filename, render_prompt, utc_today

logger = logging.getLogger(__name__)

Emit = Callable[[BaseModel], None]


class JobRunner:
    """Drives one mockup from prompt to normalized PNG."""

    def __init__(
        self,
        client: PredictionClient,
        http: httpx.AsyncClient,
        poll_interval: float = 1.2,
        poll_timeout: Optional[float] = None,
        collection_prefix: str = "AG",
        today: Callable[[], datetime.date] = utc_today,
    ):
        self.client = client
        self.http = http
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.collection_prefix = collection_prefix
        self.today = today

    async def run(self, spec: MockupSpec, title: str, collection: str, emit: Emit) -> Optional[JobResult]:
        """
        Returns the JobResult, or None after emitting a single ErrorEvent.
        Never raises for a failure of this job.
        """
        prompt = render_prompt(spec.prompt, title)

        try:
            created = await self.client.create(prompt)
            emit(QueuedEvent(type=spec.type, id=created.id))

            def on_tick(tick: PredictionHandle) -> None:
                emit(ProcessingEvent(
                    type=spec.type,
                    provider_status=tick.status,
                    logs=tick.logs,
                    metrics=tick.metrics,
                ))

            result = await poll_until_terminal(
                self.client,
                created.id,
                on_tick,
                poll_interval=self.poll_interval,
                timeout=self.poll_timeout,
            )

            image_url = result.first_output()
            if not image_url:
                raise MissingOutput(f"No output from Replicate for {spec.type}")

            raw = await self._download(image_url)
            processed = await normalize_image_async(raw, spec.size)

            filename = build_filename(
                spec, title, collection, prefix=self.collection_prefix, day=self.today()
            )
            emit(SucceededEvent(type=spec.type, filename=filename, preview=to_data_url(processed)))
            logger.info("[JobRunner] %s done -> %s (%d bytes)", spec.type, filename, len(processed))
            return JobResult(filename=filename, data=processed)

        except Exception as e:
            logger.warning("[JobRunner] %s failed: %s: %s", spec.type, type(e).__name__, e)
            emit(ErrorEvent(type=spec.type, error=str(e) or type(e).__name__))
            return None

    async def _download(self, url: str) -> bytes:
        try:
            r = await self.http.get(url)
        except httpx.HTTPError as e:
            raise FetchFailed(f"Image fetch failed: {e}") from e
        if not r.is_success:
            raise FetchFailed(f"Image fetch failed: {r.status_code} {r.text[:200]}")
        return r.content
