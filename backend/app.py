# backend/app.py

import asyncio
import base64
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

import httpx
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse

from config.settings import Settings, settings as default_settings
from .archive import build_zip
from .broadcaster import ProgressBroadcaster
from .errors import ArchiveFailed, ConfigError, EmptyBatch, NormalizationFailed
from .imaging import validate_image
from .job_runner import JobRunner
from .mockup_config import load_mockup_specs
from .model import BatchCompleteEvent, GenerateResponse, MockupSpec, SessionResponse
from .orchestrator import BatchOrchestrator
from .prediction_client import PredictionClient
from .utils import gen_session_id

logger = logging.getLogger(__name__)


async def event_stream(broadcaster: ProgressBroadcaster, session_id: str) -> AsyncIterator[str]:
    """
    SSE body for one subscriber. Ends after the batch summary event;
    a client disconnect cancels the generator and releases only this sink.
    """
    queue: asyncio.Queue = asyncio.Queue()
    sink = queue.put_nowait
    broadcaster.subscribe(session_id, sink)
    logger.info("[API] Subscriber attached to session %s", session_id)
    try:
        while True:
            event = await queue.get()
            yield f"data: {event.model_dump_json()}\n\n"
            if isinstance(event, BatchCompleteEvent):
                break
    finally:
        broadcaster.unsubscribe(session_id, sink)
        logger.info("[API] Subscriber left session %s", session_id)


def create_app(
    cfg: Optional[Settings] = None,
    specs: Optional[List[MockupSpec]] = None,
    prediction_client: Optional[PredictionClient] = None,
    http: Optional[httpx.AsyncClient] = None,
    broadcaster: Optional[ProgressBroadcaster] = None,
) -> FastAPI:
    cfg = cfg or default_settings
    if specs is None:
        specs = load_mockup_specs(cfg.MOCKUPS_FILE)

    http = http or httpx.AsyncClient(timeout=cfg.REQUEST_TIMEOUT, follow_redirects=True)
    client = prediction_client or PredictionClient(
        api_token=cfg.REPLICATE_API_TOKEN or "",
        model_version=cfg.REPLICATE_MODEL_VERSION or "",
        base_url=cfg.REPLICATE_API_URL,
        http=http,
    )
    broadcaster = broadcaster or ProgressBroadcaster(replay_size=cfg.REPLAY_BUFFER_SIZE)
    runner = JobRunner(
        client,
        http,
        poll_interval=cfg.POLL_INTERVAL,
        poll_timeout=cfg.POLL_TIMEOUT,
        collection_prefix=cfg.COLLECTION_PREFIX,
    )
    orchestrator = BatchOrchestrator(
        runner, broadcaster, archive_builder=build_zip, fail_on_empty=cfg.FAIL_ON_EMPTY_BATCH
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        missing = cfg.missing_provider_config()
        if missing:
            raise ConfigError(f"Missing Replicate configuration: {', '.join(missing)}")
        logger.info("[API] Loaded %d mockup type(s) from %s", len(specs), cfg.MOCKUPS_FILE)
        yield
        await http.aclose()

    app = FastAPI(title="Mockup Generator", lifespan=lifespan)
    app.state.settings = cfg
    app.state.specs = specs
    app.state.broadcaster = broadcaster
    app.state.orchestrator = orchestrator

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/mockups", response_model=List[MockupSpec])
    async def list_mockups(request: Request):
        return request.app.state.specs

    @app.post("/sessions", response_model=SessionResponse)
    async def open_session():
        """Reserve a session id so the client can subscribe before generating."""
        return SessionResponse(session_id=gen_session_id())

    @app.get("/progress/{session_id}")
    async def progress(session_id: str, request: Request):
        return StreamingResponse(
            event_stream(request.app.state.broadcaster, session_id),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
        )

    @app.post("/generate", response_model=GenerateResponse)
    async def generate(
        request: Request,
        artwork: UploadFile = File(...),
        title: str = Form("Untitled"),
        collection: str = Form("Default"),
        session_id: Optional[str] = Form(None),
    ):
        missing = request.app.state.settings.missing_provider_config()
        if missing:
            raise HTTPException(
                status_code=500,
                detail=f"Server missing Replicate configuration. Set {' and '.join(missing)}.",
            )

        data = await artwork.read()
        try:
            validate_image(data)
        except NormalizationFailed as e:
            raise HTTPException(status_code=400, detail=str(e))

        title = title.strip() or "Untitled"
        collection = collection.strip() or "Default"

        try:
            result = await request.app.state.orchestrator.run_batch(
                request.app.state.specs, title, collection, session_id=session_id or None
            )
        except EmptyBatch as e:
            raise HTTPException(status_code=502, detail=str(e))
        except ArchiveFailed as e:
            raise HTTPException(status_code=500, detail=str(e))

        b64 = base64.b64encode(result.archive).decode("ascii")
        return GenerateResponse(
            gen_id=result.session_id,
            zip=f"data:application/zip;base64,{b64}",
            succeeded=result.succeeded,
            failed=result.failed,
        )

    return app


logging.basicConfig(
    level=default_settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
