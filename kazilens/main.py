"""FastAPI backend for KaziLens."""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Set
import asyncio
import json
import logging

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from kazilens import careers
from kazilens.coaches import BaseCoach, create_coach
from kazilens.config import Config
from kazilens.errors import (
    DeviceUnavailable,
    LiveConnectionError,
    ProviderError,
    QuotaExceeded,
    SessionBusy,
)
from kazilens.live import LiveSession, create_live_session
from kazilens.live.devices import list_audio_devices
from kazilens.models import Job, SessionContext, TranscriptLine
from kazilens.state import STATE

logger = logging.getLogger(__name__)

# Global state
live_session: Optional[LiveSession] = None
coach: Optional[BaseCoach] = None
# one queue per open transcript stream
transcript_subscribers: Set["asyncio.Queue[TranscriptLine]"] = set()
TRANSCRIPT_QUEUE_MAXSIZE = 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    missing = Config.validate()
    if missing:
        logger.warning("Missing configuration: %s", ", ".join(missing))
    yield
    if live_session is not None:
        await live_session.stop()


app = FastAPI(title="KaziLens", lifespan=lifespan)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request models
class ResumeRequest(BaseModel):
    text: str = Field(min_length=1)


class JobSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    location: str = "Nairobi, Kenya"
    employment_type: Optional[str] = None
    location_type: Optional[str] = None


class InsightRequest(BaseModel):
    job: Dict[str, Any]


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)


class LiveStartRequest(BaseModel):
    role: Optional[str] = None
    name: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    summary: Optional[str] = None


def on_transcript_line(line: TranscriptLine):
    """Callback when the live session appends a transcript line; fans out to every open stream."""
    for queue in list(transcript_subscribers):
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(line)
    logger.debug("[TRANSCRIPT] %s", line)


def get_live_session() -> LiveSession:
    global live_session
    if live_session is None:
        live_session = create_live_session(on_transcript=on_transcript_line)
    return live_session


def get_coach() -> BaseCoach:
    """Coach is rebuilt whenever the stored resume analysis changes."""
    global coach
    if coach is None or coach.analysis is not STATE.analysis:
        coach = create_coach(STATE.analysis)
    return coach


def _provider_http_error(e: ProviderError) -> HTTPException:
    if isinstance(e, QuotaExceeded):
        return HTTPException(status_code=429, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


@app.get("/favicon.ico")
async def favicon():
    """Return empty favicon to prevent 404 errors."""
    return Response(content="", media_type="image/x-icon")


@app.post("/resume/analyze")
async def resume_analyze(request: ResumeRequest):
    """Analyze resume text and store it as the current profile."""
    try:
        analysis = await careers.analyze_resume(request.text)
    except ProviderError as e:
        raise _provider_http_error(e)
    STATE.resume_text = request.text
    STATE.analysis = analysis
    return analysis.to_dict()


@app.post("/jobs/search")
async def jobs_search(request: JobSearchRequest):
    filters = {
        "employmentType": request.employment_type,
        "locationType": request.location_type,
    }
    try:
        jobs = await careers.fetch_jobs(request.query, request.location, filters)
    except ProviderError as e:
        raise _provider_http_error(e)
    STATE.last_jobs = jobs
    return {"jobs": [job.to_dict() for job in jobs]}


@app.post("/jobs/insights")
async def jobs_insights(request: InsightRequest):
    if STATE.analysis is None:
        raise HTTPException(status_code=400, detail="Analyze a resume first.")
    job = Job.from_dict(request.job)
    try:
        insight = await careers.get_application_insights(STATE.analysis, job)
    except ProviderError as e:
        raise _provider_http_error(e)
    return insight.to_dict()


@app.get("/company/{name}")
async def company_info(name: str):
    try:
        details = await careers.get_company_location(name)
    except ProviderError as e:
        raise _provider_http_error(e)
    return {"company": name, "details": details}


@app.post("/coach/chat")
async def coach_chat(request: ChatRequest):
    """Send message to coach and get response."""
    c = get_coach()
    response_text = await c.chat(request.message)
    return {
        "response": response_text,
        "history": c.get_history()
    }


@app.get("/coach/history")
async def coach_history():
    """Get coach conversation history."""
    return {"history": get_coach().get_history()}


@app.get("/live/devices")
async def live_devices():
    return list_audio_devices()


@app.post("/live/start")
async def live_start(request: Optional[LiveStartRequest] = None):
    """Start a mock interview using the request context or the stored resume analysis."""
    context = SessionContext.from_analysis(STATE.analysis)
    if request is not None:
        if request.role:
            context.role = request.role
        if request.name:
            context.name = request.name
        if request.skills:
            context.skills = list(request.skills)
        if request.summary:
            context.summary = request.summary

    session = get_live_session()
    try:
        await session.start(context)
    except SessionBusy as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DeviceUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except LiveConnectionError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return session.status()


@app.post("/live/stop")
async def live_stop():
    session = get_live_session()
    await session.stop()
    return session.status()


@app.get("/live/status")
async def live_status():
    return get_live_session().status()

def subscribe_transcript() -> "asyncio.Queue[TranscriptLine]":
    queue: "asyncio.Queue[TranscriptLine]" = asyncio.Queue(maxsize=TRANSCRIPT_QUEUE_MAXSIZE)
    transcript_subscribers.add(queue)
    return queue


async def transcript_events(queue: "asyncio.Queue[TranscriptLine]", heartbeat: float = 1.0) -> AsyncIterator[str]:
    """SSE frames for one subscriber; unsubscribes when the client goes away."""
    try:
        while True:
            try:
                line = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                # Send heartbeat to keep connection alive
                yield ": heartbeat\n\n"
                continue
            yield f"data: {json.dumps(line.to_dict())}\n\n"
    finally:
        transcript_subscribers.discard(queue)


@app.get("/live/transcript/stream")
async def live_transcript_stream():
    """Stream live transcript lines via Server-Sent Events."""
    return StreamingResponse(
        transcript_events(subscribe_transcript()),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable buffering for nginx
        }
    )
