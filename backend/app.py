# backend/app.py

import logging
import time
from typing import Callable, Dict, Optional

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import Response

from config.settings import settings
from .errors import DecodeError, SessionBusy
from .gemini_client import GeminiEditGateway
from .model import InstructionRequest, PresetsResponse, SessionState
from .session import PRESET_INSTRUCTIONS, EditGateway, EditSession, SelectFile, SetInstruction, Generate, Reset
from .utils import download_bytes, download_filename, gen_session_id

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


class SessionStore:
    """
    In-memory sessions, gone when the process exits.
    Sessions idle longer than `ttl_seconds` are evicted, and the store never
    holds more than `max_sessions`. Sessions with an edit in flight are kept.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_sessions: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = settings.SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.max_sessions = settings.MAX_SESSIONS if max_sessions is None else max_sessions
        self._clock = clock
        self._sessions: Dict[str, EditSession] = {}
        self._last_access: Dict[str, float] = {}

    def _drop(self, session_id: str, reason: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_access.pop(session_id, None)
        logger.info("Evicted session %s (%s)", session_id, reason)

    def evict_expired(self) -> None:
        now = self._clock()
        for session_id, seen in list(self._last_access.items()):
            if now - seen > self.ttl_seconds and not self._sessions[session_id].flags.is_processing:
                self._drop(session_id, "idle")

    def _make_room(self) -> None:
        idle = sorted(
            (seen, sid) for sid, seen in self._last_access.items()
            if not self._sessions[sid].flags.is_processing
        )
        while len(self._sessions) >= self.max_sessions and idle:
            _, session_id = idle.pop(0)
            self._drop(session_id, "store full")

    def create(self, gateway: EditGateway) -> EditSession:
        self.evict_expired()
        self._make_room()
        session_id = gen_session_id()
        session = EditSession(gateway, session_id=session_id)
        self._sessions[session_id] = session
        self._last_access[session_id] = self._clock()
        logger.info("Created session %s", session_id)
        return session

    def get(self, session_id: str) -> EditSession:
        self.evict_expired()
        session = self._sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        self._last_access[session_id] = self._clock()
        return session

    def delete(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise HTTPException(status_code=404, detail="Session not found")
        self._last_access.pop(session_id, None)
        logger.info("Deleted session %s", session_id)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


def create_app(gateway: Optional[EditGateway] = None, sessions: Optional[SessionStore] = None) -> FastAPI:
    app = FastAPI(title="Progressive Image Edit Service")
    app.state.gateway = gateway if gateway is not None else GeminiEditGateway.from_settings(settings)
    app.state.sessions = sessions if sessions is not None else SessionStore()

    def store(request: Request) -> SessionStore:
        return request.app.state.sessions

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/presets", response_model=PresetsResponse)
    async def presets():
        return PresetsResponse(presets=PRESET_INSTRUCTIONS)

    @app.post("/sessions", response_model=SessionState)
    async def create_session(request: Request):
        session = store(request).create(request.app.state.gateway)
        return session.snapshot()

    @app.get("/sessions/{session_id}", response_model=SessionState)
    async def get_session(session_id: str, request: Request):
        return store(request).get(session_id).snapshot()

    @app.delete("/sessions/{session_id}", status_code=204)
    async def delete_session(session_id: str, request: Request):
        store(request).delete(session_id)
        return Response(status_code=204)

    @app.post("/sessions/{session_id}/image", response_model=SessionState)
    async def upload_image(session_id: str, request: Request, file: UploadFile = File(...)):
        session = store(request).get(session_id)
        data = await file.read()
        try:
            return await session.dispatch(SelectFile(data=data, content_type=file.content_type or ""))
        except SessionBusy as e:
            raise HTTPException(status_code=409, detail=e.message)

    @app.put("/sessions/{session_id}/instruction", response_model=SessionState)
    async def set_instruction(session_id: str, req: InstructionRequest, request: Request):
        session = store(request).get(session_id)
        return await session.dispatch(SetInstruction(text=req.text))

    @app.post("/sessions/{session_id}/generate", response_model=SessionState)
    async def generate(session_id: str, request: Request):
        session = store(request).get(session_id)
        return await session.dispatch(Generate())

    @app.post("/sessions/{session_id}/reset", response_model=SessionState)
    async def reset(session_id: str, request: Request):
        session = store(request).get(session_id)
        try:
            return await session.dispatch(Reset())
        except SessionBusy as e:
            raise HTTPException(status_code=409, detail=e.message)

    @app.get("/sessions/{session_id}/download")
    async def download(session_id: str, request: Request):
        session = store(request).get(session_id)
        if session.current is None:
            raise HTTPException(status_code=404, detail="No image to download")
        filename = download_filename(session.current)
        try:
            content = download_bytes(session.current)
        except DecodeError as e:
            raise HTTPException(status_code=422, detail=e.message)
        return Response(
            content=content,
            media_type=session.current.mime_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app


app = create_app()
