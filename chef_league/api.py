"""
REST API for the chef league backend.
Thin wrappers around the services; domain errors are mapped to HTTP in one handler.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from chef_league.auth import create_access_token, decode_token, hash_password, verify_password
from chef_league.config import Settings
from chef_league.errors import (
    ConcurrencyRetryExhausted,
    Forbidden,
    InvalidLeagueSettings,
    InvalidScoringInput,
    LeagueError,
    NotFound,
)
from chef_league.logging_config import configure_logging
from chef_league.models import User
from chef_league.persistence import SqliteRecordStore, UserRepository, get_connection, init_db
from chef_league.services import ChefService, LeagueService, ScoringService, WeeklyScoringRequest
from chef_league.services.announcer import EventAnnouncer, LoggingAnnouncer

logger = logging.getLogger(__name__)


# ---------- Real-time fan-out ----------


class WebSocketAnnouncer:
    """
    Pushes announcements to WebSocket subscribers. League topics go to that league's
    subscribers; chef topics go to everyone. announce() may be called from worker
    threads (sync endpoints), so sends are scheduled onto the server's event loop.
    """

    def __init__(self, inner: EventAnnouncer | None = None) -> None:
        self._inner = inner or LoggingAnnouncer()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()  # guards _connections
        self._connections: dict[str, list[WebSocket]] = {}  # league_id -> sockets

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def subscribe(self, league_id: str, ws: WebSocket) -> None:
        with self._lock:
            self._connections.setdefault(league_id, []).append(ws)

    def unsubscribe(self, league_id: str, ws: WebSocket) -> None:
        with self._lock:
            conns = self._connections.get(league_id, [])
            if ws in conns:
                conns.remove(ws)
            if not conns:
                self._connections.pop(league_id, None)

    def subscriber_count(self, league_id: str) -> int:
        with self._lock:
            return len(self._connections.get(league_id, []))

    def announce(self, topic: str, payload: dict[str, Any]) -> None:
        self._inner.announce(topic, payload)
        if self._loop is None or self._loop.is_closed():
            return
        league_id = payload.get("league_id")
        with self._lock:
            if league_id is not None:
                targets = list(self._connections.get(league_id, []))
            else:
                targets = [ws for conns in self._connections.values() for ws in conns]
        if targets:
            message = {"topic": topic, "payload": payload}
            asyncio.run_coroutine_threadsafe(self._broadcast(targets, message), self._loop)

    async def _broadcast(self, targets: list[WebSocket], message: dict[str, Any]) -> None:
        for ws in targets:
            try:
                await ws.send_json(message)
            except Exception:
                logger.warning("dropping websocket send for topic %s", message["topic"], exc_info=True)


# ---------- Request models ----------


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)
    name: str | None = Field(None, max_length=200)


class LoginRequest(BaseModel):
    username: str
    password: str


class CreateLeagueRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    season: int = Field(..., ge=1)
    max_members: int | None = Field(None, ge=1, le=100)
    max_roster_size: int | None = Field(None, ge=1, le=50)
    scoring_settings: dict[str, int] | None = None


class UpdateLeagueRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    max_members: int | None = Field(None, ge=1, le=100)
    max_roster_size: int | None = Field(None, ge=1, le=50)
    scoring_settings: dict[str, int] | None = None
    status: str | None = Field(None, description="draft | active | completed")
    current_week: int | None = Field(None, ge=1)


class JoinLeagueRequest(BaseModel):
    invite_code: str = Field(..., min_length=1)


class StatusRequest(BaseModel):
    status: str = Field(..., description="active | completed")


class DraftRequest(BaseModel):
    chef_id: str = Field(..., min_length=1)


class DraftOrderRequest(BaseModel):
    draft_order: list[str]


class RosterSlotUpdateRequest(BaseModel):
    active: bool


class CreateChefRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    bio: str = ""
    hometown: str = ""
    specialty: str = ""
    image: str = ""


class UpdateChefRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    bio: str | None = None
    hometown: str | None = None
    specialty: str | None = None
    image: str | None = None


class PerformanceRequest(BaseModel):
    chef_id: str = Field(..., min_length=1)
    highlights: list[str] = Field(default_factory=list)
    rank: int | None = None
    notes: str | None = None


class WeeklyScoringBody(BaseModel):
    week: int = Field(..., ge=1)
    performances: list[PerformanceRequest]


# ---------- Error mapping ----------

_ERROR_STATUS: list[tuple[type[LeagueError], int]] = [
    (NotFound, 404),
    (Forbidden, 403),
    (ConcurrencyRetryExhausted, 409),
    (InvalidScoringInput, 422),
    (InvalidLeagueSettings, 422),
]


def _status_for(exc: LeagueError) -> int:
    for cls, status in _ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 400


async def _league_error_handler(request: Request, exc: LeagueError) -> JSONResponse:
    status = _status_for(exc)
    if status == 409:
        logger.warning("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc), "code": exc.code})


# ---------- App factory ----------

security = HTTPBearer(auto_error=False)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    store = SqliteRecordStore(settings.db_path, initialize=False)
    announcer = WebSocketAnnouncer()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(settings)
        init_db(settings.db_path)
        announcer.bind_loop(asyncio.get_running_loop())
        logger.info("chef league api started (db=%s)", settings.db_path)
        yield

    app = FastAPI(
        title="Chef League API",
        description="Fantasy leagues for a cooking-competition season: drafting, weekly scoring, standings",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )
    app.add_exception_handler(LeagueError, _league_error_handler)

    app.state.settings = settings
    app.state.store = store
    app.state.announcer = announcer
    app.state.leagues = LeagueService(store, announcer, settings)
    app.state.scoring = ScoringService(store, announcer, settings)
    app.state.chefs = ChefService(store, announcer, settings)

    @contextmanager
    def db_conn() -> Generator:
        """Yield a DB connection, ensure close on exit."""
        conn = get_connection(settings.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> str:
        """Return user_id from the bearer JWT; 401 if missing or invalid."""
        uid = decode_token(credentials.credentials, settings) if credentials is not None else None
        if not uid:
            raise HTTPException(status_code=401, detail="Login required")
        return uid

    def current_admin(user_id: str = Depends(current_user_id)) -> User:
        with db_conn() as conn:
            user = UserRepository().get(conn, user_id)
        if user is None or not user.is_admin:
            raise HTTPException(status_code=403, detail="Admin access required")
        return user

    # ---------- Auth ----------

    @app.post("/signup")
    def signup(req: SignupRequest) -> dict[str, Any]:
        with db_conn() as conn:
            repo = UserRepository()
            if repo.get_by_username(conn, req.username) is not None:
                raise HTTPException(status_code=400, detail="Username already taken")
            user = repo.create_with_password(
                conn,
                req.username,
                hash_password(req.password),
                name=req.name,
                is_admin=req.username in settings.admin_usernames,
            )
        return {"user": user.to_dict(), "access_token": create_access_token(user.id, settings), "token_type": "bearer"}

    @app.post("/login")
    def login(req: LoginRequest) -> dict[str, Any]:
        with db_conn() as conn:
            user = UserRepository().get_by_username(conn, req.username)
        if user is None or not verify_password(req.password, user.password_hash or ""):
            raise HTTPException(status_code=401, detail="Invalid username or password")
        return {"user": user.to_dict(), "access_token": create_access_token(user.id, settings), "token_type": "bearer"}

    @app.get("/me")
    def me(user_id: str = Depends(current_user_id)) -> dict[str, Any]:
        with db_conn() as conn:
            user = UserRepository().get(conn, user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        return user.to_dict()

    # ---------- Leagues ----------

    @app.post("/leagues", status_code=201)
    def create_league(req: CreateLeagueRequest, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
        """Create a league in draft. Creator is owner."""
        league = app.state.leagues.create_league(
            user_id, req.name, req.season,
            max_members=req.max_members,
            max_roster_size=req.max_roster_size,
            scoring_settings=req.scoring_settings,
        )
        return league.to_dict()

    @app.get("/leagues")
    def list_leagues(user_id: str = Depends(current_user_id)) -> dict[str, Any]:
        """Leagues the caller is a member of."""
        return {"leagues": [l.to_dict() for l in app.state.leagues.list_leagues(user_id)]}

    @app.post("/leagues/join")
    def join_league(req: JoinLeagueRequest, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
        return app.state.leagues.join_league(user_id, req.invite_code).to_dict()

    @app.get("/leagues/{league_id}")
    def get_league(league_id: str, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
        return app.state.leagues.get_league(league_id, user_id).to_dict()

    @app.patch("/leagues/{league_id}")
    def update_league(
        league_id: str, req: UpdateLeagueRequest, user_id: str = Depends(current_user_id)
    ) -> dict[str, Any]:
        """Owner/admin: change name, limits, scoring settings, status or current week."""
        fields = req.model_dump(exclude_unset=True, exclude_none=True)
        return app.state.leagues.update_league(league_id, user_id, **fields).to_dict()

    @app.post("/leagues/{league_id}/status")
    def transition_status(
        league_id: str, req: StatusRequest, user_id: str = Depends(current_user_id)
    ) -> dict[str, Any]:
        league = app.state.leagues.transition_league_status(league_id, user_id, req.status)
        return {"league_id": league.id, "status": league.status}

    @app.post("/leagues/{league_id}/draft")
    def draft_chef(league_id: str, req: DraftRequest, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
        """Draft a chef onto the caller's roster. League must be in draft."""
        return app.state.leagues.draft_chef(league_id, user_id, req.chef_id).to_dict()

    @app.put("/leagues/{league_id}/draft-order")
    def update_draft_order(
        league_id: str, req: DraftOrderRequest, user_id: str = Depends(current_user_id)
    ) -> dict[str, Any]:
        league = app.state.leagues.update_draft_order(league_id, user_id, req.draft_order)
        return {"league_id": league.id, "draft_order": league.draft_order}

    @app.patch("/leagues/{league_id}/roster/{chef_id}")
    def update_roster_slot(
        league_id: str, chef_id: str, req: RosterSlotUpdateRequest, user_id: str = Depends(current_user_id)
    ) -> dict[str, Any]:
        """Bench or re-activate a chef on the caller's roster."""
        return app.state.leagues.set_roster_slot_active(league_id, user_id, chef_id, req.active).to_dict()

    @app.get("/leagues/{league_id}/leaderboard")
    def get_leaderboard(league_id: str, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
        rows = app.state.leagues.leaderboard(league_id, user_id)
        users = UserRepository()
        with db_conn() as conn:
            board = []
            for r in rows:
                user = users.get(conn, r.user_id)
                board.append({**r.to_dict(), "name": user.name if user is not None else None})
        return {"league_id": league_id, "leaderboard": board}

    # ---------- Chefs ----------

    @app.get("/chefs")
    def list_chefs(user_id: str = Depends(current_user_id)) -> dict[str, Any]:
        """All chefs, highest total points first."""
        return {"chefs": [c.to_dict() for c in app.state.chefs.list_chefs()]}

    @app.get("/chefs/{chef_id}")
    def get_chef(chef_id: str, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
        return app.state.chefs.get_chef(chef_id).to_dict()

    @app.post("/chefs", status_code=201)
    def create_chef(req: CreateChefRequest, admin: User = Depends(current_admin)) -> dict[str, Any]:
        return app.state.chefs.create_chef(**req.model_dump()).to_dict()

    @app.patch("/chefs/{chef_id}")
    def update_chef(chef_id: str, req: UpdateChefRequest, admin: User = Depends(current_admin)) -> dict[str, Any]:
        """Edit descriptive fields. Stats and status change only through weekly scoring."""
        fields = req.model_dump(exclude_unset=True, exclude_none=True)
        return app.state.chefs.update_chef(chef_id, **fields).to_dict()

    # ---------- Administrative scoring ----------

    @app.post("/admin/scoring")
    def record_week(body: WeeklyScoringBody, admin: User = Depends(current_admin)) -> dict[str, Any]:
        """Record one week's outcomes; returns the updated chefs."""
        chefs = app.state.scoring.record_week(WeeklyScoringRequest.from_dict(body.model_dump()))
        logger.info("week %d scored by %s for %d chef(s)", body.week, admin.id, len(chefs))
        return {"week": body.week, "chefs": [c.to_dict() for c in chefs]}

    # ---------- Live updates ----------

    @app.websocket("/ws/leagues/{league_id}")
    async def league_updates(websocket: WebSocket, league_id: str, token: str = Query(...)) -> None:
        """Subscribe to a league's announcements. Members only."""
        uid = decode_token(token, settings)
        if not uid:
            await websocket.close(code=4401)
            return
        try:
            await asyncio.to_thread(app.state.leagues.get_league, league_id, uid)
        except LeagueError:
            await websocket.close(code=4403)
            return
        await websocket.accept()
        announcer.subscribe(league_id, websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            announcer.unsubscribe(league_id, websocket)

    return app


app = create_app()


# ---------- Run with: uvicorn chef_league.api:app --reload ----------
