"""
REST API for the draft league backend.
Thin wrappers around the services; service errors map to HTTP status codes.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from draft_league.auth import authenticate_admin, create_access_token, is_admin_token
from draft_league.persistence import get_connection, init_db
from draft_league.persistence.db import get_db_path
from draft_league.services import availability, season_service, standings
from draft_league.services.errors import (
    BannedUnitError,
    InsufficientBudgetError,
    LedgerError,
    NotFoundError,
    OwnershipMismatchError,
    TradeSizeError,
    UnitUnavailableError,
    UnsupportedUndoError,
)
from draft_league.services.ledger_service import (
    FADropParams,
    FAPickupParams,
    FASwapParams,
    LedgerService,
    P2PTradeParams,
    TeraSwapParams,
)
from draft_league.services.match_service import MatchResultParams, MatchService, UnitStatParams
from draft_league.services.playoff_service import PlayoffMatchParams, PlayoffService, PlayoffUpdateParams
from draft_league.services.rating_service import RatingService

logger = logging.getLogger(__name__)


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    init_db(db_path=get_db_path())
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Draft League API",
    description="League economy: roster ledger, ratings and standings",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

security = HTTPBearer(auto_error=False)

_ledger = LedgerService()
_ratings = RatingService()
_matches = MatchService()
_playoffs = PlayoffService()


def _require_admin(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> None:
    if credentials is None or not is_admin_token(credentials.credentials):
        raise HTTPException(status_code=401, detail="Admin login required")


def _http_error(e: LedgerError) -> HTTPException:
    """Map a service error to its HTTP status."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, TradeSizeError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, OwnershipMismatchError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, InsufficientBudgetError):
        return HTTPException(
            status_code=409,
            detail={
                "message": str(e),
                "needed": e.needed,
                "available": e.available,
                "shortfall": e.shortfall,
            },
        )
    if isinstance(e, (BannedUnitError, UnitUnavailableError, UnsupportedUndoError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ---------- Request models ----------


class LoginRequest(BaseModel):
    password: str = Field(..., min_length=1)


class _LedgerRequest(BaseModel):
    week: int = Field(..., ge=0)
    counts_against_limit: bool = True
    notes: str | None = Field(None, max_length=1000)


class FAPickupRequest(_LedgerRequest):
    season_entry_id: int
    unit_id: int
    is_tera_captain: bool = False


class FADropRequest(_LedgerRequest):
    season_entry_id: int
    roster_slot_id: int


class FASwapRequest(_LedgerRequest):
    season_entry_id: int
    pickup_unit_id: int | None = None
    pickup_is_tera_captain: bool = False
    drop_roster_slot_id: int | None = None


class P2PTradeRequest(_LedgerRequest):
    team1_entry_id: int
    team1_slot_ids: list[int] = Field(default_factory=list)
    team2_entry_id: int
    team2_slot_ids: list[int] = Field(default_factory=list)


class TeraSwapRequest(_LedgerRequest):
    season_entry_id: int
    new_captain_slot_id: int
    old_captain_slot_id: int | None = None


class UnitStatRequest(BaseModel):
    season_entry_id: int
    unit_id: int
    kills: int = Field(0, ge=0)
    deaths: int = Field(0, ge=0)


class MatchRequest(BaseModel):
    division_id: int
    week: int = Field(..., ge=1)
    entry1_id: int
    entry2_id: int
    winner_id: int | None = None
    entry1_differential: int = 0
    entry2_differential: int = 0
    is_forfeit: bool = False
    played_at: str | None = None
    replay_url: str | None = None
    unit_stats: list[UnitStatRequest] = Field(default_factory=list)


class PlayoffMatchRequest(BaseModel):
    division_id: int
    round: int = Field(1, ge=1)
    bracket_position: int = Field(1, ge=1)
    higher_seed_id: int | None = None
    lower_seed_id: int | None = None


class PlayoffUpdateRequest(BaseModel):
    higher_seed_id: int | None = None
    lower_seed_id: int | None = None
    winner_id: int | None = None
    higher_seed_wins: int | None = Field(None, ge=0)
    lower_seed_wins: int | None = Field(None, ge=0)
    played_at: str | None = None


class SeasonEntryRequest(BaseModel):
    coach_id: int
    division_id: int
    team_name: str = Field(..., min_length=1, max_length=200)
    team_abbreviation: str | None = Field(None, max_length=10)
    budget: int | None = Field(None, ge=0)


class ReplaceEntryRequest(BaseModel):
    new_coach_id: int
    team_name: str | None = Field(None, max_length=200)
    team_abbreviation: str | None = Field(None, max_length=10)


class DraftUnitRequest(BaseModel):
    season_entry_id: int
    unit_id: int
    price: int | None = Field(None, ge=0)
    is_tera_captain: bool = False
    draft_order: int | None = None


# ---------- Auth ----------


@app.post("/auth/login")
def login(req: LoginRequest) -> dict[str, Any]:
    """Exchange the admin password for a bearer token."""
    if not authenticate_admin(req.password):
        raise HTTPException(status_code=401, detail="Invalid password")
    return {"token": create_access_token("admin")}


# ---------- Transactions ----------


@app.post("/transactions/fa-pickup")
def fa_pickup(req: FAPickupRequest) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            tx = _ledger.fa_pickup(conn, FAPickupParams(**req.model_dump()))
        except LedgerError as e:
            raise _http_error(e)
        return tx.to_dict()


@app.post("/transactions/fa-drop")
def fa_drop(req: FADropRequest) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            tx = _ledger.fa_drop(conn, FADropParams(**req.model_dump()))
        except LedgerError as e:
            raise _http_error(e)
        return tx.to_dict()


@app.post("/transactions/fa-swap")
def fa_swap(req: FASwapRequest) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            tx = _ledger.fa_swap(conn, FASwapParams(**req.model_dump()))
        except LedgerError as e:
            raise _http_error(e)
        return tx.to_dict()


@app.post("/transactions/p2p-trade")
def p2p_trade(req: P2PTradeRequest) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            tx = _ledger.p2p_trade(conn, P2PTradeParams(**req.model_dump()))
        except LedgerError as e:
            raise _http_error(e)
        return tx.to_dict()


@app.post("/transactions/tera-swap")
def tera_swap(req: TeraSwapRequest) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            tx = _ledger.tera_swap(conn, TeraSwapParams(**req.model_dump()))
        except LedgerError as e:
            raise _http_error(e)
        return tx.to_dict()


@app.delete("/transactions/{transaction_id}", dependencies=[Depends(_require_admin)])
def undo_transaction(transaction_id: int) -> dict[str, Any]:
    """Admin: reverse a transaction and delete its record."""
    with db_conn() as conn:
        try:
            tx = _ledger.undo(conn, transaction_id)
        except LedgerError as e:
            raise _http_error(e)
        return {"success": True, "undone": tx.to_dict()}


@app.get("/transactions")
def list_transactions(
    season_id: int | None = None,
    season_entry_id: int | None = None,
    type: str | None = None,
) -> dict[str, Any]:
    with db_conn() as conn:
        txs = _ledger.list_transactions(
            conn, season_id=season_id, season_entry_id=season_entry_id, type=type
        )
        return {"transactions": [t.to_dict() for t in txs]}


@app.get("/season-entries/{season_entry_id}/transaction-counts")
def transaction_counts(season_entry_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            counts = _ledger.transaction_counts(conn, season_entry_id)
        except LedgerError as e:
            raise _http_error(e)
        return counts.to_dict()


@app.get("/roster-slots/{roster_slot_id}/trade-lock")
def trade_lock(roster_slot_id: int, week: int = Query(..., ge=0)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            status = _ledger.trade_lock_status(conn, roster_slot_id, week)
        except LedgerError as e:
            raise _http_error(e)
        return status.to_dict()


# ---------- Availability ----------


@app.get("/seasons/{season_id}/free-agents")
def free_agents(season_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        agents = availability.available_free_agents(conn, season_id)
        return {"season_id": season_id, "free_agents": [a.to_dict() for a in agents]}


@app.get("/seasons/{season_id}/prices/{unit_id}")
def season_price(season_id: int, unit_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        price = availability.season_price(conn, season_id, unit_id)
        if price is None:
            raise HTTPException(status_code=404, detail="Unit is not priced this season")
        return price.to_dict()


# ---------- Ratings ----------


@app.post("/ratings/recalculate", dependencies=[Depends(_require_admin)])
def recalculate_ratings() -> dict[str, Any]:
    """Admin: replay every completed match and rewrite ratings."""
    with db_conn() as conn:
        summary = _ratings.recalculate_all(conn)
        return summary.to_dict()


@app.get("/coaches/{coach_id}/rating-history")
def rating_history(coach_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            history = _ratings.rating_history(conn, coach_id)
        except LedgerError as e:
            raise _http_error(e)
        return {"coach_id": coach_id, "history": [h.to_dict() for h in history]}


# ---------- Standings & leaderboards ----------


@app.get("/divisions/{division_id}/standings")
def division_standings(division_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            rows = standings.division_standings(conn, division_id)
        except LedgerError as e:
            raise _http_error(e)
        return {"division_id": division_id, "standings": [r.to_dict() for r in rows]}


@app.get("/divisions/{division_id}/unit-leaderboard")
def unit_leaderboard(division_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            rows = standings.unit_leaderboard(conn, division_id)
        except LedgerError as e:
            raise _http_error(e)
        return {"division_id": division_id, "units": [r.to_dict() for r in rows]}


@app.get("/leaderboards/coaches")
def coach_leaderboard() -> dict[str, Any]:
    with db_conn() as conn:
        return {"coaches": [r.to_dict() for r in standings.coach_leaderboard(conn)]}


# ---------- Matches (admin) ----------


def _match_params(req: MatchRequest) -> MatchResultParams:
    data = req.model_dump(exclude={"unit_stats"})
    return MatchResultParams(**data, unit_stats=[UnitStatParams(**s.model_dump()) for s in req.unit_stats])


@app.post("/matches", dependencies=[Depends(_require_admin)])
def record_match(req: MatchRequest) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            match = _matches.record_match(conn, _match_params(req))
        except LedgerError as e:
            raise _http_error(e)
        return match.to_dict()


@app.put("/matches/{match_id}", dependencies=[Depends(_require_admin)])
def update_match(match_id: int, req: MatchRequest) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            match = _matches.update_result(conn, match_id, _match_params(req))
        except LedgerError as e:
            raise _http_error(e)
        return match.to_dict()


@app.delete("/matches/{match_id}", dependencies=[Depends(_require_admin)])
def delete_match(match_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            _matches.delete_match(conn, match_id)
        except LedgerError as e:
            raise _http_error(e)
        return {"success": True}


# ---------- Playoffs ----------


@app.get("/divisions/{division_id}/playoffs")
def playoff_bracket(division_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            nodes = _playoffs.list_bracket(conn, division_id)
        except LedgerError as e:
            raise _http_error(e)
        return {"division_id": division_id, "playoffs": [n.to_dict() for n in nodes]}


@app.post("/playoffs", dependencies=[Depends(_require_admin)])
def create_playoff_match(req: PlayoffMatchRequest) -> dict[str, Any]:
    """Admin: add a bracket node; a fixture is scheduled once both seeds are set."""
    with db_conn() as conn:
        try:
            node = _playoffs.create_playoff_match(conn, PlayoffMatchParams(**req.model_dump()))
        except LedgerError as e:
            raise _http_error(e)
        return node.to_dict()


@app.put("/playoffs/{playoff_match_id}", dependencies=[Depends(_require_admin)])
def update_playoff_match(playoff_match_id: int, req: PlayoffUpdateRequest) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            node = _playoffs.update_playoff_match(conn, playoff_match_id, PlayoffUpdateParams(**req.model_dump()))
        except LedgerError as e:
            raise _http_error(e)
        return node.to_dict()


@app.delete("/playoffs/{playoff_match_id}", dependencies=[Depends(_require_admin)])
def delete_playoff_match(playoff_match_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            _playoffs.delete_playoff_match(conn, playoff_match_id)
        except LedgerError as e:
            raise _http_error(e)
        return {"success": True}


@app.post("/seasons/{season_id}/playoffs/repair", dependencies=[Depends(_require_admin)])
def repair_playoff_brackets(season_id: int) -> dict[str, Any]:
    """Admin: fill in missing bracket placeholders and unscheduled fixtures."""
    with db_conn() as conn:
        scheduled = _playoffs.repair_brackets(conn, season_id)
        return {"season_id": season_id, "fixtures_scheduled": scheduled}


# ---------- Season administration (admin) ----------


@app.post("/season-entries", dependencies=[Depends(_require_admin)])
def add_season_entry(req: SeasonEntryRequest) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            entry = season_service.add_season_entry(conn, **req.model_dump())
        except LedgerError as e:
            raise _http_error(e)
        return entry.to_dict()


@app.post("/season-entries/{season_entry_id}/replace", dependencies=[Depends(_require_admin)])
def replace_season_entry(season_entry_id: int, req: ReplaceEntryRequest) -> dict[str, Any]:
    """Admin: mid-season coach replacement. The new entry inherits budget and roster."""
    with db_conn() as conn:
        try:
            entry = season_service.replace_season_entry(conn, season_entry_id, **req.model_dump())
        except LedgerError as e:
            raise _http_error(e)
        return entry.to_dict()


@app.post("/roster-slots", dependencies=[Depends(_require_admin)])
def draft_unit(req: DraftUnitRequest) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            slot = season_service.draft_unit(conn, **req.model_dump())
        except LedgerError as e:
            raise _http_error(e)
        return slot.to_dict()


@app.delete("/roster-slots/{roster_slot_id}", dependencies=[Depends(_require_admin)])
def remove_roster_slot(roster_slot_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            slot = season_service.remove_roster_slot(conn, roster_slot_id)
        except LedgerError as e:
            raise _http_error(e)
        return {"success": True, "refunded": slot.price}


# ---------- Run with: uvicorn draft_league.api:app --reload ----------
