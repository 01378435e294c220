from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.admin_auth import get_current_admin
from app.core.database import get_db
from app.core.timezone import get_ist_now
from app.schemas.tournament import JoinRequest, TournamentCreate
from app.services.tournament_service import TournamentService, serialize_tournament

router = APIRouter(prefix="/api/v1/tournaments", tags=["tournaments"])


@router.post("/create", dependencies=[Depends(get_current_admin)])
def create_tournament(payload: TournamentCreate, db: Session = Depends(get_db)):
    tournament = TournamentService.create(
        db,
        game=payload.game,
        entry_fee=payload.entry_fee,
        max_players=payload.max_players,
        start_time=payload.start_time,
        room_id=payload.room_id,
        password=payload.password,
    )
    return {"success": True, "tournament": serialize_tournament(tournament)}


@router.post("/join")
def join_tournament(payload: JoinRequest, db: Session = Depends(get_db)):
    result = TournamentService.join(db, payload.tournament_id, payload.phone)
    return {
        "success": True,
        "message": "Joined and fee deducted",
        "tournament": serialize_tournament(result["tournament"]),
        "balance": result["balance"],
    }


@router.get("/")
def list_upcoming(db: Session = Depends(get_db)):
    now = get_ist_now()
    tournaments = TournamentService.list_upcoming(db, now=now)
    return {"success": True, "tournaments": [serialize_tournament(t, now) for t in tournaments]}


@router.get("/joined/{phone}")
def list_joined(phone: str, db: Session = Depends(get_db)):
    now = get_ist_now()
    tournaments = TournamentService.list_joined(db, phone, now=now)
    return {"success": True, "tournaments": [serialize_tournament(t, now) for t in tournaments]}


@router.get("/{tournament_id}")
def get_tournament(tournament_id: int, db: Session = Depends(get_db)):
    return serialize_tournament(TournamentService.get(db, tournament_id))
