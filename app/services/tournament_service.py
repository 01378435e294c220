"""
Tournament catalogue and the join transaction.

``join`` claims a seat, debits the entry fee and appends the roster row in
one session and commits once; any failure rolls all three back, so a player
is never charged without a seat.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import AlreadyJoined, Full, InsufficientFunds, TournamentNotFound
from app.core.locks import KeyedLock, identity_locks
from app.core.phone import normalize_phone, require_identity
from app.core.timezone import get_ist_now, to_ist_naive
from app.models.tournament import Tournament, TournamentPlayer
from app.services.visibility import is_active_for_player, show_room_details
from app.services.wallet_service import WalletService, wallet_lock_key

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_tournament(tournament: Tournament, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Public view of a tournament; room credentials only inside the visibility window."""
    now = now or get_ist_now()
    data = {
        "id": tournament.id,
        "game": tournament.game,
        "entryFee": tournament.entry_fee,
        "maxPlayers": tournament.max_players,
        "players": tournament.players,
        "startTime": _iso(tournament.start_time),
        "createdAt": _iso(tournament.created_at),
        "updatedAt": _iso(tournament.updated_at),
    }
    if show_room_details(tournament.start_time, now):
        data["roomId"] = tournament.room_id
        data["password"] = tournament.password
    return data


class TournamentService:

    locks: KeyedLock = identity_locks

    @staticmethod
    def create(
        db: Session,
        game: str,
        entry_fee: int,
        max_players: int,
        start_time: datetime,
        room_id: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Tournament:
        tournament = Tournament(
            game=game.strip(),
            entry_fee=entry_fee,
            max_players=max_players,
            player_count=0,
            start_time=to_ist_naive(start_time),
            room_id=room_id,
            password=password,
        )
        db.add(tournament)
        db.commit()
        db.refresh(tournament)
        logger.info("Created tournament %s (%s, fee %s)", tournament.id, tournament.game, entry_fee)
        return tournament

    @staticmethod
    def get(db: Session, tournament_id: int) -> Tournament:
        tournament = db.get(Tournament, tournament_id)
        if tournament is None:
            raise TournamentNotFound()
        return tournament

    @staticmethod
    def list_upcoming(db: Session, now: Optional[datetime] = None) -> List[Tournament]:
        now = now or get_ist_now()
        return (
            db.query(Tournament)
            .filter(Tournament.start_time > now)
            .order_by(Tournament.start_time.asc())
            .all()
        )

    @staticmethod
    def list_joined(db: Session, raw_phone: str, now: Optional[datetime] = None) -> List[Tournament]:
        """Tournaments the player joined that have not been over for more than 15 minutes."""
        now = now or get_ist_now()
        phone = normalize_phone(raw_phone)
        joined = (
            db.query(Tournament)
            .join(TournamentPlayer, TournamentPlayer.tournament_id == Tournament.id)
            .filter(TournamentPlayer.phone == phone)
            .order_by(Tournament.start_time.asc())
            .all()
        )
        return [t for t in joined if is_active_for_player(t.start_time, now)]

    @classmethod
    def join(cls, db: Session, tournament_id: int, raw_phone: str) -> Dict[str, Any]:
        """
        Join a tournament and pay its entry fee.

        Preconditions, checked in order, each failing with no side effect:
        tournament exists, player not on roster, a seat is free, balance >= fee.

        Returns:
            dict with the refreshed tournament and the player's new balance
        """
        phone = require_identity(raw_phone)

        with cls.locks.hold(f"tournament:{tournament_id}", wallet_lock_key(phone)):
            try:
                tournament = cls.get(db, tournament_id)

                if phone in tournament.players:
                    raise AlreadyJoined()

                if tournament.player_count >= tournament.max_players:
                    raise Full()

                if WalletService.balance(db, phone) < tournament.entry_fee:
                    raise InsufficientFunds()

                claimed = db.execute(
                    update(Tournament)
                    .where(
                        Tournament.id == tournament_id,
                        Tournament.player_count < Tournament.max_players,
                    )
                    .values(
                        player_count=Tournament.player_count + 1,
                        updated_at=get_ist_now(),
                    )
                )
                if claimed.rowcount != 1:
                    raise Full()

                if tournament.entry_fee > 0:
                    WalletService.debit_unlocked(db, phone, tournament.entry_fee)

                db.add(TournamentPlayer(tournament_id=tournament_id, phone=phone))
                db.flush()
                db.commit()
            except IntegrityError:
                db.rollback()
                raise AlreadyJoined()
            except Exception:
                db.rollback()
                raise

            db.refresh(tournament)
            balance = WalletService.balance(db, phone)

        logger.info("Player %s joined tournament %s, balance %s", phone, tournament_id, balance)
        return {"tournament": tournament, "balance": balance}
