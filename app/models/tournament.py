from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, ForeignKey,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.timezone import get_ist_now

class Tournament(Base):
    __tablename__ = "tournaments"
    __table_args__ = (
        CheckConstraint("player_count <= max_players", name="ck_tournament_capacity"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    game = Column(String(64), nullable=False)
    entry_fee = Column(Integer, nullable=False, default=0)
    max_players = Column(Integer, nullable=False)
    # Mirrors len(players); lets join claim a seat with a conditional UPDATE
    player_count = Column(Integer, nullable=False, default=0)
    start_time = Column(DateTime, nullable=False, index=True)
    room_id = Column(String(64), nullable=True)
    password = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
    updated_at = Column(DateTime, default=get_ist_now, onupdate=get_ist_now, nullable=False)

    entries = relationship(
        "TournamentPlayer",
        order_by="TournamentPlayer.id",
        cascade="all, delete-orphan",
        back_populates="tournament",
    )

    @property
    def players(self) -> list[str]:
        return [entry.phone for entry in self.entries]


class TournamentPlayer(Base):
    __tablename__ = "tournament_players"
    __table_args__ = (
        UniqueConstraint("tournament_id", "phone", name="uq_tournament_player"),
    )

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    phone = Column(String(10), nullable=False, index=True)
    joined_at = Column(DateTime, default=get_ist_now, nullable=False)

    tournament = relationship("Tournament", back_populates="entries")
