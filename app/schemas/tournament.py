from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

class TournamentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game: str = Field(min_length=1, max_length=64)
    entry_fee: int = Field(ge=0, alias="entryFee")
    max_players: int = Field(ge=1, alias="maxPlayers")
    start_time: datetime = Field(alias="startTime")
    room_id: Optional[str] = Field(default=None, max_length=64, alias="roomId")
    password: Optional[str] = Field(default=None, max_length=64)


class JoinRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tournament_id: int = Field(alias="tournamentId")
    phone: str = Field(min_length=1)
