from enum import Enum
from pydantic import BaseModel, field_validator
from typing import Any, Dict, List, Optional


class RosterRole(str, Enum):
    STARTER = "starter"
    BENCH = "bench"
    RESERVE = "reserve"


# Player Schemas
class PlayerRecord(BaseModel):
    player_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    team: Optional[str] = None
    position: Optional[str] = None
    fantasy_positions: Optional[List[str]] = None
    status: Optional[str] = None
    search_rank: Optional[int] = None
    role: Optional[RosterRole] = None

    class Config:
        extra = "allow"

    @field_validator("player_id", "team", "position", mode="before")
    @classmethod
    def _coerce_str(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class EnrichedPlayer(PlayerRecord):
    projected_points: float = 0.0
    rest_of_year: float = 0.0
    previous_week_points: float = 0.0
    season_average: float = 0.0
    projection_stats: Dict[str, Any] = {}
    previous_week_stats: Dict[str, Any] = {}
    enrichment_errors: List[str] = []


# Roster Schemas
class RosterSnapshot(BaseModel):
    roster_id: Optional[int] = None
    owner_id: Optional[str] = None
    starters: List[str] = []
    players: List[str] = []
    reserve: List[str] = []
    settings: Dict[str, Any] = {}

    class Config:
        extra = "allow"

    @field_validator("starters", "players", "reserve", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        if value is None:
            return []
        return [str(v) for v in value]

    @field_validator("settings", mode="before")
    @classmethod
    def _settings_default(cls, value):
        return value or {}


# Lineup Schemas
class Lineup(BaseModel):
    user: Optional[Dict[str, Any]] = None
    roster: Dict[str, Any] = {}
    starters: List[PlayerRecord] = []
    bench: List[PlayerRecord] = []
    reserve: List[PlayerRecord] = []
    settings: Dict[str, Any] = {}


class DataQuality(BaseModel):
    projections_loaded: bool
    stats_loaded: bool
    total_players: int
    projections_count: int
    stats_count: int
    partial_failures: int = 0


class LineupMetadata(BaseModel):
    week: int
    season: str
    season_type: str
    previous_week: int
    scoring_class: str
    points_field: str
    scoring_settings: Dict[str, Any] = {}
    last_updated: str
    data_quality: DataQuality


class EnhancedLineup(Lineup):
    starters: List[EnrichedPlayer] = []
    bench: List[EnrichedPlayer] = []
    reserve: List[EnrichedPlayer] = []
    metadata: LineupMetadata
