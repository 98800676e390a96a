"""
Lineup Enrichment Pipeline
Attach projected, previous-week, season-average and rest-of-year points to
a roster group under a league's scoring configuration.
"""
import asyncio
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Union
import logging

from lineup_service.exceptions import EnrichmentPartialFailure
from lineup_service.schemas import EnrichedPlayer, PlayerRecord

from .processors import SleeperDataProcessor
from .projections import ProjectionStatAccess
from .scoring import ScoringClass, derive_scoring_class, points_field_for

logger = logging.getLogger(__name__)

PlayerInput = Union[PlayerRecord, Mapping[str, Any]]


class EnrichmentPipeline:
    """
    Compute per-player metrics for one roster-role group.

    Bulk projections and last week's league-wide stats are passed in; the
    per-player season projections and stats are fetched through
    ProjectionStatAccess. A failed per-player fetch only zeroes the metric
    that needed it.
    """

    def __init__(
        self,
        projections: ProjectionStatAccess,
        processor: Optional[SleeperDataProcessor] = None,
        last_regular_season_week: int = 18,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            projections: Projection/stat accessors
            processor: Optional SleeperDataProcessor instance
            last_regular_season_week: Final week summed into rest-of-year (default: 18)
        """
        self.projections = projections
        self.processor = processor or SleeperDataProcessor()
        self.last_regular_season_week = last_regular_season_week

    async def enrich(
        self,
        players: Optional[List[PlayerInput]],
        projections: Mapping[str, Mapping[str, Any]],
        stats: Mapping[str, Mapping[str, Any]],
        scoring_settings: Optional[Mapping[str, float]],
        current_week: int,
        season: Any,
        season_type: str = "regular",
    ) -> List[EnrichedPlayer]:
        """
        Enrich a group of players.

        Args:
            players: Players of one roster-role group
            projections: Bulk projections for the current week, keyed by player id
            stats: League-wide stats for the previous week, keyed by player id
            scoring_settings: League scoring settings
            current_week: Current week number
            season: Season year
            season_type: "regular" or "post"

        Returns:
            The input players in order, each with the four computed metrics
        """
        if not isinstance(players, list):
            return []

        scoring_class = derive_scoring_class(scoring_settings)
        points_field = points_field_for(scoring_class)
        logger.debug(
            f"Enriching {len(players)} players for week {current_week} "
            f"({scoring_class.value}, field {points_field})"
        )

        return list(
            await asyncio.gather(
                *(
                    self._enrich_player(
                        self._as_record(player),
                        projections or {},
                        stats or {},
                        points_field,
                        current_week,
                        season,
                        season_type,
                    )
                    for player in players
                )
            )
        )

    @staticmethod
    def _as_record(player: PlayerInput) -> PlayerRecord:
        if isinstance(player, PlayerRecord):
            return player
        return PlayerRecord(**player)

    async def _enrich_player(
        self,
        player: PlayerRecord,
        projections: Mapping[str, Mapping[str, Any]],
        stats: Mapping[str, Mapping[str, Any]],
        points_field: str,
        current_week: int,
        season: Any,
        season_type: str,
    ) -> EnrichedPlayer:
        player_id = player.player_id
        projection_stats = dict(projections.get(player_id) or {})
        previous_week_stats = dict(stats.get(player_id) or {})
        errors: List[str] = []

        projected, previous_week_points, season_average, rest_of_year = await asyncio.gather(
            self._contained(
                player_id,
                "projected_points",
                errors,
                self.projected_points(
                    player_id, projection_stats, points_field, current_week, season, season_type
                ),
            ),
            self._contained(
                player_id,
                "previous_week_points",
                errors,
                self.previous_week_points(player_id, previous_week_stats, points_field),
            ),
            self._contained(
                player_id,
                "season_average",
                errors,
                self.season_average(player_id, points_field, season, season_type),
            ),
            self._contained(
                player_id,
                "rest_of_year",
                errors,
                self.rest_of_year(player_id, points_field, current_week, season, season_type),
            ),
        )

        return EnrichedPlayer(
            **player.model_dump(),
            projected_points=projected,
            rest_of_year=rest_of_year,
            previous_week_points=previous_week_points,
            season_average=season_average,
            projection_stats=projection_stats,
            previous_week_stats=previous_week_stats,
            enrichment_errors=sorted(errors),
        )

    async def _contained(
        self, player_id: str, metric: str, errors: List[str], computation: Awaitable[float]
    ) -> float:
        try:
            return await computation
        except Exception as e:
            failure = EnrichmentPartialFailure(player_id, metric, e)
            logger.warning(failure.message)
            errors.append(metric)
            return 0.0

    # ==================== Metrics ====================

    async def projected_points(
        self,
        player_id: str,
        projection_stats: Mapping[str, Any],
        points_field: str,
        current_week: int,
        season: Any,
        season_type: str = "regular",
    ) -> float:
        """
        Projected points for the current week.

        Uses the bulk projection entry when it carries the points field,
        otherwise the player's season projections for the current week.
        """
        value = projection_stats.get(points_field)
        if value is not None:
            return float(value)

        weekly = await self.projections.get_player_projections(player_id, season, season_type)
        points = self.processor.week_points(weekly.get(current_week), points_field)
        if points is None:
            logger.debug(f"No projection data found for player {player_id} in any source")
            return 0.0
        return points

    async def previous_week_points(
        self, player_id: str, previous_week_stats: Mapping[str, Any], points_field: str
    ) -> float:
        """Points scored last week according to the league-wide weekly stats."""
        points = self.processor.week_points(previous_week_stats, points_field)
        if points is None:
            logger.debug(f"No previous week score for player {player_id}")
            return 0.0
        return points

    async def season_average(
        self, player_id: str, points_field: str, season: Any, season_type: str = "regular"
    ) -> float:
        """Mean points over the weeks in which the player has a recorded score."""
        weekly = await self.projections.get_player_stats(player_id, season, season_type)
        scores = [
            points
            for points in (self.processor.week_points(entry, points_field) for entry in weekly.values())
            if points is not None
        ]
        if not scores:
            return 0.0
        return sum(scores) / len(scores)

    async def rest_of_year(
        self,
        player_id: str,
        points_field: str,
        current_week: int,
        season: Any,
        season_type: str = "regular",
    ) -> float:
        """Projected points summed over the remaining regular-season weeks."""
        weekly = await self.projections.get_player_projections(player_id, season, season_type)
        total = 0.0
        for week in range(current_week + 1, self.last_regular_season_week + 1):
            total += self.processor.week_points(weekly.get(week), points_field) or 0.0
        return total

    @staticmethod
    def scoring_summary(scoring_settings: Optional[Mapping[str, float]]) -> Dict[str, str]:
        scoring_class: ScoringClass = derive_scoring_class(scoring_settings)
        return {"scoring_class": scoring_class.value, "points_field": points_field_for(scoring_class)}
