"""
Fantasy Data Service
Main orchestrator for lineup, matchup and free-agent data using modular components.
"""
import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
import logging

import httpx

from lineup_service.exceptions import AppException, NotFoundError, ValidationError
from lineup_service.schemas import (
    DataQuality,
    EnhancedLineup,
    Lineup,
    LineupMetadata,
    PlayerRecord,
    RosterRole,
    RosterSnapshot,
)
from lineup_service.services.espn.client import EspnClient
from lineup_service.services.ratelimit import SleepFunc

from .cache import TTLCache
from .client import SleeperHTTPClient
from .enrichment import EnrichmentPipeline
from .league import LeagueDataAccess
from .processors import SleeperDataProcessor
from .projections import ProjectionStatAccess
from .snapshot import SnapshotStore

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = ("sleeper", "espn")

# ESPN lineup slot ids; anything else is a starting slot.
ESPN_BENCH_SLOT = 20
ESPN_RESERVE_SLOT = 21


class FantasyDataService:
    """
    Fantasy data service built from modular components.

    Orchestrates roster lookups, projection/stat fetching and enrichment:
    - SleeperHTTPClient: HTTP requests with rate limiting, dedup and retry
    - LeagueDataAccess: Cached rosters, users, settings and player catalog
    - ProjectionStatAccess: Cached projections and stats
    - EnrichmentPipeline: Per-player derived metrics
    - EspnClient: Secondary platform (fixture data without a proxy)
    """

    def __init__(
        self,
        sleeper: SleeperHTTPClient,
        league: LeagueDataAccess,
        projections: ProjectionStatAccess,
        pipeline: EnrichmentPipeline,
        espn: Optional[EspnClient] = None,
        processor: Optional[SleeperDataProcessor] = None,
    ) -> None:
        self.sleeper = sleeper
        self.league = league
        self.projections = projections
        self.pipeline = pipeline
        self.espn = espn
        self.processor = processor or SleeperDataProcessor()

    @classmethod
    def from_settings(
        cls,
        settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        espn_transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[SleepFunc] = None,
    ) -> "FantasyDataService":
        """
        Wire the service and its process-wide state from settings.

        Args:
            settings: Application settings
            transport: Optional httpx transport for Sleeper (tests)
            espn_transport: Optional httpx transport for ESPN (tests)
            clock: Time source shared by caches and rate-limit windows
            sleep: Awaitable sleep used for retry backoff
        """
        processor = SleeperDataProcessor()
        sleeper = SleeperHTTPClient.from_settings(settings, transport=transport, clock=clock, sleep=sleep)

        def cache(name: str, duration: float) -> TTLCache:
            return TTLCache(name, duration, clock=clock)

        snapshot_store = (
            SnapshotStore(Path(settings.SNAPSHOT_DIR)) if settings.ENABLE_OFFLINE_MODE else None
        )
        league = LeagueDataAccess(
            sleeper,
            rosters_cache=cache("rosters", settings.LEAGUE_CACHE_TTL),
            users_cache=cache("users", settings.LEAGUE_CACHE_TTL),
            settings_cache=cache("settings", settings.LEAGUE_CACHE_TTL),
            players_cache=cache("players", settings.PLAYER_CACHE_TTL),
            processor=processor,
            snapshot_store=snapshot_store,
            snapshot_max_players=settings.SNAPSHOT_MAX_PLAYERS,
            default_sport=settings.DEFAULT_SPORT,
            default_season=settings.DEFAULT_SEASON,
            max_players_display=settings.MAX_PLAYERS_DISPLAY,
            clock=clock,
        )
        projections = ProjectionStatAccess(
            sleeper,
            weekly_projections_cache=cache("weekly_projections", settings.PROJECTIONS_CACHE_TTL),
            player_projections_cache=cache("player_projections", settings.PROJECTIONS_CACHE_TTL),
            player_stats_cache=cache("player_stats", settings.PROJECTIONS_CACHE_TTL),
            weekly_stats_cache=cache("weekly_stats", settings.PROJECTIONS_CACHE_TTL),
            state_cache=cache("nfl_state", settings.PROJECTIONS_CACHE_TTL),
            processor=processor,
            default_season=settings.DEFAULT_SEASON,
        )
        pipeline = EnrichmentPipeline(
            projections,
            processor=processor,
            last_regular_season_week=settings.REGULAR_SEASON_WEEKS,
        )
        espn = EspnClient.from_settings(settings, transport=espn_transport, clock=clock, sleep=sleep)
        return cls(sleeper, league, projections, pipeline, espn=espn, processor=processor)

    # ==================== Lineups ====================

    async def get_current_lineup(
        self, user_id: str, league_id: str, platform: str = "sleeper"
    ) -> Lineup:
        """
        Current lineup of a user in a league.

        Args:
            user_id: Sleeper user id (ESPN: team id)
            league_id: League id
            platform: "sleeper" or "espn"

        Returns:
            Lineup with starters, bench and reserve resolved against the catalog

        Raises:
            NotFoundError: If the user has no roster in the league
            ValidationError: For an unsupported platform
        """
        self._check_platform(platform)
        if platform == "espn":
            return await self._get_espn_lineup(user_id, league_id)

        rosters, users, players = await asyncio.gather(
            self.league.get_rosters(league_id),
            self.league.get_users(league_id),
            self.league.get_players(),
        )

        raw_roster = next((r for r in rosters if r.get("owner_id") == user_id), None)
        if raw_roster is None:
            raise NotFoundError("User roster", f"{user_id} in league {league_id}")
        roster = RosterSnapshot(**raw_roster)
        user_info = next((u for u in users if u.get("user_id") == user_id), None)

        starter_ids, bench_ids, reserve_ids = self.processor.split_roster(roster)
        return Lineup(
            user=user_info,
            roster=raw_roster,
            starters=self.processor.build_player_list(starter_ids, players, RosterRole.STARTER),
            bench=self.processor.build_player_list(bench_ids, players, RosterRole.BENCH),
            reserve=self.processor.build_player_list(reserve_ids, players, RosterRole.RESERVE),
            settings=roster.settings,
        )

    async def _get_espn_lineup(self, team_id: str, league_id: str) -> Lineup:
        empty = Lineup(
            user={"user_id": team_id, "display_name": f"ESPN Team {team_id}"},
            roster={"entries": []},
        )
        try:
            roster = await self.espn.get_team_roster(league_id, team_id, self.league.default_season)
        except AppException as e:
            logger.warning(f"ESPN API error, returning empty lineup: {e}")
            return empty
        if not roster:
            logger.warning(f"ESPN team {team_id} not found in league {league_id}")
            return empty

        entries = roster.get("entries") or []
        slots = {RosterRole.STARTER: [], RosterRole.BENCH: [], RosterRole.RESERVE: []}
        for entry in entries:
            slot = entry.get("lineupSlotId") or 0
            if slot == ESPN_BENCH_SLOT:
                slots[RosterRole.BENCH].append(entry)
            elif slot == ESPN_RESERVE_SLOT:
                slots[RosterRole.RESERVE].append(entry)
            else:
                slots[RosterRole.STARTER].append(entry)
        return Lineup(
            user={"user_id": team_id, "display_name": f"ESPN Team {team_id}"},
            roster=roster,
            starters=self.processor.process_espn_player_list(slots[RosterRole.STARTER], RosterRole.STARTER),
            bench=self.processor.process_espn_player_list(slots[RosterRole.BENCH], RosterRole.BENCH),
            reserve=self.processor.process_espn_player_list(slots[RosterRole.RESERVE], RosterRole.RESERVE),
        )

    async def get_enhanced_lineup(
        self,
        user_id: str,
        league_id: str,
        platform: str = "sleeper",
        week: Optional[int] = None,
        season: Optional[str] = None,
        refresh: bool = False,
    ) -> Lineup:
        """
        Lineup enriched with projections and historical points.

        Only a failed base roster fetch is surfaced. Missing scoring settings,
        projections or stats degrade to zeros.

        Args:
            user_id: Sleeper user id
            league_id: Sleeper league id
            platform: "sleeper" or "espn" (ESPN lineups are not enriched)
            week: Week to project (default: current NFL week)
            season: Season (default: current NFL season)
            refresh: Drop cached projections before fetching

        Returns:
            EnhancedLineup for Sleeper, plain Lineup for ESPN
        """
        lineup = await self.get_current_lineup(user_id, league_id, platform)
        if platform != "sleeper":
            return lineup

        state = await self.projections.get_current_state()
        current_week = week or state["week"]
        current_season = str(season or state["season"])
        season_type = state.get("season_type") or "regular"
        if season_type not in ("regular", "post"):
            season_type = "regular"

        try:
            scoring_settings = await self.league.get_scoring_settings(league_id)
        except AppException as e:
            logger.warning(f"Error fetching league scoring settings: {e}")
            scoring_settings = {}

        if refresh:
            self.projections.clear_projection_caches()

        try:
            projections = await self.projections.get_weekly_projections(
                current_season, current_week, season_type
            )
        except AppException as e:
            logger.warning(f"Error fetching weekly projections: {e}")
            projections = {}

        previous_week = current_week - 1 if current_week > 1 else 1
        try:
            stats = await self.projections.get_weekly_stats(current_season, previous_week, season_type)
        except AppException as e:
            logger.warning(f"Error fetching week {previous_week} stats: {e}")
            stats = {}

        groups = await asyncio.gather(
            *(
                self.pipeline.enrich(
                    group, projections, stats, scoring_settings,
                    current_week, current_season, season_type,
                )
                for group in (lineup.starters, lineup.bench, lineup.reserve)
            )
        )
        starters, bench, reserve = groups
        all_players = [*starters, *bench, *reserve]
        player_ids = {p.player_id for p in all_players}

        metadata = LineupMetadata(
            week=current_week,
            season=current_season,
            season_type=season_type,
            previous_week=previous_week,
            scoring_settings=scoring_settings,
            last_updated=datetime.now().isoformat(),
            data_quality=DataQuality(
                projections_loaded=bool(projections),
                stats_loaded=bool(stats),
                total_players=len(all_players),
                projections_count=len(player_ids & projections.keys()),
                stats_count=len(player_ids & stats.keys()),
                partial_failures=sum(len(p.enrichment_errors) for p in all_players),
            ),
            **self.pipeline.scoring_summary(scoring_settings),
        )
        logger.info(
            f"Enriched lineup for user {user_id} in league {league_id}: "
            f"{len(all_players)} players, week {current_week}"
        )
        return EnhancedLineup(
            user=lineup.user,
            roster=lineup.roster,
            starters=starters,
            bench=bench,
            reserve=reserve,
            settings=lineup.settings,
            metadata=metadata,
        )

    # ==================== Matchups / players ====================

    async def get_matchups(
        self, league_id: str, week: Optional[int] = None, platform: str = "sleeper"
    ) -> List[Dict]:
        """
        Matchups for a week, each annotated with its user and resolved players.

        Args:
            league_id: League id
            week: Week number (default: current NFL week)
            platform: "sleeper" or "espn"
        """
        self._check_platform(platform)
        if platform == "espn":
            try:
                schedule = await self.espn.get_matchups(league_id, self.league.default_season, week)
            except AppException as e:
                logger.warning(f"ESPN API error for matchups, returning empty list: {e}")
                return []
            return [
                {
                    **matchup,
                    "starters": self.processor.process_espn_player_list(_espn_entries(matchup, "away")),
                    "players": self.processor.process_espn_player_list(
                        _espn_entries(matchup, "away") + _espn_entries(matchup, "home")
                    ),
                }
                for matchup in schedule
            ]

        if not week:
            week = (await self.projections.get_current_state())["week"]

        matchups, users, players = await asyncio.gather(
            self.league.get_matchups(league_id, week),
            self.league.get_users(league_id),
            self.league.get_players(),
        )
        users_by_id = {u.get("user_id"): u for u in users}
        return [
            {
                **matchup,
                "user": users_by_id.get(matchup.get("owner_id")),
                "starters": self.processor.build_player_list(matchup.get("starters"), players),
                "players": self.processor.build_player_list(matchup.get("players"), players),
                "week": week,
            }
            for matchup in matchups
        ]

    async def get_free_agents(
        self,
        league_id: str,
        position: Optional[str] = None,
        limit: Optional[int] = None,
        platform: str = "sleeper",
    ) -> List[PlayerRecord]:
        """Available players for a league, most relevant first."""
        self._check_platform(platform)
        if platform == "espn":
            try:
                pool = await self.espn.get_free_agents(
                    league_id,
                    self.league.default_season,
                    position,
                    limit or self.league.max_players_display,
                )
            except AppException as e:
                logger.warning(f"ESPN API error for free agents, returning empty list: {e}")
                return []
            return self.processor.process_espn_player_list(pool)

        return await self.league.get_free_agents(league_id, position=position, limit=limit)

    async def get_trending_players(
        self, trend_type: str = "add", lookback_hours: int = 24, limit: Optional[int] = None
    ) -> List[Dict]:
        return await self.league.get_trending_players(trend_type, lookback_hours, limit)

    async def get_league_info(self, league_id: str) -> Dict[str, Any]:
        """League object with its users and rosters attached."""
        league, users, rosters = await asyncio.gather(
            self.league.get_league(league_id),
            self.league.get_users(league_id),
            self.league.get_rosters(league_id),
        )
        return {**league, "users": users, "rosters": rosters}

    async def get_user_leagues(
        self, user_id: str, sport: Optional[str] = None, season: Optional[str] = None
    ) -> List[Dict]:
        """A user's leagues, each with users and rosters when they can be loaded."""
        leagues = await self.league.get_user_leagues(user_id, sport, season)

        async def with_members(league: Dict) -> Dict:
            try:
                users, rosters = await asyncio.gather(
                    self.league.get_users(league["league_id"]),
                    self.league.get_rosters(league["league_id"]),
                )
            except AppException as e:
                logger.error(f"Error enriching league {league.get('league_id')}: {e}")
                return league
            return {**league, "users": users, "rosters": rosters}

        return list(await asyncio.gather(*(with_members(league) for league in leagues)))

    # ==================== Cache administration ====================

    def get_cache_status(self) -> Dict[str, Any]:
        """Per cache class validity/age/remaining time, plus rate-limit usage."""
        rate_limit = {"sleeper": self.sleeper.rate_limit_status()}
        if self.espn is not None:
            rate_limit["espn"] = self.espn.rate_limit_status()
        return {
            "league": self.league.status(),
            "projections": self.projections.status(),
            "rate_limit": rate_limit,
        }

    def clear_all_caches(self) -> None:
        """Wipe every cache and forget in-flight requests (manual recovery)."""
        self.league.clear()
        self.projections.clear()
        self.sleeper.limiter.reset_pending()
        if self.espn is not None:
            self.espn.limiter.reset_pending()
        logger.info("Cleared all caches and pending requests")

    async def close(self) -> None:
        await self.sleeper.close()
        if self.espn is not None:
            await self.espn.close()

    @staticmethod
    def _check_platform(platform: str) -> None:
        if platform not in SUPPORTED_PLATFORMS:
            raise ValidationError(
                f"Unsupported platform: {platform}", details={"supported": list(SUPPORTED_PLATFORMS)}
            )


def _espn_entries(matchup: Dict[str, Any], side: str) -> List[Dict]:
    return list(((matchup.get(side) or {}).get("roster") or {}).get("entries") or [])
