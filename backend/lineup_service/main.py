from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from typing import Any, Dict, List, Optional
from lineup_service.core.config import settings
from lineup_service.exceptions import (
    AppException,
    handle_app_exception,
    handle_generic_exception,
    handle_http_exception
)
from lineup_service.schemas import Lineup, PlayerRecord
from lineup_service.services.sleeper import FantasyDataService
import logging

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Fantasy Lineup Data API",
    description="Sleeper lineups enriched with projections and historical points",
    version="1.0.0"
)

# =============================================================================
# CENTRALIZED ERROR HANDLING
# =============================================================================

@app.exception_handler(AppException)
async def app_exception_handler(request, exc: AppException):
    """Handle application-specific exceptions."""
    return handle_app_exception(exc)


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle FastAPI HTTPExceptions with standardized format."""
    return handle_http_exception(exc)


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc: Exception):
    """Handle all other exceptions and convert to standardized format."""
    return handle_generic_exception(exc)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Process-wide service: caches, rate-limit windows and in-flight requests
# are shared by every request.
_service: Optional[FantasyDataService] = None


async def get_service() -> FantasyDataService:
    global _service
    if _service is None:
        _service = FantasyDataService.from_settings(settings)
        logger.info(f"Fantasy data service initialized (mode={settings.MODE})")
    return _service


@app.get("/")
async def root():
    return {
        "message": "Fantasy Lineup Data API",
        "version": "1.0.0",
        "status": "operational"
    }


@app.get("/health")
async def health_check(service: FantasyDataService = Depends(get_service)):
    return {
        "status": "healthy",
        "mode": settings.MODE,
        "default_season": settings.DEFAULT_SEASON,
        "rate_limit": service.get_cache_status()["rate_limit"],
    }


# =============================================================================
# LINEUPS
# =============================================================================

@app.get("/leagues/{league_id}/lineups/{user_id}", response_model=None)
async def get_lineup(
    league_id: str,
    user_id: str,
    platform: str = "sleeper",
    enhanced: bool = True,
    week: Optional[int] = Query(None, ge=1),
    season: Optional[str] = None,
    refresh: bool = False,
    service: FantasyDataService = Depends(get_service)
) -> Lineup:
    """
    Current lineup of a user, optionally enriched with projections.

    Enhanced lineups carry projected, previous-week, season-average and
    rest-of-year points per player plus lineup metadata.
    """
    if not enhanced:
        return await service.get_current_lineup(user_id, league_id, platform)
    return await service.get_enhanced_lineup(
        user_id, league_id, platform=platform, week=week, season=season, refresh=refresh
    )


@app.get("/leagues/{league_id}/matchups")
async def get_matchups(
    league_id: str,
    week: Optional[int] = Query(None, ge=1),
    platform: str = "sleeper",
    service: FantasyDataService = Depends(get_service)
) -> List[Dict[str, Any]]:
    return await service.get_matchups(league_id, week=week, platform=platform)


@app.get("/leagues/{league_id}/free-agents")
async def get_free_agents(
    league_id: str,
    position: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
    platform: str = "sleeper",
    service: FantasyDataService = Depends(get_service)
) -> List[PlayerRecord]:
    """Players not on any roster in the league, active first then by search rank."""
    return await service.get_free_agents(league_id, position=position, limit=limit, platform=platform)


@app.get("/leagues/{league_id}")
async def get_league(league_id: str, service: FantasyDataService = Depends(get_service)):
    return await service.get_league_info(league_id)


@app.get("/users/{user_id}/leagues")
async def get_user_leagues(
    user_id: str,
    sport: Optional[str] = None,
    season: Optional[str] = None,
    service: FantasyDataService = Depends(get_service)
):
    return await service.get_user_leagues(user_id, sport=sport, season=season)


@app.get("/players/trending")
async def get_trending_players(
    trend_type: str = Query("add", alias="type", pattern="^(add|drop)$"),
    lookback_hours: int = Query(24, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    service: FantasyDataService = Depends(get_service)
):
    return await service.get_trending_players(trend_type, lookback_hours, limit)


# =============================================================================
# CACHE ADMINISTRATION
# =============================================================================

@app.get("/cache/status")
async def get_cache_status(service: FantasyDataService = Depends(get_service)):
    """Validity, age and remaining lifetime per cache, plus rate-limit usage."""
    return service.get_cache_status()


@app.post("/cache/clear")
async def clear_cache(service: FantasyDataService = Depends(get_service)):
    service.clear_all_caches()
    return {"status": "success", "message": "All caches cleared"}


@app.on_event("shutdown")
async def shutdown_event():
    """Close upstream HTTP clients"""
    global _service
    if _service is None:
        return
    try:
        await _service.close()
        logger.info("Fantasy data service shut down")
    except Exception as e:
        logger.warning(f"Error during shutdown: {str(e)}")
    finally:
        _service = None
