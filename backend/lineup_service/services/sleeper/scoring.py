"""
League Scoring Classification
Derive a league's reception scoring class and the stat field that carries
its fantasy points.
"""

from enum import Enum
from typing import Dict, Mapping, Optional
import logging

logger = logging.getLogger(__name__)


class ScoringClass(str, Enum):
    """Point-per-reception rule of a league."""

    STANDARD = "standard"
    HALF_PPR = "half_ppr"
    PPR = "ppr"


# Sleeper payloads carry no dedicated standard-scoring points field, so
# standard leagues read the half-PPR total.
POINTS_FIELDS: Dict[ScoringClass, str] = {
    ScoringClass.PPR: "pts_ppr",
    ScoringClass.HALF_PPR: "pts_half_ppr",
    ScoringClass.STANDARD: "pts_half_ppr",
}


def derive_scoring_class(scoring_settings: Optional[Mapping[str, float]]) -> ScoringClass:
    """
    Classify a league from its scoring settings.

    Args:
        scoring_settings: Stat abbreviation -> point value mapping

    Returns:
        PPR when ``rec`` is 1, HALF_PPR when ``rec`` or ``rec_half`` is 0.5,
        STANDARD when neither awards reception points, HALF_PPR for any other
        custom value.
    """
    if not scoring_settings:
        return ScoringClass.STANDARD

    rec = scoring_settings.get("rec") or 0
    rec_half = scoring_settings.get("rec_half") or 0

    if rec == 1:
        return ScoringClass.PPR
    if rec == 0.5 or rec_half == 0.5:
        return ScoringClass.HALF_PPR
    if rec == 0 and rec_half == 0:
        return ScoringClass.STANDARD

    logger.info(f"Custom reception scoring (rec={rec}, rec_half={rec_half}), using half PPR")
    return ScoringClass.HALF_PPR


def points_field_for(scoring_class: ScoringClass) -> str:
    """
    Stat field holding fantasy points for a scoring class.

    Raises:
        ValueError: For anything that is not a known ScoringClass
    """
    try:
        return POINTS_FIELDS[ScoringClass(scoring_class)]
    except (KeyError, ValueError) as e:
        raise ValueError(f"Unknown scoring class: {scoring_class!r}") from e
