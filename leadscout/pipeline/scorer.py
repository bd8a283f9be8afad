"""Rule-based relevance scoring for accepted candidates.

Score range: 0-100 (clamped). Individual bonuses from ScoringConfig.
Higher search positions earn a linearly decaying position bonus.
"""

import logging

from leadscout.core.config import ScoringConfig
from leadscout.core.schemas import ActivityStatus, Candidate

logger = logging.getLogger(__name__)

# Positions beyond this earn no position bonus.
POSITION_HORIZON = 30


def score_candidate(
    candidate: Candidate,
    activity: ActivityStatus,
    config: ScoringConfig,
) -> int:
    """Score a single accepted candidate using rule-based bonuses.

    Args:
        candidate: The accepted candidate to score.
        activity: Activity bucket derived from the page's last-modified date.
        config: Scoring weights from settings.

    Returns:
        Integer score 0-100.
    """
    score = config.base_score

    score += _position_score(candidate.position, config.position_bonus)

    # Keyword appears in the title
    if candidate.keyword.lower().strip() in candidate.title.lower():
        score += config.keyword_match_bonus

    if candidate.contact_email:
        score += config.email_bonus

    if activity is ActivityStatus.ACTIVE:
        score += config.active_bonus
    elif activity is ActivityStatus.NORMAL:
        score += config.normal_bonus

    return int(round(max(0.0, min(100.0, score))))


def rank_label(position: int) -> str:
    """Human-readable search rank, e.g. ``#3``."""
    return f"#{position}"


def _position_score(position: int, max_bonus: float) -> float:
    """Full bonus for position 1, decreasing to 0 at POSITION_HORIZON."""
    if position >= POSITION_HORIZON:
        return 0.0
    return max_bonus * (POSITION_HORIZON - position) / (POSITION_HORIZON - 1)
