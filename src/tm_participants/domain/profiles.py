"""Personality profiles and the participant roster built at simulation start."""

from dataclasses import dataclass

from src.tm_common.enums import Personality
from src.tm_market.domain.models import ParticipantState, Preferences


@dataclass(frozen=True)
class Profile:
    participant_id: str
    display_name: str
    personality: Personality
    max_spend_fraction: float
    max_sell_fraction: float | None = None  # None -> engine-level default
    threshold: float | None = None


DEFAULT_PROFILES: tuple[Profile, ...] = (
    Profile("buyer_1", "Frugal Fred", Personality.FRUGAL, 0.3, threshold=0.015),
    Profile("buyer_2", "Impulsive Ivan", Personality.IMPULSIVE, 0.6),
    Profile("buyer_3", "Skeptical Sarah", Personality.SKEPTICAL, 0.4),
)


def build_participants(
    default_sell_fraction: float,
    opening_balance: float = 0.0,
    profiles: tuple[Profile, ...] = DEFAULT_PROFILES,
) -> list[ParticipantState]:
    """Create fresh participant states; nothing is shared across simulations."""
    if not profiles:
        raise ValueError("At least one participant profile is required")
    return [
        ParticipantState(
            id=profile.participant_id,
            display_name=profile.display_name,
            personality=profile.personality,
            balance=opening_balance,
            holdings=0,
            preferences=Preferences(
                max_spend_fraction=profile.max_spend_fraction,
                max_sell_fraction=(
                    profile.max_sell_fraction
                    if profile.max_sell_fraction is not None
                    else default_sell_fraction
                ),
                threshold=profile.threshold,
            ),
        )
        for profile in profiles
    ]
