"""
Trader ranking and consensus vote models.

Rankings and votes are immutable snapshots: each discovery cycle or vote
computation builds a new object that replaces the previous one wholesale.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..data.models import Side


@dataclass(frozen=True)
class TraderProfile:
    """Win/loss record of one participant over the discovery lookback."""
    trader_id: str
    display_name: Optional[str]
    wins: int
    losses: int
    total_volume: float

    @property
    def windows_observed(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        observed = self.windows_observed
        return self.wins / observed if observed else 0.0

    def to_dict(self) -> dict:
        return {
            "id": self.trader_id,
            "displayName": self.display_name,
            "wins": self.wins,
            "losses": self.losses,
            "winRate": round(self.win_rate, 4),
            "totalVolume": round(self.total_volume, 2),
        }


@dataclass(frozen=True)
class TraderRanking:
    """Ranked profiles produced by one discovery cycle."""
    profiles: tuple[TraderProfile, ...]
    discovered_at: datetime
    windows_scanned: int = 0

    @property
    def empty(self) -> bool:
        return not self.profiles

    def __len__(self) -> int:
        return len(self.profiles)


@dataclass(frozen=True)
class TraderContribution:
    """One ranked trader's weighted lean in the current window."""
    trader_id: str
    display_name: Optional[str]
    side: Side
    weight: float
    win_rate: float
    source: str

    def to_dict(self) -> dict:
        return {
            "id": self.trader_id,
            "displayName": self.display_name,
            "side": self.side.value,
            "weight": round(self.weight, 4),
            "winRate": round(self.win_rate, 4),
            "source": self.source,
        }


@dataclass(frozen=True)
class ConsensusVote:
    """Weighted directional vote of ranked traders for one window."""
    window_id: str
    direction: Optional[Side]
    yes_weight: float
    no_weight: float
    confidence: float
    contributors: tuple[TraderContribution, ...]
    computed_at: datetime

    def to_dict(self) -> dict:
        return {
            "windowId": self.window_id,
            "direction": self.direction.value if self.direction else None,
            "confidence": round(self.confidence, 4),
            "yesWeight": round(self.yes_weight, 4),
            "noWeight": round(self.no_weight, 4),
            "contributors": [c.to_dict() for c in self.contributors],
        }
