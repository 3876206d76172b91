"""Match state models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class MatchPhase(Enum):
    """Match lifecycle: IDLE -> ARMED -> RUNNING -> COOLDOWN -> IDLE."""

    IDLE = "idle"          # waiting for both light sensors to be covered
    ARMED = "armed"        # both covered; uncovering both starts the match
    RUNNING = "running"    # hits are scored
    COOLDOWN = "cooldown"  # match over, firing disabled


@dataclass
class TeamState:
    """Per-team mutable state owned by the match engine."""

    hp: int = 100
    light_covered: bool = False
    ir_since_ms: int | None = None    # when the current IR beam was first seen
    last_hit_ms: int | None = None    # last confirmed hit
    hit_armed: bool = True            # cleared by a confirmed hit until IR drops

    def reset_hit_tracking(self) -> None:
        self.ir_since_ms = None
        self.last_hit_ms = None
        self.hit_armed = True


@dataclass(frozen=True)
class MatchSnapshot:
    """Read-only view of the match at one instant."""

    phase: MatchPhase
    hp: dict[int, int] = field(default_factory=dict)
    light_covered: dict[int, bool] = field(default_factory=dict)
    winner: int | None = None
    status: str = ""

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "hp": {str(team): hp for team, hp in self.hp.items()},
            "light_covered": {
                str(team): covered for team, covered in self.light_covered.items()
            },
            "winner": self.winner,
            "status": self.status,
        }
