"""Station configuration.

Fixed link constants live at module level. Match timing and link
selection are runtime-tunable through ``StationConfig``, which can be
loaded from a JSON file (path taken from ``BATTLECAR_CONFIG`` by the
server when no explicit path is given).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BATTLECAR_CONFIG"

# Radio dongles run 8N1, no flow control
DEFAULT_BAUDRATE = 9600
SERIAL_READ_TIMEOUT = 0.05  # seconds per blocking read
READ_IDLE_INTERVAL = 0.02   # seconds to wait after an empty read
FRAME_QUEUE_CAPACITY = 512
QUEUE_POLL_INTERVAL = 0.1   # seconds, bounds shutdown latency of blocked threads
ENGINE_TICK_INTERVAL = 0.5


def _apply(target, values: dict) -> None:
    """Set dataclass fields from a dict, coercing to the field's current type."""
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key not in known:
            logger.warning("Ignoring unknown setting %r", key)
            continue
        current = getattr(target, key)
        try:
            if isinstance(current, list):
                if isinstance(value, str):
                    value = [value]
                elif not isinstance(value, (list, tuple)):
                    raise TypeError(value)
                setattr(target, key, [str(v) for v in value])
            else:
                setattr(target, key, type(current)(value))
        except (TypeError, ValueError):
            logger.warning("Invalid value for %s: %r", key, value)


@dataclass
class MatchSettings:
    """Rules and timing of a match. All durations in milliseconds."""

    start_hp: int = 100
    damage_per_hit: int = 10
    verification_window_ms: int = 2000  # IR must stay on this long to count
    hit_cooldown_ms: int = 800          # per team, between confirmed hits
    game_over_delay_ms: int = 5000      # COOLDOWN -> IDLE
    green_above_hp: int = 60

    # Start animation
    animation_reset_pause_ms: int = 300
    animation_step_ms: int = 600
    animation_team_gap_ms: int = 50

    def update(self, **kwargs) -> None:
        _apply(self, kwargs)


@dataclass
class StationConfig:
    """Links to open and the match settings to run with."""

    ports: list[str] = field(default_factory=list)
    baudrate: int = DEFAULT_BAUDRATE
    queue_capacity: int = FRAME_QUEUE_CAPACITY
    read_idle_interval: float = READ_IDLE_INTERVAL
    match: MatchSettings = field(default_factory=MatchSettings)

    def update(self, **kwargs) -> None:
        """Apply overrides, e.g. from a JSON file or a tool call."""
        match = kwargs.pop("match", None)
        if isinstance(match, dict):
            self.match.update(**match)
        elif match is not None:
            logger.warning("Invalid value for match: %r", match)
        _apply(self, kwargs)

    @classmethod
    def load(cls, path: str | Path | None = None) -> StationConfig:
        """Load from a JSON file, or return defaults.

        Args:
            path: Config file. Defaults to ``$BATTLECAR_CONFIG`` if set.
        """
        if path is None:
            path = os.environ.get(CONFIG_ENV_VAR)
        config = cls()
        if not path:
            return config

        path = Path(path)
        if not path.exists():
            logger.warning("Config file %s not found, using defaults", path)
            return config

        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            logger.warning("Failed to load %s: %s, using defaults", path, e)
            return config

        config.update(**data)
        logger.info("Configuration loaded from %s", path)
        return config

    def to_dict(self) -> dict:
        return asdict(self)
