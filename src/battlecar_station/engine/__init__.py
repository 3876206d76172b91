"""Match engine: turns sensor packets into match transitions and car commands."""

from .match import GameStateListener, MatchEngine
