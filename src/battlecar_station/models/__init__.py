"""Data models for match state."""

from .match import MatchPhase, MatchSnapshot, TeamState
