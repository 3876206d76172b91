"""Match state machine.

The engine is a packet listener. It tracks each team's light sensor to
arm and start a match, debounces IR readings into confirmed hits while
the match runs, and drives LED/buzzer/fire-mode feedback to the cars
through a ``CommandRouter``.

Phases::

    IDLE --both covered--> ARMED --both uncovered--> RUNNING
      ^                                                 |
      +------ game_over_delay_ms ---- COOLDOWN <--hp 0--+

A hit counts only after the IR flag has stayed on for
``verification_window_ms``, at least ``hit_cooldown_ms`` after that
team's previous hit. A confirmed hit disarms the team until its IR flag
goes off again, so one sustained beam scores once.

All packet handling runs under one lock. Listener callbacks run on the
calling thread, inside that lock.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

from ..config import MatchSettings
from ..models.match import MatchPhase, MatchSnapshot, TeamState
from ..protocol.commands import (
    BROADCAST,
    TEAMS,
    BeepPattern,
    Color,
    Command,
    FireMode,
    build_beep,
    build_fire_mode,
    build_set_rgb,
    health_color,
)
from ..protocol.packets import Packet
from ..transport.router import CommandRouter

logger = logging.getLogger(__name__)

STATUS_IDLE = "Cover sensors to arm..."
STATUS_ARMED = "ARMED! Uncover to start."
STATUS_ARMED_WAITING = "ARMED! Waiting for both teams to uncover..."
STATUS_STARTED = "GO! Match started!"


class GameStateListener(Protocol):
    """Scoreboard-side callbacks."""

    def on_health_update(self, team: int, hp: int) -> None: ...

    def on_status(self, text: str) -> None: ...


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def _spawn_thread(target: Callable[[], None]) -> None:
    threading.Thread(target=target, name="StartSequence", daemon=True).start()


class MatchEngine:
    """Authoritative match state for two teams.

    Args:
        router: Where feedback commands are sent.
        settings: Rules and timings; defaults to ``MatchSettings()``.
        clock: Returns the current time in milliseconds.
        sleep: Sleeps for a number of seconds (start animation pacing).
        spawn: Runs a callable in the background (start animation).

    Router write failures are not caught; they propagate to whoever
    delivered the packet.
    """

    def __init__(
        self,
        router: CommandRouter,
        settings: MatchSettings | None = None,
        clock: Callable[[], int] = _monotonic_ms,
        sleep: Callable[[float], None] = time.sleep,
        spawn: Callable[[Callable[[], None]], None] = _spawn_thread,
    ) -> None:
        self._router = router
        self._settings = settings or MatchSettings()
        self._clock = clock
        self._sleep = sleep
        self._spawn = spawn

        self._lock = threading.RLock()
        self._listeners: tuple[GameStateListener, ...] = ()
        self._phase = MatchPhase.IDLE
        self._teams = {team: TeamState(hp=self._settings.start_hp) for team in TEAMS}
        self._generation = 0
        self._game_over_at: int | None = None
        self._winner: int | None = None
        self._status = ""

    # ─── PUBLIC API ──────────────────────────────────────────────────

    @property
    def phase(self) -> MatchPhase:
        return self._phase

    @property
    def settings(self) -> MatchSettings:
        return self._settings

    def hp(self, team: int) -> int:
        return self._teams[team].hp

    def add_listener(self, listener: GameStateListener) -> None:
        with self._lock:
            self._listeners = self._listeners + (listener,)

    def remove_listener(self, listener: GameStateListener) -> None:
        with self._lock:
            self._listeners = tuple(l for l in self._listeners if l is not listener)

    def snapshot(self) -> MatchSnapshot:
        with self._lock:
            return MatchSnapshot(
                phase=self._phase,
                hp={team: state.hp for team, state in self._teams.items()},
                light_covered={
                    team: state.light_covered for team, state in self._teams.items()
                },
                winner=self._winner,
                status=self._status,
            )

    def on_packet(self, packet: Packet) -> None:
        """Handle one validated sensor packet."""
        with self._lock:
            state = self._teams.get(packet.team)
            if state is None:
                logger.debug("Ignoring packet for unknown team %d", packet.team)
                return

            now = self._clock()
            self._advance(now)
            state.light_covered = packet.covered

            if self._phase in (MatchPhase.IDLE, MatchPhase.ARMED):
                self._update_arming(now)
            elif self._phase is MatchPhase.RUNNING:
                self._update_hits(packet.team, state, packet.ir, now)

    def tick(self) -> None:
        """Apply time-driven transitions. Call periodically."""
        with self._lock:
            self._advance(self._clock())

    def abort_match(self) -> None:
        """Stop any match in progress: disable firing, LEDs off, back to IDLE."""
        with self._lock:
            self._generation += 1
            self._router.send_command(build_fire_mode(BROADCAST, FireMode.DISABLED))
            self._router.send_command(build_set_rgb(BROADCAST, Color.OFF))
            self._enter_idle()
            logger.info("Match aborted")
            self._set_status("Match aborted. " + STATUS_IDLE, force=True)

    # ─── ARMING ──────────────────────────────────────────────────────

    def _update_arming(self, now: int) -> None:
        covered = [self._teams[team].light_covered for team in TEAMS]

        if self._phase is MatchPhase.IDLE:
            if all(covered):
                self._phase = MatchPhase.ARMED
                logger.info("Armed")
                self._set_status(STATUS_ARMED, force=True)
            else:
                self._set_status(STATUS_IDLE)
            return

        if not any(covered):
            self._start(now)
        elif all(covered):
            self._set_status(STATUS_ARMED)
        else:
            self._set_status(STATUS_ARMED_WAITING)

    def _start(self, now: int) -> None:
        self._phase = MatchPhase.RUNNING
        self._generation += 1
        self._winner = None
        self._game_over_at = None
        for state in self._teams.values():
            state.hp = self._settings.start_hp
            state.reset_hit_tracking()

        logger.info("Match started")
        self._notify_health()
        self._set_status(STATUS_STARTED, force=True)

        generation = self._generation
        self._spawn(lambda: self._run_start_sequence(generation))

    def _start_steps(self) -> list[tuple[Callable[[], list[Command]], int]]:
        s = self._settings
        return [
            (lambda: [build_set_rgb(BROADCAST, Color.OFF)], s.animation_reset_pause_ms),
            (lambda: [build_set_rgb(BROADCAST, Color.RED)], s.animation_step_ms),
            (lambda: [build_set_rgb(BROADCAST, Color.GREEN)], s.animation_step_ms),
            (lambda: [build_set_rgb(BROADCAST, Color.OFF)], s.animation_reset_pause_ms),
            (lambda: [self._color_command(TEAMS[0])], s.animation_team_gap_ms),
            (
                lambda: [
                    self._color_command(TEAMS[1]),
                    build_beep(BROADCAST, BeepPattern.START),
                    build_fire_mode(BROADCAST, FireMode.AUTO),
                ],
                0,
            ),
        ]

    def _run_start_sequence(self, generation: int) -> None:
        """Staged LED countdown ending with the start beep and fire enable.

        Runs outside the engine lock while sleeping. Each step is skipped
        once a newer transition has bumped the generation.
        """
        try:
            for commands, pause_ms in self._start_steps():
                with self._lock:
                    if generation != self._generation:
                        logger.info("Start sequence superseded")
                        return
                    for command in commands():
                        self._router.send_command(command)
                if pause_ms:
                    self._sleep(pause_ms / 1000)
        except Exception:
            logger.exception("Start sequence failed")

    # ─── HITS ────────────────────────────────────────────────────────

    def _update_hits(self, team: int, state: TeamState, ir: bool, now: int) -> None:
        if not ir:
            state.ir_since_ms = None
            state.hit_armed = True
            return

        if state.ir_since_ms is None:
            state.ir_since_ms = now
        if not state.hit_armed:
            return
        if now - state.ir_since_ms < self._settings.verification_window_ms:
            return
        if (
            state.last_hit_ms is not None
            and now - state.last_hit_ms < self._settings.hit_cooldown_ms
        ):
            return

        state.last_hit_ms = now
        state.hit_armed = False
        self._register_hit(team, now)

    def _register_hit(self, team: int, now: int) -> None:
        state = self._teams[team]
        state.hp = max(0, state.hp - self._settings.damage_per_hit)
        logger.info("Hit on team %d, hp=%d", team, state.hp)

        self._router.send_command(build_beep(team, BeepPattern.HIT))
        self._send_colors()
        self._notify_health()
        self._set_status(f"Hit on Team {team}!", force=True)

        if state.hp == 0:
            self._game_over(now)

    # ─── GAME OVER ───────────────────────────────────────────────────

    def _game_over(self, now: int) -> None:
        self._phase = MatchPhase.COOLDOWN
        self._generation += 1
        self._game_over_at = now

        self._router.send_command(build_fire_mode(BROADCAST, FireMode.DISABLED))
        for team, state in self._teams.items():
            if state.hp == 0:
                self._router.send_command(build_beep(team, BeepPattern.DEFEAT))
        self._send_colors()

        survivors = [team for team, state in self._teams.items() if state.hp > 0]
        self._winner = survivors[0] if survivors else None
        logger.info("Game over, winner: %s", self._winner)
        self._set_status(f"GAME OVER! Winner: Team {self._winner}", force=True)

    def _advance(self, now: int) -> None:
        if self._phase is not MatchPhase.COOLDOWN or self._game_over_at is None:
            return
        if now - self._game_over_at >= self._settings.game_over_delay_ms:
            self._enter_idle()
            logger.info("Cooldown over, ready to arm")
            self._set_status("Ready. " + STATUS_IDLE, force=True)

    def _enter_idle(self) -> None:
        self._phase = MatchPhase.IDLE
        self._game_over_at = None
        for state in self._teams.values():
            state.reset_hit_tracking()

    # ─── FEEDBACK ────────────────────────────────────────────────────

    def _color_command(self, team: int) -> Command:
        color = health_color(self._teams[team].hp, self._settings.green_above_hp)
        return build_set_rgb(team, color)

    def _send_colors(self) -> None:
        for team in TEAMS:
            self._router.send_command(self._color_command(team))

    def _notify_health(self) -> None:
        for listener in self._listeners:
            for team, state in self._teams.items():
                try:
                    listener.on_health_update(team, state.hp)
                except Exception:
                    logger.exception("Error in health listener %r", listener)

    def _set_status(self, message: str, force: bool = False) -> None:
        sensors = " | ".join(
            f"T{team}: {'covered' if state.light_covered else 'uncovered'}"
            for team, state in self._teams.items()
        )
        text = f"{message} [{sensors}]"
        if text == self._status and not force:
            return
        self._status = text
        for listener in self._listeners:
            try:
                listener.on_status(text)
            except Exception:
                logger.exception("Error in status listener %r", listener)
