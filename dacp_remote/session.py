"""
Session lifecycle manager for one DACP remote device.

Owns the connect -> poll -> fail -> retry cycle:

    IDLE --service_up--> CONNECTING --ok--> POLLING --ok--> POLLING ...
    CONNECTING --fail--> logout, CONNECTING again (ImmediateRetry, not counted)
    POLLING --fail--> logout, WAITING_TO_RETRY --delay--> CONNECTING
    POLLING --fail, policy exhausted--> logout, HALTED

Every cycle carries a generation number. service_up, service_down and each
counted failure start a new generation; completions, timers and callbacks
from an older generation are dropped.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from .client import DacpClient
from .models import Endpoint, ReadyState, ServerInfo, SessionPhase
from .projection import get_status, now_playing, player_controls
from .projectors import NowPlayingProjector, PlayerControlsProjector, SpeakerProjector
from .retry import BoundedBackoffRetry, ImmediateRetry

_LOGGER = logging.getLogger(__name__)


class SessionLifecycleManager:
    """Keeps a long-poll session with one DACP server alive.

    The manager is the terminal error handler for its session: nothing it
    catches is raised to the caller. Failures are logged with the device
    name and either retried or, once the failure policy is exhausted, end in
    HALTED until the next service_up().
    """

    def __init__(
        self,
        client: DacpClient,
        name: str,
        pairing: str,
        now_playing_projector: NowPlayingProjector,
        player_controls_projector: PlayerControlsProjector,
        speaker_projector: SpeakerProjector | None = None,
        *,
        connect_policy: ImmediateRetry | None = None,
        failure_policy: BoundedBackoffRetry | None = None,
        reset_failures_on_success: bool = False,
        consecutive_failure_count: int = 0,
        on_connected: Callable[[ServerInfo], None] | None = None,
        on_give_up: Callable[[BaseException], None] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            client: DACP client, exclusively owned by this manager
            name: Device name used in log messages
            pairing: Pairing credential passed to login
            now_playing_projector: Receives NowPlayingState slices
            player_controls_projector: Receives PlayerControlState slices
            speaker_projector: Ticked after every poll (None = no volume)
            connect_policy: Retry policy for login/server-info failures
            failure_policy: Retry policy for poll and client failures
            reset_failures_on_success: Reset the failure count after every
                successful poll instead of keeping it for the process lifetime
            consecutive_failure_count: Initial failure count
            on_connected: Called with the server info after every login
            on_give_up: Called with the cause when the session halts
        """
        self._client = client
        self._name = name
        self._pairing = pairing
        self._now_playing = now_playing_projector
        self._player_controls = player_controls_projector
        self._speaker = speaker_projector

        self._connect_policy = connect_policy or ImmediateRetry()
        self._failure_policy = failure_policy or BoundedBackoffRetry()
        self._reset_failures_on_success = reset_failures_on_success
        self._on_connected = on_connected
        self._on_give_up = on_give_up

        # Session state
        self._endpoint: Endpoint | None = None
        self._failures = consecutive_failure_count
        self._phase = SessionPhase.IDLE
        self._generation = 0

        # Scheduling
        self._task: asyncio.Task | None = None
        self._retry_handle: asyncio.TimerHandle | None = None
        self._background_tasks: set[asyncio.Task] = set()

        self._unsubscribe: list[Callable[[], None]] = [
            client.on_ready_state_changed(self._handle_ready_state_changed),
            client.on_error(self._handle_client_error),
        ]

    @property
    def name(self) -> str:
        return self._name

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def remote_endpoint(self) -> Endpoint | None:
        return self._endpoint

    @property
    def consecutive_failure_count(self) -> int:
        return self._failures

    @property
    def polling_active(self) -> bool:
        """True while the update loop is scheduled to continue."""
        return self._phase is SessionPhase.POLLING

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    @property
    def retry_due(self) -> float | None:
        """Event loop time at which the pending reconnect fires."""
        return self._retry_handle.when() if self._retry_handle else None

    # ------------------------------------------------------------------
    # External triggers
    # ------------------------------------------------------------------

    def service_up(self, endpoint: Endpoint) -> asyncio.Task:
        """Record the discovered endpoint and start a fresh connect cycle.

        A running cycle or pending reconnect is superseded. Must be called
        from the event loop.
        """
        _LOGGER.info("[%s] DACP service up at %s", self._name, endpoint)
        self._endpoint = endpoint
        return self._start_cycle()

    async def service_down(self) -> None:
        """Stop the running cycle, drop any pending reconnect and log out."""
        _LOGGER.info("[%s] DACP service down", self._name)
        cancelled = self._invalidate()
        if self._phase is not SessionPhase.STOPPED:
            self._phase = SessionPhase.IDLE
        if cancelled is not None:
            await asyncio.wait([cancelled])
        await self._client.logout()

    async def shutdown(self) -> None:
        """Stop for good and detach from the client."""
        await self.service_down()
        self._phase = SessionPhase.STOPPED

        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()

        for task in list(self._background_tasks):
            task.cancel()
        if self._background_tasks:
            await asyncio.wait(list(self._background_tasks))

    async def record_failure(self, cause: BaseException) -> None:
        """Count a poll or client failure and reconnect later or give up.

        Shared by the update loop and the client's error callback so both
        draw on the same counter.
        """
        if self._phase in (SessionPhase.STOPPED, SessionPhase.HALTED):
            _LOGGER.debug("[%s] Session %s, ignoring failure: %r", self._name, self._phase.value, cause)
            return

        _LOGGER.error("[%s] Fatal error while talking to DACP server: %r", self._name, cause)

        self._invalidate()
        generation = self._generation

        self._failures += 1
        delay = self._failure_policy.next_delay(self._failures)

        await self._client.logout()

        if generation != self._generation:
            # service_up/service_down or another failure took over meanwhile
            return

        if delay is None:
            self._phase = SessionPhase.HALTED
            _LOGGER.error(
                "[%s] There were %d failures. Giving up.", self._name, self._failures
            )
            _LOGGER.error(
                "[%s] Restarting or rediscovering the device might fix the problem.",
                self._name,
            )
            if self._on_give_up is not None:
                self._on_give_up(cause)
            return

        if self._endpoint is None:
            _LOGGER.warning("[%s] No endpoint known yet, not scheduling a reconnect", self._name)
            self._phase = SessionPhase.IDLE
            return

        _LOGGER.warning(
            "[%s] Restarting DACP client in %.0f seconds (failure %d/%d)",
            self._name,
            delay,
            self._failures,
            self._failure_policy.max_failures,
        )
        self._phase = SessionPhase.WAITING_TO_RETRY
        self._retry_handle = asyncio.get_running_loop().call_later(
            delay, self._retry_fired, generation
        )

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _invalidate(self) -> asyncio.Task | None:
        """Start a new generation; cancel the running task and pending timer.

        Returns:
            The task that was cancelled, if any. The calling task itself is
            never cancelled.
        """
        self._generation += 1
        self._cancel_retry()

        task, self._task = self._task, None
        if task is None or task.done() or task is asyncio.current_task():
            return None
        task.cancel()
        return task

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def _start_cycle(self) -> asyncio.Task:
        self._invalidate()
        generation = self._generation
        self._phase = SessionPhase.CONNECTING
        self._task = asyncio.get_running_loop().create_task(self._run(generation))
        return self._task

    def _retry_fired(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        self._retry_handle = None
        _LOGGER.info("[%s] Reconnecting to %s", self._name, self._endpoint)
        self._start_cycle()

    async def _run(self, generation: int) -> None:
        try:
            if await self._connect(generation):
                await self._poll(generation)
        except Exception as err:
            if self._is_current(generation):
                await self.record_failure(err)

    async def _connect(self, generation: int) -> bool:
        """Log in and fetch server info, retrying immediately on failure.

        Returns:
            True once connected, False if the cycle became stale
        """
        while self._is_current(generation):
            try:
                await self._client.login(self._endpoint, self._pairing)
                server_info = await self._client.get_server_info()
            except Exception as err:
                if not self._is_current(generation):
                    return False
                _LOGGER.warning(
                    "[%s] Connection to DACP server failed: %s", self._name, err
                )
                await self._client.logout()
                await asyncio.sleep(self._connect_policy.next_delay())
                continue

            if not self._is_current(generation):
                return False

            _LOGGER.info("[%s] Connected to %s", self._name, server_info.name)
            if self._on_connected is not None:
                self._on_connected(server_info)
            return True

        return False

    async def _poll(self, generation: int) -> None:
        """Issue long polls back to back; one request in flight at a time.

        Exceptions propagate to _run, which records the failure.
        """
        self._phase = SessionPhase.POLLING
        while self._is_current(generation):
            snapshot = await self._client.get_update()
            if not self._is_current(generation):
                return
            self._apply_update(snapshot)

    def _apply_update(self, snapshot: Any) -> None:
        status = get_status(snapshot)
        if status is not None:
            now_playing_state = now_playing(status)
            player_control_state = player_controls(status)
            self._now_playing.update(now_playing_state)
            self._player_controls.update(player_control_state)

        if self._speaker is not None:
            self._speaker.tick()

        if self._reset_failures_on_success and self._failures:
            _LOGGER.debug("[%s] Poll succeeded, resetting failure count", self._name)
            self._failures = 0

    # ------------------------------------------------------------------
    # Client callbacks
    # ------------------------------------------------------------------

    def _handle_ready_state_changed(self, state: ReadyState) -> None:
        _LOGGER.info("[%s] DACP client %s", self._name, state.value)

    def _handle_client_error(self, error: Exception) -> None:
        if self._phase in (SessionPhase.STOPPED, SessionPhase.HALTED):
            return
        task = asyncio.get_running_loop().create_task(self.record_failure(error))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
