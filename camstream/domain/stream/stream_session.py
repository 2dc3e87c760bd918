"""Transcoder session: owns the external transcoding process of one camera."""

import asyncio
import os
import signal
from collections.abc import Iterable, Mapping
from typing import Optional

from loguru import logger

from camstream.schemas import Camera, StreamState
from camstream.services.broadcaster import Broadcaster
from camstream.services.session_limiter import SessionLimiter
from camstream.services.settings_store import SettingsStore

from .output_relay import OutputRelay
from .stream_models import StreamStatus
from .stream_options import StreamOptions
from .stream_state_machine import StreamStateMachine

# Exit code the transcoder reports on failure
FAILURE_EXIT_CODE = 1

DEFAULT_RESTART_DELAY = 1.5


def _signal_name(returncode: int | None) -> str | None:
    if returncode is None or returncode >= 0:
        return None
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return f"signal {-returncode}"


class StreamSession:
    """Runtime pairing of one camera with at most one transcoder process.

    Operations are serialized per session with an asyncio lock. None of them
    raise for expected failures (admission denied, invalid source, spawn
    failure): those are logged and leave the session IDLE.

    The admission slot obtained by ``start()`` is returned exactly once, when
    the process exit has been observed (or immediately if the spawn fails).
    """

    def __init__(
        self,
        camera: Camera,
        *,
        session_limiter: SessionLimiter,
        broadcaster: Broadcaster,
        settings_store: Optional[SettingsStore] = None,
        video_processor: str = "ffmpeg",
        restart_delay: float = DEFAULT_RESTART_DELAY,
    ):
        logger.debug("[{}] Initializing camera stream", camera.name)

        self.camera_name = camera.name
        self.debug = camera.video_config.debug
        self.stream_options = StreamOptions.from_camera_config(camera.video_config)

        self.session_limiter = session_limiter
        self.settings_store = settings_store
        self.video_processor = video_processor
        self.restart_delay = restart_delay

        self._relay = OutputRelay(self.camera_name, broadcaster, debug=self.debug)
        self._state = StreamState.IDLE
        self._process: Optional[asyncio.subprocess.Process] = None
        self._exit_task: Optional[asyncio.Task] = None
        self._restart_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def restart_pending(self) -> bool:
        return self._restart_task is not None and not self._restart_task.done()

    def _set_state(self, new_state: StreamState) -> None:
        if not StreamStateMachine.can_transition(self._state, new_state):
            raise RuntimeError(f"Invalid stream state transition: {self._state} -> {new_state}")

        logger.debug("[{}] Stream state {} -> {}", self.camera_name, self._state, new_state)
        self._state = new_state

    async def configure_stream_options(self) -> None:
        """Apply the persisted settings record of this camera, if there is one."""
        if self.settings_store is None:
            return

        setting = await self.settings_store.get_camera_setting(self.camera_name)
        if setting is None:
            logger.debug("[{}] No stored stream settings", self.camera_name)
            return

        self.stream_options.apply_camera_setting(setting)
        logger.debug("[{}] Applied stored stream settings: {}", self.camera_name, setting.model_dump())

    async def start(self) -> bool:
        """Spawn the transcoder if IDLE and a slot is granted.

        Returns:
            True if a new process was spawned
        """
        async with self._lock:
            started = await self._start_locked()
            if started:
                # An explicit start supersedes a restart that is still waiting
                self._cancel_pending_restart()
            return started

    async def _start_locked(self) -> bool:
        if self._closed:
            logger.debug("[{}] Stream session closed, not starting", self.camera_name)
            return False

        if self._state != StreamState.IDLE:
            logger.debug("[{}] Stream already {}, start skipped", self.camera_name, self._state)
            return False

        if not await self.session_limiter.try_acquire():
            logger.error("[{}] Not allowed to start stream. Session limit exceeded!", self.camera_name)
            return False

        args = self.stream_options.build_args()
        logger.debug("[{}] Stream command: {} {}", self.camera_name, self.video_processor, " ".join(args))

        try:
            process = await asyncio.create_subprocess_exec(
                self.video_processor,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=os.environ.copy(),
            )
        except (OSError, ValueError) as e:
            logger.error("[{}] Failed to spawn {}: {}", self.camera_name, self.video_processor, e)
            await self.session_limiter.release()
            return False

        self._process = process
        self._set_state(StreamState.RUNNING)
        self._idle.clear()

        relay_tasks = self._relay.start(process.stdout, process.stderr)
        self._exit_task = asyncio.create_task(
            self._watch_exit(process, relay_tasks), name=f"stream-exit:{self.camera_name}"
        )

        logger.info("[{}] Stream started (pid={})", self.camera_name, process.pid)
        return True

    async def _watch_exit(self, process: asyncio.subprocess.Process, relay_tasks: list[asyncio.Task]) -> None:
        returncode = await process.wait()
        # Everything the process wrote is relayed before the session goes IDLE
        await asyncio.gather(*relay_tasks)

        if returncode == FAILURE_EXIT_CODE:
            logger.error(
                "[{}] Stream exited with error! (code={}, signal={})",
                self.camera_name, returncode, _signal_name(returncode)
            )
        else:
            logger.debug(
                "[{}] Stream exit (expected) (code={}, signal={})",
                self.camera_name, returncode, _signal_name(returncode)
            )

        async with self._lock:
            self._process = None
            self._exit_task = None
            self._set_state(StreamState.IDLE)
            try:
                await self.session_limiter.release()
            except Exception as e:
                logger.error("[{}] Failed to release session slot: {}", self.camera_name, e)
            finally:
                self._idle.set()

    async def stop(self) -> bool:
        """Signal the process to terminate and drop any pending restart.

        The session goes IDLE once the process exits.

        Returns:
            True if a termination signal was sent or a pending restart was cancelled
        """
        async with self._lock:
            cancelled = self._cancel_pending_restart()
            return self._stop_locked() or cancelled

    def _stop_locked(self, sig: int = signal.SIGTERM) -> bool:
        if self._process is None:
            return False

        logger.debug("[{}] Stopping stream..", self.camera_name)
        try:
            self._process.send_signal(sig)
        except ProcessLookupError:
            logger.debug("[{}] Stream process already exited", self.camera_name)

        if self._state == StreamState.RUNNING:
            self._set_state(StreamState.STOPPING)
        return True

    async def restart(self) -> bool:
        """Stop and, after `restart_delay`, start again; plain start when IDLE.

        Returns:
            True if a process was spawned or a deferred start was scheduled
        """
        async with self._lock:
            self._cancel_pending_restart()

            if self._process is None:
                return await self._start_locked()

            stopped_exit = self._exit_task
            self._stop_locked()
            self._restart_task = asyncio.create_task(
                self._deferred_start(stopped_exit), name=f"stream-restart:{self.camera_name}"
            )
            return True

    async def _deferred_start(self, stopped_exit: Optional[asyncio.Task]) -> None:
        await asyncio.sleep(self.restart_delay)
        # A process that outlives the delay keeps the session busy until it exits.
        # asyncio.wait leaves the exit watcher running if this task is cancelled.
        if stopped_exit is not None:
            await asyncio.wait({stopped_exit})
        self._restart_task = None
        await self.start()

    def _cancel_pending_restart(self) -> bool:
        pending = self._restart_task is not None and not self._restart_task.done()
        if pending:
            logger.debug("[{}] Cancelling pending restart", self.camera_name)
            self._restart_task.cancel()
        self._restart_task = None
        return pending

    async def close(self) -> None:
        """Tear down for a removed camera: no pending restart, process signalled."""
        async with self._lock:
            self._closed = True
            self._cancel_pending_restart()
            self._stop_locked()

    async def kill(self) -> bool:
        async with self._lock:
            return self._stop_locked(signal.SIGKILL)

    async def wait_stopped(self) -> None:
        await self._idle.wait()

    def set_stream_source(self, source: str) -> bool:
        """Replace the input specification; applied on the next start."""
        if not self.stream_options.set_source(source):
            logger.warning("[{}] Source {} is not valid, skipping", self.camera_name, source)
            return False

        logger.debug("[{}] Stream source set to {}", self.camera_name, source)
        return True

    def set_stream_options(self, options: Mapping[str, object]) -> None:
        self.stream_options.set_options(options)
        logger.debug("[{}] Stream options set: {}", self.camera_name, dict(options))

    def del_stream_options(self, flags: Iterable[str]) -> None:
        flags = list(flags)
        self.stream_options.delete_options(flags)
        logger.debug("[{}] Stream options removed: {}", self.camera_name, flags)

    def status(self) -> StreamStatus:
        return StreamStatus(
            camera_name=self.camera_name,
            state=self._state,
            pid=self.pid,
            source=self.stream_options.source,
            options=dict(self.stream_options.flags),
            args=self.stream_options.build_args(),
            restart_pending=self.restart_pending,
        )
