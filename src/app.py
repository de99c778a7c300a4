"""
Kasina Session Application
==========================

Application object that builds the session core from a configuration
dictionary and drives it from an asyncio loop.

This module implements the KasinaSessionApp class which:
- Builds the key-value store from store_path (in memory when unset)
- Loads presence profiles, including overrides from profiles_dir
- Wires the session manager to the host's submission service
- Runs startup recovery, then ticks the active session at a fixed cadence
- Maps breath samples through the active session's profile
- Stops the active session and waits for its submission on shutdown

Classes:
    - KasinaSessionApp: Application orchestrator

Module: app
Version: 1.0.0
"""

import asyncio
import logging

from application.session import SessionManager
from clock import SystemClock
from config import default_app_config
from core.constants import PACKAGE_VERSION, TICK_INTERVAL_MS
from presence import map_sample
from profiles import DEFAULT_PROFILE_ID, PresenceProfileRegistry
from storage import JsonFileKeyValueStore, MemoryKeyValueStore

logger = logging.getLogger(__name__)


class KasinaSessionApp:
    """
    Application orchestrator for the kasina session core.

    Attributes:
        config: Application configuration (see config.default_app_config)
        clock: ClockSource shared by every component
        store: KeyValueStore holding timer settings, checkpoints and the retry queue
        profiles: PresenceProfileRegistry
        session_manager: SessionManager
        running: Application running flag

    Usage:
        >>> app = KasinaSessionApp(load_app_config(), submitter)
        >>> runner = asyncio.ensure_future(app.run())
        >>>
        >>> app.session_manager.start_session("blue", target_duration_seconds=600)
        >>> result = app.map_breath(BreathSample(0.6, app.clock.now_ms()))
        >>>
        >>> app.stop()
        >>> await runner
    """

    def __init__(self, app_config, submitter, clock=None, tick_interval_ms=TICK_INTERVAL_MS):
        """
        Initialize the application.

        Args:
            app_config: Configuration dictionary; missing keys use defaults
            submitter: SessionSubmissionService with async submit(record) -> bool
            clock: Optional ClockSource (default: SystemClock)
            tick_interval_ms: Cadence of timer ticks in run()

        Raises:
            ValueError: If the configuration or a profile override is invalid
        """
        self.config = dict(default_app_config(), **(app_config or {}))
        self.tick_interval_ms = tick_interval_ms
        self.running = False

        logger.info(f"[App] Initializing kasina session core v{PACKAGE_VERSION}")

        self.clock = clock or SystemClock()
        self.store = None
        self.profiles = None
        self.session_manager = None

        # Smoothed amplitude carried between breath samples
        self._smoothed_amplitude = 0.0

        self._initialize_storage()
        self._initialize_profiles()
        self._initialize_session(submitter)

        logger.info("[App] Initialization complete")

    def _initialize_storage(self):
        store_path = self.config['store_path']
        if store_path is None:
            logger.warning("[App] No store_path configured, sessions will not survive a restart")
            self.store = MemoryKeyValueStore()
        else:
            self.store = JsonFileKeyValueStore(store_path)
            logger.info(f"[App] Using session store {store_path}")

    def _initialize_profiles(self):
        self.profiles = PresenceProfileRegistry(profiles_dir=self.config['profiles_dir'])

    def _initialize_session(self, submitter):
        self.session_manager = SessionManager(
            self.clock, self.store, submitter, config=self.config
        )

    async def run(self, max_ticks=None):
        """
        Main application loop.

        Recovers an interrupted session and flushes the retry queue, then
        ticks the session until stop() is called.

        Args:
            max_ticks: Stop after this many ticks (None runs until stop())

        Returns:
            StartupReport from the session manager
        """
        logger.info("[App] Starting kasina session core")
        self.running = True

        try:
            report = await self.session_manager.startup()
            if report.recovered is not None:
                logger.info(f"[App] Recovered session {report.recovered.session_id}")

            ticks = 0
            while self.running:
                await asyncio.sleep(self.tick_interval_ms / 1000)
                self.session_manager.tick()

                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break

            return report

        except KeyboardInterrupt:
            logger.info("[App] Keyboard interrupt - shutting down")
        finally:
            await self._shutdown()

    def stop(self):
        """Ask run() to leave its loop after the current tick."""
        self.running = False

    def map_breath(self, sample, size_multiplier=1.0):
        """
        Map a breath sample with the profile of the active session.

        The default profile is used when no session is active.

        Args:
            sample: BreathSample
            size_multiplier: User size control

        Returns:
            PresenceResult
        """
        info = self.session_manager.get_session_info()
        profile_id = info.profile_type if info is not None else DEFAULT_PROFILE_ID

        result = map_sample(
            self.profiles.get(profile_id), sample, self._smoothed_amplitude, size_multiplier
        )
        self._smoothed_amplitude = result.smoothed_amplitude
        return result

    async def _shutdown(self):
        """
        Graceful application shutdown.

        Stops an active session and waits for pending submissions.
        """
        logger.info("[App] Shutting down kasina session core")
        self.running = False

        if self.session_manager.state.is_active():
            self.session_manager.stop_session()

        await self.session_manager.drain()
        logger.info("[App] Shutdown complete")

    def get_status(self):
        """
        Get current application status.

        Returns:
            Dictionary with status information
        """
        info = self.session_manager.get_session_info()
        return {
            "version": PACKAGE_VERSION,
            "running": self.running,
            "state": self.session_manager.state.value,
            "session_id": info.session_id if info is not None else None,
            "pending_retries": len(self.session_manager.retry_queue),
        }

    def __repr__(self):
        """String representation for logging."""
        return f"KasinaSessionApp(state={self.session_manager.state.value})"
