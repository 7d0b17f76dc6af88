"""ForwarderService — wires up the pipeline and runs it until shutdown."""

from __future__ import annotations

import asyncio
import signal
import time
from datetime import timedelta

import structlog
import uvicorn

from .config import ServiceConfig
from .control import create_control_app
from .forwarder import EventForwarder
from .graph_provider import GraphMailboxProvider
from .interface import MailboxProvider, TargetStore
from .logging import setup_logging
from .models import ManualTestResult, ServiceStatus
from .pause import PauseGate
from .target import EnvTargetStore
from .watcher import InboxWatcher

logger = structlog.get_logger()


class ForwarderService:
    """Owns one pipeline instance: provider, pause gate, forwarder, watcher.

    ``run()`` starts the following concurrently via
    :class:`asyncio.TaskGroup`:

    * The inbox watcher
    * The FastAPI control server (health probes, pause/resume, manual test)

    The :class:`PauseGate` is created here and shared by reference with the
    watcher (reader) and the control API (the only writer).
    """

    def __init__(
        self,
        config: ServiceConfig,
        *,
        provider: MailboxProvider | None = None,
        target_store: TargetStore | None = None,
    ) -> None:
        self.config = config
        self.status: ServiceStatus = ServiceStatus.STARTING
        self.start_time: float = time.monotonic()

        fwd_config = config.forwarder
        self.provider = provider or GraphMailboxProvider(config.graph)
        self.pause_gate = PauseGate(timedelta(minutes=fwd_config.pause_minutes))
        self.forwarder = EventForwarder(self.provider, target_store or EnvTargetStore(), fwd_config)
        self.watcher = InboxWatcher(
            self.provider,
            self.pause_gate,
            self.forwarder,
            quiescence_seconds=fwd_config.quiescence_seconds,
        )
        self._shutdown_event = asyncio.Event()

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    async def run_manual_test(self) -> ManualTestResult:
        result = await self.forwarder.run_manual_test()
        logger.info("manual_test_completed", ok=result.ok, outcome=result.outcome, target=result.target)
        return result

    async def health_details(self) -> dict[str, object]:
        return {
            "watcher": self.watcher.stats(),
            "provider": await self.provider.health_check(),
        }

    # ------------------------------------------------------------------
    # Watcher
    # ------------------------------------------------------------------

    async def _run_watcher(self) -> None:
        """Watch the inbox until shutdown; a failed subscription degrades the service."""
        self.status = ServiceStatus.RUNNING
        watch_task = asyncio.create_task(self.watcher.watch())
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())
        try:
            done, _ = await asyncio.wait(
                {watch_task, shutdown_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if watch_task in done:
                # Surfaces the subscription error, if any.
                watch_task.result()
                logger.warning("inbox_watch_ended")
        except Exception:
            self.status = ServiceStatus.DEGRADED
            logger.exception("inbox_watch_error", service=self.config.name)
            raise
        finally:
            for task in (watch_task, shutdown_task):
                task.cancel()
            await asyncio.gather(watch_task, shutdown_task, return_exceptions=True)
            self._shutdown_event.set()

    # ------------------------------------------------------------------
    # Control server
    # ------------------------------------------------------------------

    async def _run_control_server(self) -> None:
        """Start the FastAPI control server and shut it down on signal."""
        app = create_control_app(self)
        config = uvicorn.Config(
            app,
            host=self.config.control_host,
            port=self.config.control_port,
            log_level="warning",
        )
        server = uvicorn.Server(config)

        serve_task = asyncio.create_task(server.serve())
        await self._shutdown_event.wait()
        server.should_exit = True
        await serve_task

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def _handle(sig: signal.Signals) -> None:
            logger.info("shutdown_signal_received", signal=sig.name)
            self._shutdown_event.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, _handle, sig)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Start all subsystems and run until shutdown.

        This is the single entry point::

            asyncio.run(service.run())
        """
        setup_logging(json=self.config.log_json, level=self.config.log_level, service=self.config.name)
        self._install_signal_handlers()
        self.start_time = time.monotonic()

        logger.info("service_starting", service=self.config.name)

        await self.provider.start()

        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(self._run_watcher())
                tg.create_task(self._run_control_server())
        except* Exception:
            logger.exception("service_task_group_error", service=self.config.name)
        finally:
            self.status = ServiceStatus.STOPPING
            await self.provider.stop()
            self.status = ServiceStatus.STOPPED
            logger.info("service_stopped", service=self.config.name)
