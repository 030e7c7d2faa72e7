"""Deployment status poller.

Each poll runs as its own asyncio task scoped to one deployment id. The task
fetches the status, feeds it to the deployment's state machine and sleeps a
fixed interval, until a terminal state is observed or the handle is
cancelled. Ticks are strictly serialized: the next sleep only starts once
the previous request has resolved.
"""

import asyncio
import inspect
from typing import Awaitable, Callable

from netpad.config import settings
from netpad.core.events import EventBus
from netpad.core.exceptions import (
    DeploymentFailedError,
    NetPadError,
    NotFoundError,
    UpstreamError,
)
from netpad.core.state_machine import DeploymentStateMachine
from netpad.models.deployment import (
    DeploymentProgress,
    DeploymentStatus,
    DeploymentStatusReport,
)
from netpad.services.client import DeploymentClient
from netpad.utils.logging import get_logger

ProgressCallback = Callable[[DeploymentProgress], Awaitable[None] | None]


async def notify(callback: ProgressCallback | None, progress: DeploymentProgress) -> None:
    """Invoke a sync or async progress callback."""
    if callback is None:
        return
    result = callback(progress)
    if inspect.isawaitable(result):
        await result


class CancellationToken:
    """One-shot cancellation flag shared by a handle and its task."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Set the token. Returns False if it was already set."""
        if self._event.is_set():
            return False
        self._event.set()
        return True


class PollHandle:
    """Handle to a running status poll.

    ``cancel()`` may be called any number of times, from anywhere, including
    after the poll already stopped on its own.
    """

    def __init__(self, deployment_id: str, machine: DeploymentStateMachine):
        self.deployment_id = deployment_id
        self.error: NetPadError | None = None
        self.ticks = 0
        self._machine = machine
        self._token = CancellationToken()
        self._task: asyncio.Task[None] | None = None

    @property
    def progress(self) -> DeploymentProgress:
        return self._machine.progress

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def cancel(self) -> None:
        """Stop polling and abort any in-flight status request."""
        self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self, raise_error: bool = False) -> DeploymentProgress:
        """Wait for polling to stop and return the last observed progress.

        Args:
            raise_error: Raise the error that stopped the poll, if any.
        """
        if self._task is not None:
            await asyncio.wait([self._task])
            if not self._task.cancelled() and self._task.exception() is not None:
                raise self._task.exception()
        if raise_error and self.error is not None:
            raise self.error
        return self.progress


class StatusPoller:
    """Starts and owns status polls, at most one per deployment id."""

    def __init__(
        self,
        client: DeploymentClient,
        *,
        interval: float | None = None,
        max_consecutive_failures: int | None = None,
        events: EventBus | None = None,
    ):
        self.client = client
        self.interval = settings.poll_interval_seconds if interval is None else interval
        self.max_consecutive_failures = (
            max_consecutive_failures
            if max_consecutive_failures is not None
            else settings.poll_max_consecutive_failures
        )
        self.events = events
        self.logger = get_logger("poller")
        self._handles: dict[str, PollHandle] = {}

    async def __aenter__(self) -> "StatusPoller":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def start(
        self,
        deployment_id: str,
        *,
        machine: DeploymentStateMachine | None = None,
        status: DeploymentStatus = DeploymentStatus.DRAFT,
        on_update: ProgressCallback | None = None,
    ) -> PollHandle:
        """Start polling a deployment and return the handle.

        If a poll for this deployment is already running its handle is
        returned instead of starting a second one.
        """
        existing = self._handles.get(deployment_id)
        if existing is not None and not existing.done:
            self.logger.debug("poller.already_running", deployment_id=deployment_id)
            return existing

        if machine is None:
            machine = DeploymentStateMachine(deployment_id, status=status)

        handle = PollHandle(deployment_id, machine)
        handle._task = asyncio.create_task(
            self._run(handle, on_update), name=f"poll-{deployment_id}"
        )
        self._handles[deployment_id] = handle
        return handle

    def get(self, deployment_id: str) -> PollHandle | None:
        return self._handles.get(deployment_id)

    @property
    def active_ids(self) -> list[str]:
        return [d for d, h in self._handles.items() if not h.done]

    def cancel(self, deployment_id: str) -> None:
        handle = self._handles.pop(deployment_id, None)
        if handle is not None:
            handle.cancel()

    async def close(self) -> None:
        """Cancel every poll and wait for the tasks to finish."""
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.cancel()
        for handle in handles:
            await handle.wait()

    async def _run(self, handle: PollHandle, on_update: ProgressCallback | None) -> None:
        log = self.logger.bind(deployment_id=handle.deployment_id)
        log.info("poller.started", interval=self.interval)
        failures = 0

        try:
            while not handle.cancelled:
                handle.ticks += 1
                try:
                    report = await self.client.get_status(handle.deployment_id)
                except NotFoundError as e:
                    handle.error = e
                    log.warning("poller.deployment_missing", error=e.message)
                    return
                except NetPadError as e:
                    failures += 1
                    log.warning(
                        "poller.tick_failed",
                        error=e.message,
                        consecutive_failures=failures,
                    )
                    if (
                        self.max_consecutive_failures is not None
                        and failures >= self.max_consecutive_failures
                    ):
                        handle.error = e
                        log.error("poller.gave_up", consecutive_failures=failures)
                        return
                else:
                    failures = 0
                    # The owning scope may have gone away while the request was in flight.
                    if handle.cancelled:
                        return
                    if await self._apply(handle, report, on_update):
                        return

                await asyncio.sleep(self.interval)
        except asyncio.CancelledError:
            log.info("poller.cancelled", ticks=handle.ticks)
            raise
        finally:
            if self._handles.get(handle.deployment_id) is handle and handle.cancelled:
                self._handles.pop(handle.deployment_id, None)

    async def _apply(
        self,
        handle: PollHandle,
        report: DeploymentStatusReport,
        on_update: ProgressCallback | None,
    ) -> bool:
        """Apply one status report. Returns True when polling should stop."""
        log = self.logger.bind(deployment_id=handle.deployment_id)
        try:
            changed = handle._machine.observe(report)
        except UpstreamError as e:
            handle.error = e
            log.error("poller.invalid_terminal_report", error=e.message)
            return True

        progress = handle.progress
        await notify(on_update, progress)

        if changed and self.events is not None:
            await self.events.publish_status_changed(
                handle.deployment_id, progress.status.value, progress.status_message
            )

        if not progress.is_terminal:
            return False

        if progress.status == DeploymentStatus.FAILED:
            handle.error = DeploymentFailedError(handle.deployment_id, progress.error or "")
            if self.events is not None:
                await self.events.publish_error(handle.deployment_id, progress.error or "")
        elif progress.status == DeploymentStatus.ACTIVE and self.events is not None:
            await self.events.publish_deployment_complete(
                handle.deployment_id, progress.deployed_url or ""
            )

        log.info(
            "poller.stopped",
            status=progress.status.value,
            ticks=handle.ticks,
            deployed_url=progress.deployed_url,
        )
        return True
