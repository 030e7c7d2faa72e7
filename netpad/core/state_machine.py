"""Deployment state machine.

The client never drives deployment status itself: the hosting side moves a
deployment through its states and the client observes them via polling.
This module decides which observations are accepted and keeps the observed
progress consistent with the terminal-state invariants.

Lifecycle::

    draft -> configuring -> provisioning -> deploying -> active
      \\__________\\______________\\______________\\-> failed
                                       (externally) -> paused
"""

from netpad.core.exceptions import UpstreamError
from netpad.models.deployment import (
    DeploymentProgress,
    DeploymentStatus,
    DeploymentStatusReport,
)
from netpad.utils.logging import get_logger

logger = get_logger(__name__)

# Forward order of the happy path; failed/paused sit outside it.
STATUS_ORDER: dict[DeploymentStatus, int] = {
    DeploymentStatus.DRAFT: 0,
    DeploymentStatus.CONFIGURING: 1,
    DeploymentStatus.PROVISIONING: 2,
    DeploymentStatus.DEPLOYING: 3,
    DeploymentStatus.ACTIVE: 4,
}

DEFAULT_FAILURE_MESSAGE = "Deployment failed"


def can_transition(current: DeploymentStatus, target: DeploymentStatus) -> bool:
    """Whether the lifecycle allows moving from ``current`` to ``target``.

    Non-failure moves only go forward. ``failed`` and ``paused`` are reachable
    from every non-terminal state, ``draft`` included: a deployment the host
    rejects on its first trigger, or whose bundle cannot be written, fails
    before it ever reaches ``configuring``.
    """
    if current.is_terminal:
        return False
    if target in (DeploymentStatus.FAILED, DeploymentStatus.PAUSED):
        return True
    return STATUS_ORDER[target] > STATUS_ORDER[current]


class DeploymentStateMachine:
    """Tracks the observed state of one deployment."""

    def __init__(
        self,
        deployment_id: str = "",
        status: DeploymentStatus = DeploymentStatus.DRAFT,
        status_message: str | None = None,
    ):
        self._progress = DeploymentProgress(
            deployment_id=deployment_id,
            status=status,
            status_message=status_message,
        )
        self._expected_url: str | None = None

    @property
    def progress(self) -> DeploymentProgress:
        """A copy of the current observed progress."""
        return self._progress.model_copy(deep=True)

    @property
    def status(self) -> DeploymentStatus:
        return self._progress.status

    @property
    def is_terminal(self) -> bool:
        return self._progress.status.is_terminal

    def bind(self, deployment_id: str, status_message: str | None = None) -> None:
        """Attach the identifier returned by the create call."""
        self._progress.deployment_id = deployment_id
        if status_message is not None:
            self._progress.status_message = status_message

    def expect(
        self,
        status: DeploymentStatus,
        status_message: str | None = None,
        deployed_url: str | None = None,
    ) -> None:
        """Record the state a client-driven call is expected to lead to.

        Injecting a bundle is expected to coincide with ``configuring`` and
        triggering a deploy with ``deploying``. A URL handed back by the
        trigger call is kept as the fallback for the ``active`` state.
        """
        if deployed_url:
            self._expected_url = deployed_url
        if status != self._progress.status and not can_transition(
            self._progress.status, status
        ):
            return
        self._progress.status = status
        if status_message is not None:
            self._progress.status_message = status_message

    def observe(self, report: DeploymentStatusReport) -> bool:
        """Apply a status report fetched from the deployments API.

        Returns True when the observed status changed. Reports that would
        move the deployment backwards are stale and ignored; nothing is
        applied once a terminal state has been observed.

        Raises:
            UpstreamError: If the host reports ``active`` without any URL.
        """
        current = self._progress.status
        target = report.status

        if current.is_terminal:
            logger.debug(
                "deployment.report_after_terminal",
                deployment_id=self._progress.deployment_id,
                status=current.value,
                reported=target.value,
            )
            return False

        if target != current and not can_transition(current, target):
            logger.debug(
                "deployment.stale_report",
                deployment_id=self._progress.deployment_id,
                status=current.value,
                reported=target.value,
            )
            return False

        progress = self._progress.model_copy(deep=True)
        progress.status = target
        if report.status_message is not None:
            progress.status_message = report.status_message
        if report.vercel_status is not None:
            progress.vercel_status = report.vercel_status

        if target == DeploymentStatus.ACTIVE:
            deployed_url = (
                report.deployed_url
                or (report.vercel_status.url if report.vercel_status else None)
                or self._expected_url
            )
            if not deployed_url:
                raise UpstreamError(
                    "Deployment reported active without a deployed URL",
                    details={"deployment_id": progress.deployment_id},
                )
            progress.deployed_url = deployed_url
            progress.error = None
        elif target == DeploymentStatus.FAILED:
            progress.error = (
                report.error or report.status_message or DEFAULT_FAILURE_MESSAGE
            )
            progress.deployed_url = None
        elif report.deployed_url:
            # Only keep a URL on the progress once it is live.
            self._expected_url = report.deployed_url

        self._progress = progress

        if target != current:
            logger.info(
                "deployment.status_changed",
                deployment_id=progress.deployment_id,
                previous=current.value,
                status=target.value,
            )
            return True
        return False
