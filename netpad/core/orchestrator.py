"""Deployment orchestrator.

Runs the three dependent calls that start a deployment, in strict order:

1. create   - register the deployment, returns its id
2. inject   - upload the bundle into the deployment's template
3. trigger  - ask the host to build and publish

Each step needs the previous one to have succeeded. The first failure aborts
the sequence and propagates unchanged; nothing already done is rolled back.
"""

from dataclasses import dataclass
from typing import Any

from netpad.core.exceptions import NetPadError
from netpad.core.poller import PollHandle, ProgressCallback, StatusPoller, notify
from netpad.core.state_machine import DeploymentStateMachine
from netpad.models.bundle import Bundle
from netpad.models.deployment import (
    DeploymentConfig,
    DeploymentProgress,
    DeploymentStatus,
    TriggerResult,
)
from netpad.services.client import DeploymentClient
from netpad.utils.logging import get_logger


@dataclass
class DeploymentContext:
    """Who is deploying what."""

    organization_id: str
    project_id: str
    user_id: str | None = None


@dataclass
class DeploymentLaunch:
    """Outcome of a completed orchestration sequence."""

    deployment_id: str
    trigger: TriggerResult
    machine: DeploymentStateMachine

    @property
    def progress(self) -> DeploymentProgress:
        return self.machine.progress


class DeploymentOrchestrator:
    """Sequences create, inject and trigger for one deployment at a time."""

    def __init__(
        self,
        client: DeploymentClient,
        poller: StatusPoller | None = None,
    ):
        self.client = client
        self.poller = poller or StatusPoller(client)
        self.logger = get_logger("orchestrator")

    async def run(
        self,
        context: DeploymentContext,
        config: DeploymentConfig,
        bundle: Bundle | dict[str, Any],
        on_progress: ProgressCallback | None = None,
    ) -> DeploymentLaunch:
        """Run create, inject and trigger.

        Args:
            context: Organization and project the deployment belongs to
            config: Deployment configuration; ids missing here come from context
            bundle: Bundle to inject, typed or raw JSON
            on_progress: Called with the observed progress after each step

        Returns:
            The launched deployment, ready to be polled

        Raises:
            ValidationError: Missing configuration or an invalid bundle
            ConflictError: The app name is already taken
            NotFoundError: The deployment vanished between steps
            UpstreamError: The host rejected the deployment
        """
        config = config.model_copy(
            update={
                "organization_id": config.organization_id or context.organization_id,
                "project_id": config.project_id or context.project_id,
            }
        )
        machine = DeploymentStateMachine(
            status_message="Creating deployment configuration..."
        )
        await notify(on_progress, machine.progress)

        step = "create"
        log = self.logger.bind(project_id=context.project_id, app_name=config.app_name)
        log.info("orchestrator.started")

        try:
            deployment_id = await self.client.create_deployment(config)
            machine.bind(deployment_id, "Deployment created, injecting bundle...")
            log = log.bind(deployment_id=deployment_id)
            log.info("orchestrator.create.completed")
            await notify(on_progress, machine.progress)

            step = "inject"
            machine.expect(DeploymentStatus.CONFIGURING, "Injecting application bundle...")
            await notify(on_progress, machine.progress)
            await self.client.inject_bundle(deployment_id, bundle)
            machine.expect(
                DeploymentStatus.CONFIGURING, "Bundle injected, starting deployment..."
            )
            log.info("orchestrator.inject.completed")
            await notify(on_progress, machine.progress)

            step = "trigger"
            trigger = await self.client.trigger_deploy(deployment_id)
            machine.expect(
                DeploymentStatus.DEPLOYING,
                trigger.status_message,
                deployed_url=trigger.deployed_url,
            )
            log.info("orchestrator.trigger.completed", message=trigger.status_message)
            await notify(on_progress, machine.progress)

        except NetPadError as e:
            log.error(
                "orchestrator.failed",
                step=step,
                error=e.message,
                error_type=type(e).__name__,
            )
            raise

        return DeploymentLaunch(deployment_id=deployment_id, trigger=trigger, machine=machine)

    async def launch(
        self,
        context: DeploymentContext,
        config: DeploymentConfig,
        bundle: Bundle | dict[str, Any],
        on_progress: ProgressCallback | None = None,
    ) -> PollHandle:
        """Run the sequence, then start polling the new deployment.

        The same ``on_progress`` callback keeps receiving updates from the
        poller until a terminal state is reached or the handle is cancelled.
        """
        launched = await self.run(context, config, bundle, on_progress)
        return self.poller.start(
            launched.deployment_id,
            machine=launched.machine,
            on_update=on_progress,
        )
