"""DockerMachine reconciliation engine."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from capdock.errors import (
    BootstrapSecretNotReady,
    CapdockError,
    ClusterNotFound,
    DockerClusterNotFound,
    MachineNotFound,
    WaitError,
)
from capdock.machine.association import Association
from capdock.models.config import CapdockConfig
from capdock.models.resources import DockerMachine
from capdock.providers.base import ContainerRuntime
from capdock.providers.kube import KubeResources


logger = logging.getLogger(__name__)


UNRESOLVED = (MachineNotFound, ClusterNotFound, DockerClusterNotFound)


class MachinePhase(str, Enum):
    """Where a DockerMachine stands in its lifecycle."""
    PENDING = "Pending"
    WAITING_FOR_INFRASTRUCTURE = "WaitingForInfrastructure"
    WAITING_FOR_BOOTSTRAP = "WaitingForBootstrap"
    PROVISIONING = "Provisioning"
    READY = "Ready"
    DELETING = "Deleting"
    DELETED = "Deleted"


@dataclass
class Action:
    """What the controller loop should do next with a machine.

    ``requeue_after`` is None when the machine only needs another look once
    it changes.
    """
    requeue_after: Optional[float]
    phase: Optional[MachinePhase] = None

    @classmethod
    def requeue(cls, seconds: float, phase: Optional[MachinePhase] = None) -> "Action":
        return cls(requeue_after=seconds, phase=phase)

    @classmethod
    def await_change(cls, phase: Optional[MachinePhase] = None) -> "Action":
        return cls(requeue_after=None, phase=phase)


def machine_key(docker_machine: DockerMachine) -> str:
    return f"{docker_machine.namespace}/{docker_machine.name}"


class Reconciler:
    """Finalizer-guarded state machine driving a DockerMachine's container."""

    def __init__(self, config: CapdockConfig, resources: KubeResources, runtime: ContainerRuntime):
        """Initialize reconciler."""
        self.config = config
        self.resources = resources
        self.runtime = runtime
        self.phases: Dict[str, MachinePhase] = {}

    async def reconcile(self, docker_machine: DockerMachine, retry: int = 0) -> Action:
        """Reconcile one DockerMachine.

        The operator framework holds the finalizer: it is in place before the
        first Apply, and it is released only after Cleanup returns DELETED, so a
        DockerMachine never disappears while its container is still running.
        ``retry`` counts the failed attempts of the current handler.
        """
        logger.info(f'Reconciling DockerMachine "{docker_machine.name}" in {docker_machine.namespace}')

        if docker_machine.being_deleted:
            action = await self.cleanup(docker_machine, retry)
        else:
            action = await self.apply(docker_machine)

        key = machine_key(docker_machine)
        if action.phase == MachinePhase.DELETED:
            self.phases.pop(key, None)
        elif action.phase is not None:
            self.phases[key] = action.phase
        return action

    async def _resolve(self, docker_machine: DockerMachine) -> Association:
        return await Association.resolve(docker_machine, self.resources, self.runtime, self.config)

    async def apply(self, docker_machine: DockerMachine) -> Action:
        """Drive a live DockerMachine towards a running, addressed container."""
        interval = self.config.agent.requeue_interval

        try:
            association = await self._resolve(docker_machine)
        except UNRESOLVED as e:
            logger.info(f"{machine_key(docker_machine)}: {e}")
            return Action.requeue(interval, MachinePhase.PENDING)

        if not association.cluster.status.infrastructure_ready:
            logger.info("Waiting for DockerCluster Controller to create cluster infrastructure")
            return Action.requeue(interval, MachinePhase.WAITING_FOR_INFRASTRUCTURE)

        association.validate_networks()

        if docker_machine.spec.provider_id:
            if await association.get_container() is not None:
                await self._mark_ready(docker_machine, association)
                return Action.requeue(interval, MachinePhase.READY)
            logger.warning(f"Container {association.container_name} is missing, provisioning it again")

        if not association.is_control_plane:
            try:
                association.prepare_bootstrap()
            except BootstrapSecretNotReady as e:
                logger.info(f"{machine_key(docker_machine)}: {e}")
                return Action.requeue(interval, MachinePhase.WAITING_FOR_BOOTSTRAP)

        logger.info(f"Provisioning container {association.container_name}")
        self.phases[machine_key(docker_machine)] = MachinePhase.PROVISIONING
        await association.create()
        await self._mark_ready(docker_machine, association)
        return Action.requeue(interval, MachinePhase.READY)

    async def _mark_ready(self, docker_machine: DockerMachine, association: Association) -> None:
        if docker_machine.spec.provider_id != association.provider_id:
            docker_machine = await self.resources.patch_docker_machine_spec(
                docker_machine, {"providerID": association.provider_id}
            )

        addresses = await association.set_machine_address()
        status = docker_machine.status
        patch = {}
        if not status.ready:
            patch["ready"] = True
        if addresses != status.addresses:
            patch["addresses"] = [address.model_dump() for address in addresses]
        if association.is_control_plane and not status.load_balancer_configured:
            patch["loadBalancerConfigured"] = True

        if patch:
            await self.resources.patch_docker_machine_status(docker_machine, patch)

    async def cleanup(self, docker_machine: DockerMachine, retry: int = 0) -> Action:
        """Remove the backing container.

        Returns DELETED once the finalizer may be released. When the owner chain
        can no longer be resolved, cleanup is retried and then given up after
        ``cleanup_max_attempts`` attempts so deletion is never blocked forever.
        """
        key = machine_key(docker_machine)
        try:
            association = await self._resolve(docker_machine)
        except UNRESOLVED as e:
            attempts = retry + 1
            max_attempts = self.config.agent.cleanup_max_attempts
            if attempts >= max_attempts:
                logger.warning(
                    f"{key}: {e}; giving up on container cleanup after {attempts} attempts"
                )
                return Action.await_change(MachinePhase.DELETED)
            logger.info(f"{key}: {e}; retrying cleanup ({attempts}/{max_attempts})")
            return Action.requeue(self.config.agent.requeue_interval, MachinePhase.DELETING)

        await association.delete()
        logger.info(f"Deleted container {association.container_name}")
        return Action.await_change(MachinePhase.DELETED)

    def error_policy(self, docker_machine: DockerMachine, error: Exception) -> Action:
        """Log a failed reconciliation and schedule the retry."""
        interval = self.config.agent.error_requeue_interval
        if isinstance(error, WaitError):
            logger.info(f"{machine_key(docker_machine)}: {error}")
        elif isinstance(error, CapdockError):
            logger.warning(f"reconcile failed for {machine_key(docker_machine)}: {error}")
        else:
            logger.error(f"reconcile failed for {machine_key(docker_machine)}: {error}", exc_info=True)
        return Action.requeue(interval)
