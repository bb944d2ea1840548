"""kopf handlers feeding DockerMachine events to the Reconciler.

The handlers stay thin: kopf delivers the events, holds the finalizer and
bounds concurrency, the Reconciler decides what to do. Everything they need
is reached through ``memo.agent``.
"""

import kopf

from capdock.agent.engine import Action, MachinePhase, Reconciler
from capdock.models.resources import API_VERSION, INFRASTRUCTURE_GROUP, DockerMachine


PLURAL = "dockermachines"

# Ready machines are looked at again this often, a vanished container is provisioned again
READY_RECHECK_INTERVAL = 300

# Handlers are registered here rather than on kopf's default registry
registry = kopf.OperatorRegistry()


async def reconcile_body(reconciler: Reconciler, body: kopf.Body, retry: int = 0) -> Action:
    """Reconcile the DockerMachine in ``body``.

    Wait states and failures become ``kopf.TemporaryError`` with the delay the
    Reconciler asked for, so kopf retries the handler later instead of
    marking it done.
    """
    docker_machine = DockerMachine.from_dict(dict(body))
    try:
        action = await reconciler.reconcile(docker_machine, retry)
    except Exception as e:
        action = reconciler.error_policy(docker_machine, e)
        raise kopf.TemporaryError(str(e), delay=action.requeue_after) from e

    settled = action.phase in (MachinePhase.READY, MachinePhase.DELETED)
    if not settled and action.requeue_after is not None:
        raise kopf.TemporaryError(f"DockerMachine is {action.phase.value}", delay=action.requeue_after)
    return action


@kopf.on.startup(registry=registry)
async def on_startup(settings: kopf.OperatorSettings, memo: kopf.Memo, **kwargs):
    """Connect the providers and fail fast when DockerMachines cannot be queried."""
    await memo.agent.initialize(settings)


@kopf.on.cleanup(registry=registry)
async def on_cleanup(memo: kopf.Memo, **kwargs):
    await memo.agent.close()


@kopf.on.resume(INFRASTRUCTURE_GROUP, API_VERSION, PLURAL, registry=registry)
@kopf.on.create(INFRASTRUCTURE_GROUP, API_VERSION, PLURAL, registry=registry)
@kopf.on.update(INFRASTRUCTURE_GROUP, API_VERSION, PLURAL, registry=registry)
async def on_apply(body: kopf.Body, retry: int, memo: kopf.Memo, **kwargs):
    """Provision the container of a live DockerMachine."""
    await reconcile_body(memo.agent.reconciler, body, retry)


@kopf.on.delete(INFRASTRUCTURE_GROUP, API_VERSION, PLURAL, registry=registry)
async def on_delete(body: kopf.Body, retry: int, memo: kopf.Memo, **kwargs):
    """Remove the container; kopf releases its finalizer once this returns."""
    await reconcile_body(memo.agent.reconciler, body, retry)


@kopf.timer(
    INFRASTRUCTURE_GROUP, API_VERSION, PLURAL,
    interval=READY_RECHECK_INTERVAL,
    initial_delay=READY_RECHECK_INTERVAL,
    registry=registry,
)
async def recheck_ready(body: kopf.Body, memo: kopf.Memo, **kwargs):
    """Apply Ready machines again at the steady-state interval."""
    docker_machine = DockerMachine.from_dict(dict(body))
    if docker_machine.being_deleted or not docker_machine.status.ready:
        return
    await reconcile_body(memo.agent.reconciler, body)
