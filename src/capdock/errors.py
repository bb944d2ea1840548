"""Error taxonomy for capdock.

Wait-state errors are expected while the cluster is still converging and are
turned into a quiet requeue by the reconciler. Everything else is logged and
retried with the error backoff.
"""


class CapdockError(Exception):
    """Base class for all capdock errors."""


class WaitError(CapdockError):
    """A dependency is not ready yet; retrying later is expected to help."""


class MachineNotFound(WaitError):
    """The owning Machine is not set or no longer exists."""

    def __init__(self, message: str = "Owner Machine not found"):
        super().__init__(message)


class ClusterNotFound(WaitError):
    """The Machine is not associated with an existing Cluster."""

    def __init__(self, message: str = "Cluster not found"):
        super().__init__(message)


class DockerClusterNotFound(WaitError):
    """The Cluster's infrastructure reference is not resolvable yet."""

    def __init__(self, message: str = "DockerCluster is not available yet"):
        super().__init__(message)


class BootstrapSecretNotReady(WaitError):
    """The owning Machine has no bootstrap data secret yet."""

    def __init__(self, message: str = "Bootstrap data secret is not available yet"):
        super().__init__(message)


class InvalidAddressError(CapdockError, ValueError):
    """A CIDR or address string could not be parsed."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"IP family unknown: {address!r}")


class CollaboratorError(CapdockError):
    """A call to the container runtime or the Kubernetes API failed."""

    def __init__(self, operation: str, message: str = ""):
        self.operation = operation
        detail = f": {message}" if message else ""
        super().__init__(f"Failed to {operation}{detail}")


class ContainerRuntimeError(CollaboratorError):
    """Container runtime transport failure."""


class ContainerCreateError(ContainerRuntimeError):
    """Container could not be created or started."""


class ContainerRemoveError(ContainerRuntimeError):
    """Container could not be removed."""


class PortAllocationError(ContainerCreateError):
    """The reserved host port was taken before the container could bind it."""

    def __init__(self, operation: str, host_port: int, message: str = ""):
        self.host_port = host_port
        super().__init__(operation, message)


class ResourceApiError(CollaboratorError):
    """Kubernetes API failure other than not-found."""
