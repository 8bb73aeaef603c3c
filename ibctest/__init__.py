from .chain import (
    Chain,
    provisioned_chain,
)
from .common import (
    ChainOptions,
    ContainerConfig,
    GAIA_CONTAINER_CONFIG,
    RELAYER_CONTAINER_CONFIG,
)
from .concurrency import (
    Context,
    run_concurrently,
)
from .docker_runtime import DockerRuntime
from .error import (
    ContextCancelledError,
    GenesisMismatchError,
    HeightTimeoutError,
    InvalidInputError,
    NodeAlreadyStartedError,
    NodeNotStartedError,
    OwnershipError,
    ProcessError,
    ResourceError,
    TransientQueryError,
    WaitTimeoutError,
)
from .network import (
    NetworkConfig,
    NetworkLifecycleManager,
)
from .node import Node
from .relayer import Relayer
from .status_client import (
    NodeStatus,
    StatusClient,
)
from .wait import RetryPolicy

__all__ = [
    'Chain',
    'ChainOptions',
    'ContainerConfig',
    'Context',
    'ContextCancelledError',
    'DockerRuntime',
    'GAIA_CONTAINER_CONFIG',
    'GenesisMismatchError',
    'HeightTimeoutError',
    'InvalidInputError',
    'NetworkConfig',
    'NetworkLifecycleManager',
    'Node',
    'NodeAlreadyStartedError',
    'NodeNotStartedError',
    'NodeStatus',
    'OwnershipError',
    'ProcessError',
    'RELAYER_CONTAINER_CONFIG',
    'Relayer',
    'ResourceError',
    'RetryPolicy',
    'StatusClient',
    'TransientQueryError',
    'WaitTimeoutError',
    'provisioned_chain',
    'run_concurrently',
]
