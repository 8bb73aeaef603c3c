import os
import random
import string
import tempfile
import dataclasses
from typing import (
    Optional,
    Tuple,
)

from docker.client import DockerClient

from .wait import (
    HEIGHT_POLICY,
    KEY_POLICY,
    READINESS_POLICY,
    RetryPolicy,
)


P2P_PORT = 26656
RPC_PORT = 26657
GRPC_PORT = 9090

DEFAULT_CHAIN_REPOSITORY = os.environ.get("IBCTEST_CHAIN_REPOSITORY", "ghcr.io/strangelove-ventures/heighliner/gaia")
DEFAULT_CHAIN_VERSION = os.environ.get("IBCTEST_CHAIN_VERSION", "v5.0.7")
DEFAULT_CHAIN_BIN = os.environ.get("IBCTEST_CHAIN_BIN", "gaiad")

DEFAULT_RELAYER_REPOSITORY = os.environ.get("IBCTEST_RELAYER_REPOSITORY", "ghcr.io/cosmos/relayer")
DEFAULT_RELAYER_VERSION = os.environ.get("IBCTEST_RELAYER_VERSION", "v1.0.0")
DEFAULT_RELAYER_BIN = os.environ.get("IBCTEST_RELAYER_BIN", "rly")


@dataclasses.dataclass(frozen=True)
class ContainerConfig:
    repository: str
    version: str
    bin: str
    ports: Tuple[str, ...] = ()

    @property
    def image(self) -> str:
        return '{}:{}'.format(self.repository, self.version)


GAIA_CONTAINER_CONFIG = ContainerConfig(
    repository=DEFAULT_CHAIN_REPOSITORY,
    version=DEFAULT_CHAIN_VERSION,
    bin=DEFAULT_CHAIN_BIN,
    ports=(
        "{}/tcp".format(P2P_PORT),
        "{}/tcp".format(RPC_PORT),
        "{}/tcp".format(GRPC_PORT),
        "1337/tcp",
        "1234/tcp",
    ),
)

RELAYER_CONTAINER_CONFIG = ContainerConfig(
    repository=DEFAULT_RELAYER_REPOSITORY,
    version=DEFAULT_RELAYER_VERSION,
    bin=DEFAULT_RELAYER_BIN,
)


@dataclasses.dataclass
class ChainOptions:
    warmup_delay: float = 5.0
    block_timeout: str = '3s'
    rpc_timeout: float = 10.0
    stop_timeout: int = 10
    command_timeout: Optional[float] = None
    genesis_account_amount: str = '1000000000000stake'
    gentx_amount: str = '100000000000stake'
    # Only validators get a key unless this is set
    create_keys_for_non_validators: bool = False
    keep_data: bool = False
    mount_dir: Optional[str] = None
    readiness_policy: RetryPolicy = READINESS_POLICY
    height_policy: RetryPolicy = HEIGHT_POLICY
    key_policy: RetryPolicy = KEY_POLICY


@dataclasses.dataclass
class CommandLineOptions:
    startup_timeout: int
    height_timeout: int
    command_timeout: int
    mount_dir: Optional[str]
    keep_data: bool
    random_seed: Optional[int]


@dataclasses.dataclass
class TestingContext:
    # Tell pytest to ignore this class (produces warnings otherwise)
    __test__ = False

    docker: DockerClient
    chain_options: ChainOptions
    random_generator: random.Random
    startup_timeout: int
    height_timeout: int


def random_string(random_generator: random.Random, length: int) -> str:
    return ''.join(random_generator.choice(string.ascii_lowercase) for m in range(length))


def make_tempdir(prefix: str, mount_dir: Optional[str] = None) -> str:
    return tempfile.mkdtemp(prefix=prefix, dir=mount_dir)
