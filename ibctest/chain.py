import re
import shutil
import logging
import functools
import contextlib
from typing import (
    Dict,
    Generator,
    List,
    Optional,
    Sequence,
)

from .common import (
    ChainOptions,
    ContainerConfig,
    GAIA_CONTAINER_CONFIG,
    make_tempdir,
)
from .concurrency import (
    Context,
    run_concurrently,
)
from .error import (
    InvalidInputError,
    OwnershipError,
    ResourceError,
)
from .genesis import (
    GenesisCoordinator,
    genesis_hashes,
    verify_genesis_hashes,
)
from .network import (
    NetworkConfig,
    NetworkLifecycleManager,
)
from .node import (
    Node,
    StatusClientFactory,
)
from .runtime import ContainerRuntime
from .status_client import StatusClient
from .topology import peer_string


# chain IDs end up in docker host names
CHAIN_ID_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9.-]*$')


class Chain:
    """One test chain: its nodes, its docker network and its host directory.

    The phases are meant to be called in order: ``initialize``,
    ``create_genesis``, ``start``, then ``wait_for_height`` as often as
    needed. Nodes must be added before any phase that fans out over them.
    """

    def __init__(
        self,
        *,
        chain_id: str,
        runtime: ContainerRuntime,
        options: Optional[ChainOptions] = None,
        container_config: ContainerConfig = GAIA_CONTAINER_CONFIG,
        network_config: Optional[NetworkConfig] = None,
        status_client_factory: StatusClientFactory = StatusClient,
    ) -> None:
        if not CHAIN_ID_PATTERN.match(chain_id):
            raise InvalidInputError(chain_id, 'chain id must be usable as a host name (letters, digits, "-" and ".")')
        self.chain_id = chain_id
        self.runtime = runtime
        self.options = options if options is not None else ChainOptions()
        self.container_config = container_config
        self.network_config = network_config if network_config is not None else NetworkConfig.for_chain(chain_id)
        self.network_manager = NetworkLifecycleManager(runtime, self.network_config)
        self.status_client_factory = status_client_factory
        self.root_dir = ''
        self.nodes: List[Node] = []
        self._next_node_index = 0

    def __repr__(self) -> str:
        return '<Chain(chain_id={}, nodes={})>'.format(repr(self.chain_id), len(self.nodes))

    @property
    def network_name(self) -> str:
        return self.network_config.name

    @property
    def labels(self) -> Dict[str, str]:
        return self.network_config.labels

    @property
    def validators(self) -> List[Node]:
        return [node for node in self.nodes if node.is_validator]

    def setup(self, context: Context) -> None:
        self.network_manager.reset(context)
        try:
            self.root_dir = make_tempdir('ibctest-{}-'.format(self.chain_id), self.options.mount_dir)
        except OSError as e:
            raise ResourceError('chain {} root directory'.format(self.chain_id), str(e)) from e
        logging.info("%s data directory %s", self.chain_id, self.root_dir)
        self.network_manager.create()

    def teardown(self, context: Context) -> None:
        try:
            self.network_manager.teardown(context)
        finally:
            for node in self.nodes:
                node.cleanup()
            if self.root_dir and not self.options.keep_data:
                try:
                    shutil.rmtree(self.root_dir)
                except OSError as e:
                    # containers may leave root owned files behind
                    logging.warning("Failed to remove %s data directory %s: %s", self.chain_id, self.root_dir, e)

    def add_node(self, container_config: Optional[ContainerConfig] = None, is_validator: bool = True) -> Node:
        if not self.root_dir:
            raise ResourceError('chain {}'.format(self.chain_id), 'root directory is not provisioned, call setup() first')
        node = Node(
            chain=self,
            index=self._next_node_index,
            container_config=container_config if container_config is not None else self.container_config,
            is_validator=is_validator,
            runtime=self.runtime,
            status_client_factory=self.status_client_factory,
        )
        node.provision_host_dir()
        self._next_node_index += 1
        self.nodes.append(node)
        logging.info("%s added %r", self.chain_id, node)
        return node

    def _owned(self, nodes: Optional[Sequence[Node]]) -> List[Node]:
        if nodes is None:
            return list(self.nodes)
        for node in nodes:
            if node.chain is not self or all(node is not own for own in self.nodes):
                raise OwnershipError(self.chain_id, node.name)
        return list(nodes)

    def _initialize_node(self, node: Node, context: Context) -> None:
        create_key = node.is_validator or self.options.create_keys_for_non_validators
        node.initialize(context, create_key)

    def initialize(self, context: Context, nodes: Optional[Sequence[Node]] = None) -> None:
        targets = self._owned(nodes)
        logging.info("%s initializing %d nodes", self.chain_id, len(targets))
        run_concurrently(context, [functools.partial(self._initialize_node, node) for node in targets])

    def create_genesis(self, context: Context, validators: Optional[Sequence[Node]] = None) -> str:
        """Build the genesis document and give every node the same copy.

        Returns the genesis content hash shared by all nodes.
        """
        candidates = list(self.validators if validators is None else validators)
        if not candidates:
            raise InvalidInputError(self.chain_id, 'cannot create genesis file without at least one validator')
        self._owned(candidates)
        for node in candidates:
            if not node.is_validator:
                raise InvalidInputError(self.chain_id, '{} is not a validator'.format(node.name))
        if len({node.name for node in candidates}) != len(candidates):
            raise InvalidInputError(self.chain_id, 'validators must be distinct')
        return GenesisCoordinator(self, candidates).run(context)

    def _start_node(self, node: Node, context: Context) -> None:
        node.set_config()
        node.start(context)

    def start(self, context: Context, nodes: Optional[Sequence[Node]] = None) -> None:
        targets = self._owned(nodes)
        for node in targets:
            logging.info("%s => starting container...", node.name)
        run_concurrently(context, [functools.partial(self._start_node, node) for node in targets])

    def _wait_for_node_height(self, height: int, node: Node, context: Context) -> None:
        node.wait_for_height(context, height)

    def wait_for_height(self, context: Context, height: int, nodes: Optional[Sequence[Node]] = None) -> None:
        targets = self._owned(nodes)
        logging.info("%s waiting for nodes to reach block height %d...", self.chain_id, height)
        run_concurrently(context, [functools.partial(self._wait_for_node_height, height, node) for node in targets])

    def peer_string(self) -> str:
        return peer_string(self.nodes)

    def genesis_hashes(self) -> Dict[str, str]:
        return genesis_hashes(self.nodes)

    def log_genesis_hashes(self) -> str:
        return verify_genesis_hashes(self.chain_id, self.nodes)


@contextlib.contextmanager
def provisioned_chain(
    context: Context,
    *,
    chain_id: str,
    runtime: ContainerRuntime,
    options: Optional[ChainOptions] = None,
    container_config: ContainerConfig = GAIA_CONTAINER_CONFIG,
    status_client_factory: StatusClientFactory = StatusClient,
) -> Generator[Chain, None, None]:
    chain = Chain(
        chain_id=chain_id,
        runtime=runtime,
        options=options,
        container_config=container_config,
        status_client_factory=status_client_factory,
    )
    # teardown gets a fresh context, the test context may already be cancelled
    try:
        chain.setup(context)
        yield chain
    except BaseException:
        try:
            chain.teardown(Context())
        except Exception as e:  # pylint: disable=broad-except
            # keep the error of the test body
            logging.error("Teardown of chain %s failed: %s", chain.chain_id, e)
        raise
    chain.teardown(Context())
