import os
import json
import contextlib
import logging
import posixpath
import threading
from logging import Logger
from threading import Event
from typing import (
    Any,
    Callable,
    Generator,
    Optional,
    TYPE_CHECKING,
)

from .common import (
    ChainOptions,
    ContainerConfig,
    RPC_PORT,
)
from .concurrency import Context
from .config import write_node_config
from .error import (
    NodeAlreadyStartedError,
    NodeNotStartedError,
    ProcessError,
    ResourceError,
)
from .keystore import (
    KEYRING_BACKEND,
    Key,
    KeyStore,
)
from .runtime import ContainerRuntime
from .status_client import (
    NodeStatus,
    StatusClient,
)
from .topology import make_peer_address
from .utils import (
    node_id_from_private_key,
    sha256_hex,
)
from .wait import (
    wait_for_height,
    wait_for_node_caught_up,
)

if TYPE_CHECKING:
    # pylint: disable=cyclic-import
    from .chain import Chain


VALIDATOR_KEY_NAME = 'validator'
RPC_PORT_ID = '{}/tcp'.format(RPC_PORT)
LOG_THREAD_JOIN_TIMEOUT = 5

StatusClientFactory = Callable[[str, str, float], StatusClient]


def make_node_name(chain_id: str, index: int) -> str:
    return 'node-{}-{}'.format(chain_id, index)


class Node:
    def __init__(
        self,
        *,
        chain: 'Chain',
        index: int,
        container_config: ContainerConfig,
        is_validator: bool,
        runtime: ContainerRuntime,
        status_client_factory: StatusClientFactory = StatusClient,
    ) -> None:
        self.chain = chain
        self.index = index
        self.container_config = container_config
        self.is_validator = is_validator
        self.runtime = runtime
        self.status_client_factory = status_client_factory
        self.name = make_node_name(chain.chain_id, index)
        self.container: Optional[Any] = None
        self.client: Optional[StatusClient] = None
        self.keystore = KeyStore(self, chain.options.key_policy)
        self.terminate_background_logging_event = threading.Event()
        self.background_logging: Optional[LoggingThread] = None

    def __repr__(self) -> str:
        return '<Node(name={}, validator={})>'.format(repr(self.name), self.is_validator)

    @property
    def options(self) -> ChainOptions:
        return self.chain.options

    @property
    def host_home_dir(self) -> str:
        """Host side of the home directory mounted into every container of
        this node."""
        return os.path.join(self.chain.root_dir, self.name)

    @property
    def home_dir(self) -> str:
        return posixpath.join('/home', self.container_config.bin)

    @property
    def config_dir(self) -> str:
        return os.path.join(self.host_home_dir, 'config')

    @property
    def genesis_file_path(self) -> str:
        return os.path.join(self.config_dir, 'genesis.json')

    @property
    def node_key_path(self) -> str:
        return os.path.join(self.config_dir, 'node_key.json')

    @property
    def config_file_path(self) -> str:
        return os.path.join(self.config_dir, 'config.toml')

    @property
    def gentx_dir(self) -> str:
        return os.path.join(self.config_dir, 'gentx')

    def gentx_file_path(self, node_id: str) -> str:
        return os.path.join(self.gentx_dir, 'gentx-{}.json'.format(node_id))

    @property
    def is_running(self) -> bool:
        return self.container is not None

    def provision_host_dir(self) -> None:
        try:
            os.makedirs(self.host_home_dir, mode=0o755, exist_ok=True)
        except OSError as e:
            raise ResourceError(self.host_home_dir, 'failed to create host home dir: {}'.format(e)) from e

    @contextlib.contextmanager
    def _command_context(self, context: Context) -> Generator[Context, None, None]:
        if self.options.command_timeout is None:
            yield context
            return
        command_context = context.child(self.options.command_timeout)
        try:
            yield command_context
        finally:
            command_context.close()

    def execute(self, context: Context, *args: str) -> str:
        command = (self.container_config.bin,) + args
        with self._command_context(context) as command_context:
            exit_code, output = self.runtime.run_and_wait(
                command_context,
                image=self.container_config.image,
                command=command,
                hostname=self.name,
                mounts={self.host_home_dir: self.home_dir},
                network=self.chain.network_name,
                labels=self.chain.labels,
            )
        if exit_code != 0:
            raise ProcessError(self.name, command, exit_code, output)
        return output

    def init_home_folder(self, context: Context) -> None:
        self.execute(context, 'init', self.name, '--chain-id', self.chain.chain_id, '--home', self.home_dir)

    def create_key(self, context: Context, name: str) -> None:
        self.execute(
            context,
            'keys', 'add', name,
            '--keyring-backend', KEYRING_BACKEND,
            '--output', 'json',
            '--home', self.home_dir,
        )

    def add_genesis_account(self, context: Context, address: str) -> None:
        self.execute(context, 'add-genesis-account', address, self.options.genesis_account_amount, '--home', self.home_dir)

    def gentx(self, context: Context, name: str) -> None:
        self.execute(
            context,
            'gentx', name, self.options.gentx_amount,
            '--keyring-backend', KEYRING_BACKEND,
            '--home', self.home_dir,
            '--chain-id', self.chain.chain_id,
        )

    def collect_gentxs(self, context: Context) -> None:
        self.execute(context, 'collect-gentxs', '--home', self.home_dir)

    def initialize(self, context: Context, create_key: bool) -> None:
        self.init_home_folder(context)
        if create_key:
            self.create_key(context, VALIDATOR_KEY_NAME)

    def get_key(self, context: Context, name: str = VALIDATOR_KEY_NAME) -> Key:
        return self.keystore.get_key(context, name)

    def create_genesis_tx(self, context: Context) -> None:
        key = self.get_key(context, VALIDATOR_KEY_NAME)
        self.add_genesis_account(context, key.address)
        self.gentx(context, VALIDATOR_KEY_NAME)

    def node_id(self) -> str:
        try:
            with open(self.node_key_path, encoding='utf-8') as f:
                node_key = json.load(f)
            return node_id_from_private_key(node_key['priv_key']['value'])
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise ResourceError(self.node_key_path, 'failed to retrieve node id: {}'.format(e)) from e

    def peer_address(self) -> str:
        return make_peer_address(self.node_id(), self.name)

    def set_config(self) -> None:
        peers = self.chain.peer_string()
        write_node_config(
            self.config_file_path,
            moniker=self.name,
            peers=peers,
            block_timeout=self.options.block_timeout,
        )

    def read_genesis(self) -> bytes:
        try:
            with open(self.genesis_file_path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise ResourceError(self.genesis_file_path, 'failed to read genesis file: {}'.format(e)) from e

    def write_genesis(self, genesis: bytes) -> None:
        try:
            os.makedirs(self.config_dir, exist_ok=True)
            with open(self.genesis_file_path, 'wb') as f:
                f.write(genesis)
        except OSError as e:
            raise ResourceError(self.genesis_file_path, 'failed to write genesis file: {}'.format(e)) from e

    def copy_genesis_from(self, other: 'Node') -> None:
        self.write_genesis(other.read_genesis())

    def genesis_hash(self) -> str:
        return sha256_hex(self.read_genesis())

    def start(self, context: Context) -> None:
        if self.container is not None:
            raise NodeAlreadyStartedError(self.name)

        self.container = self.runtime.run(
            image=self.container_config.image,
            command=(self.container_config.bin, 'start', '--home', self.home_dir),
            name=self.name,
            hostname=self.name,
            mounts={self.host_home_dir: self.home_dir},
            ports=self.container_config.ports,
            network=self.chain.network_name,
            labels=self.chain.labels,
        )
        try:
            self._start_background_logging()

            address = self.runtime.host_port_for(self.container, RPC_PORT_ID)
            if address is None:
                raise ResourceError('{} {}'.format(self.name, RPC_PORT_ID), 'rpc port is not published')
            logging.info("%s RPC => %s", self.name, address)
            self.client = self.status_client_factory(self.name, address, self.options.rpc_timeout)

            context.sleep(self.options.warmup_delay)
            wait_for_node_caught_up(context, self, self.options.readiness_policy)
        except Exception:
            logging.warning("%s failed to start, removing container", self.name)
            self.stop()
            raise

    def status(self, context: Context) -> NodeStatus:
        if self.client is None:
            raise NodeNotStartedError(self.name)
        return self.client.status(context)

    def wait_for_height(self, context: Context, height: int) -> None:
        wait_for_height(context, self, height, self.options.height_policy)

    def stop(self) -> None:
        if self.container is None:
            raise NodeNotStartedError(self.name)
        self.runtime.stop(self.container, self.options.stop_timeout)
        self.runtime.remove(self.container, force=True)
        self._stop_background_logging()
        self.container = None
        self.client = None

    def cleanup(self) -> None:
        self._stop_background_logging()
        self.container = None
        self.client = None

    def _start_background_logging(self) -> None:
        self.terminate_background_logging_event.clear()
        self.background_logging = LoggingThread(
            terminate_thread_event=self.terminate_background_logging_event,
            runtime=self.runtime,
            container=self.container,
            name=self.name,
            logger=logging.getLogger('peers'),
        )
        self.background_logging.start()

    def _stop_background_logging(self) -> None:
        if self.background_logging is None:
            return
        self.terminate_background_logging_event.set()
        self.background_logging.join(LOG_THREAD_JOIN_TIMEOUT)
        self.background_logging = None


class LoggingThread(threading.Thread):
    def __init__(self, terminate_thread_event: Event, runtime: ContainerRuntime, container: Any, name: str, logger: Logger) -> None:
        super().__init__(name='logs-{}'.format(name), daemon=True)
        self.terminate_thread_event = terminate_thread_event
        self.runtime = runtime
        self.container = container
        self.node_name = name
        self.logger = logger

    def run(self) -> None:
        containers_log_lines_generator = self.runtime.logs(self.container, follow=True)
        try:
            while True:
                if self.terminate_thread_event.is_set():
                    break
                line = next(containers_log_lines_generator)
                self.logger.info('{}: {}'.format(self.node_name, line.decode('utf-8').rstrip()))
        except StopIteration:
            pass
