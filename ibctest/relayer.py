import os
import json
import logging
import posixpath
from typing import (
    Any,
    Dict,
    Tuple,
)

from .common import (
    ContainerConfig,
    RELAYER_CONTAINER_CONFIG,
)
from .concurrency import Context
from .error import (
    NodeNotStartedError,
    ProcessError,
    ResourceError,
    TransientQueryError,
)
from .keystore import Key
from .node import Node
from .runtime import ContainerRuntime
from .wait import (
    KEY_POLICY,
    RetryPolicy,
    wait_for_key,
)

RELAYER_NAME = 'relayer'


class RelayerKeyStore:
    """Keys the relayer holds for one chain."""

    def __init__(self, relayer: 'Relayer', chain_id: str) -> None:
        self.relayer = relayer
        self.chain_id = chain_id

    @property
    def owner(self) -> str:
        return '{}/{}'.format(RELAYER_NAME, self.chain_id)

    def lookup(self, context: Context, name: str) -> Key:
        try:
            output = self.relayer.execute(context, 'keys', 'show', self.chain_id, name, '--home', self.relayer.home_dir)
        except ProcessError as e:
            raise TransientQueryError(self.owner, 'key {} not available: exit code {}'.format(name, e.exit_code))
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        if not lines:
            raise TransientQueryError(self.owner, 'empty output for key {}'.format(name))
        return Key(name=name, address=lines[-1])


class Relayer:
    """Configures an IBC relayer between two running chains.

    Every relayer command runs in a throw-away container on the host network
    so that the published RPC ports of both chains are reachable.
    """

    def __init__(
        self,
        *,
        runtime: ContainerRuntime,
        root_dir: str,
        config: ContainerConfig = RELAYER_CONTAINER_CONFIG,
        account_prefix: str = 'cosmos',
        gas_adjustment: float = 1.5,
        gas_prices: str = '0.001umuon',
        trusting_period: str = '10m',
        key_policy: RetryPolicy = KEY_POLICY,
    ) -> None:
        self.runtime = runtime
        self.root_dir = root_dir
        self.config = config
        self.account_prefix = account_prefix
        self.gas_adjustment = gas_adjustment
        self.gas_prices = gas_prices
        self.trusting_period = trusting_period
        self.key_policy = key_policy

    def __repr__(self) -> str:
        return '<Relayer({})>'.format(self.config.image)

    @property
    def host_home_dir(self) -> str:
        return os.path.join(self.root_dir, RELAYER_NAME)

    @property
    def home_dir(self) -> str:
        return posixpath.join('/root', '.relayer')

    @staticmethod
    def key_name(chain_id: str) -> str:
        return '{}-key'.format(chain_id)

    def execute(self, context: Context, *args: str) -> str:
        command = (self.config.bin,) + args
        exit_code, output = self.runtime.run_and_wait(
            context,
            image=self.config.image,
            command=command,
            hostname=RELAYER_NAME,
            mounts={self.host_home_dir: self.home_dir},
            host_network=True,
        )
        if exit_code != 0:
            raise ProcessError(RELAYER_NAME, command, exit_code, output)
        return output

    def chain_config(self, node: Node) -> Dict[str, Any]:
        if node.client is None:
            raise NodeNotStartedError(node.name)
        return {
            "chain-id": node.chain.chain_id,
            "rpc-addr": "http://{}".format(node.client.address),
            "account-prefix": self.account_prefix,
            "gas-adjustment": self.gas_adjustment,
            "gas-prices": self.gas_prices,
            "trusting-period": self.trusting_period,
        }

    def _write_chain_config(self, filename: str, node: Node) -> str:
        path = os.path.join(self.host_home_dir, filename)
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(self.chain_config(node), f, indent=2)
        except OSError as e:
            raise ResourceError(path, 'failed to write relayer chain config: {}'.format(e)) from e
        return posixpath.join(self.home_dir, filename)

    def get_key(self, context: Context, chain_id: str, key_name: str) -> Key:
        return wait_for_key(context, RelayerKeyStore(self, chain_id), key_name, self.key_policy)

    def initialize(self, context: Context, node_a: Node, node_b: Node, path_name: str = 'transfer') -> Tuple[Key, Key]:
        try:
            os.makedirs(self.host_home_dir, exist_ok=True)
        except OSError as e:
            raise ResourceError(self.host_home_dir, 'failed to create relayer home: {}'.format(e)) from e

        self.execute(context, 'config', 'init', '--home', self.home_dir)

        nodes = (node_a, node_b)
        for index, node in enumerate(nodes, start=1):
            container_path = self._write_chain_config('chain{}_config.json'.format(index), node)
            self.execute(context, 'chains', 'add', '-f', container_path, '--home', self.home_dir)

        for node in nodes:
            chain_id = node.chain.chain_id
            self.execute(context, 'keys', 'add', chain_id, self.key_name(chain_id), '--home', self.home_dir)

        for node in nodes:
            chain_id = node.chain.chain_id
            self.execute(context, 'chains', 'edit', chain_id, 'key', self.key_name(chain_id), '--home', self.home_dir)

        keys = []
        for node in nodes:
            chain_id = node.chain.chain_id
            key = self.get_key(context, chain_id, self.key_name(chain_id))
            logging.info("%s key for %s => %s", RELAYER_NAME, chain_id, key.address)
            keys.append(key)

        self.execute(
            context,
            'paths', 'generate', node_a.chain.chain_id, node_b.chain.chain_id, path_name,
            '--port=transfer',
            '--home', self.home_dir,
        )
        return keys[0], keys[1]
