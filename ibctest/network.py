import logging
import functools
import dataclasses
from typing import (
    Any,
    Dict,
)

from .concurrency import (
    Context,
    run_concurrently,
)
from .runtime import ContainerRuntime


NETWORK_LABEL_KEY = 'ibc-test'


@dataclasses.dataclass(frozen=True)
class NetworkConfig:
    name: str
    label_key: str
    label_value: str

    @classmethod
    def for_chain(cls, chain_id: str) -> 'NetworkConfig':
        return cls(name='ibctest-{}'.format(chain_id), label_key=NETWORK_LABEL_KEY, label_value=chain_id)

    @property
    def labels(self) -> Dict[str, str]:
        return {self.label_key: self.label_value}


class NetworkLifecycleManager:
    """Owns the docker network of one chain and everything attached to it."""

    def __init__(self, runtime: ContainerRuntime, config: NetworkConfig) -> None:
        self.runtime = runtime
        self.config = config
        self.network: Any = None

    def __repr__(self) -> str:
        return '<NetworkLifecycleManager({})>'.format(self.config.name)

    @property
    def name(self) -> str:
        return self.config.name

    def reset(self, context: Context) -> None:
        """Remove containers and networks left over by a previous run."""
        containers = self.runtime.list_by_network(self.name)
        run_concurrently(context, [functools.partial(self._remove_container, container) for container in containers])

        # a network with attached containers cannot be removed
        for network in self.runtime.list_networks(self.name):
            logging.info("Removing docker network %s", network.name)
            self.runtime.remove_network(network)
        self.network = None

    def create(self) -> Any:
        self.network = self.runtime.create_network(self.name, self.config.labels)
        logging.info("Created docker network %s %s", self.name, self.config.labels)
        return self.network

    def teardown(self, context: Context) -> None:
        self.reset(context)

    def _remove_container(self, container: Any, context: Context) -> None:
        context.check()
        logging.info("Removing container %s %s from network %s", container.id, container.name, self.name)
        self.runtime.remove(container, force=True)
