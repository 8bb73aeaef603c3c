import os
import logging
import functools
from typing import (
    Dict,
    List,
    Sequence,
    TYPE_CHECKING,
)

from .concurrency import (
    Context,
    run_concurrently,
)
from .error import (
    GenesisMismatchError,
    ResourceError,
)
from .node import VALIDATOR_KEY_NAME

if TYPE_CHECKING:
    # pylint: disable=cyclic-import
    from .chain import Chain
    from .node import Node


def genesis_hashes(nodes: Sequence['Node']) -> Dict[str, str]:
    return {node.name: node.genesis_hash() for node in nodes}


def verify_genesis_hashes(chain_id: str, nodes: Sequence['Node']) -> str:
    hashes = genesis_hashes(nodes)
    for name, genesis_hash in hashes.items():
        logging.info("%s genesis hash %s", name, genesis_hash)
    if len(set(hashes.values())) != 1:
        raise GenesisMismatchError(chain_id, hashes)
    return next(iter(hashes.values()))


class GenesisCoordinator:
    """Assembles one genesis document from the gentxs of every validator.

    The first validator is the coordinator: it drafts the genesis, receives
    a genesis account and the gentx of each other validator, collects them
    and hands the result to every node of the chain. Sibling validators
    write into the coordinator's home concurrently, each under its own
    address and node ID, so no two of them touch the same entry.
    """

    def __init__(self, chain: 'Chain', validators: Sequence['Node']) -> None:
        assert len(validators) >= 1
        self.chain = chain
        self.validators: List['Node'] = list(validators)
        self.coordinator = self.validators[0]

    def __repr__(self) -> str:
        return '<GenesisCoordinator(chain={}, coordinator={})>'.format(self.chain.chain_id, self.coordinator.name)

    def run(self, context: Context) -> str:
        logging.info("%s assembling genesis on %s from %d validators", self.chain.chain_id, self.coordinator.name, len(self.validators))

        # every sibling writes into the coordinator's draft genesis
        self.coordinator.create_genesis_tx(context)

        run_concurrently(context, [functools.partial(self.add_validator, validator) for validator in self.validators[1:]])

        self.coordinator.collect_gentxs(context)

        genesis = self.coordinator.read_genesis()
        self.distribute(genesis)
        return verify_genesis_hashes(self.chain.chain_id, self.chain.nodes)

    def add_validator(self, validator: 'Node', context: Context) -> None:
        validator.create_genesis_tx(context)
        key = validator.get_key(context, VALIDATOR_KEY_NAME)
        self.coordinator.add_genesis_account(context, key.address)
        self.relocate_gentx(validator)

    def relocate_gentx(self, validator: 'Node') -> None:
        node_id = validator.node_id()
        source = validator.gentx_file_path(node_id)
        destination = self.coordinator.gentx_file_path(node_id)
        try:
            os.makedirs(self.coordinator.gentx_dir, exist_ok=True)
            os.replace(source, destination)
        except OSError as e:
            raise ResourceError(source, 'failed to move gentx to {}: {}'.format(destination, e)) from e
        logging.debug("%s gentx moved to %s", validator.name, destination)

    def distribute(self, genesis: bytes) -> None:
        for node in self.chain.nodes:
            node.write_genesis(genesis)
