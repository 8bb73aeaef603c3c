import os
import json
from typing import Any

import pytest

from ibctest.concurrency import Context
from ibctest.error import (
    GenesisMismatchError,
    InvalidInputError,
    OwnershipError,
    ProcessError,
)
from ibctest.genesis import verify_genesis_hashes

from .fakes import (
    FakeRuntime,
    fake_chain,
)


def read_json(path: str) -> Any:
    with open(path, encoding='utf-8') as f:
        return json.load(f)


def test_genesis_is_identical_on_every_node(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime) as chain:
        for _ in range(3):
            chain.add_node()
        chain.add_node(is_validator=False)
        context = Context()
        chain.initialize(context)

        genesis_hash = chain.create_genesis(context, chain.nodes[0:3])

        hashes = chain.genesis_hashes()
        assert set(hashes.values()) == {genesis_hash}
        assert chain.log_genesis_hashes() == genesis_hash
        assert chain.nodes[3].genesis_hash() == chain.nodes[0].genesis_hash()

        genesis = read_json(chain.nodes[3].genesis_file_path)
        validator_addresses = sorted(node.get_key(context).address for node in chain.nodes[0:3])
        assert sorted(account['address'] for account in genesis['app_state']['accounts']) == validator_addresses
        assert sorted(gentx['validator'] for gentx in genesis['app_state']['gentxs']) == validator_addresses
        assert all(gentx['amount'] == '100000000000stake' for gentx in genesis['app_state']['gentxs'])
        assert all(account['coins'] == '1000000000000stake' for account in genesis['app_state']['accounts'])


def test_gentxs_are_relocated_to_coordinator(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime) as chain:
        for _ in range(3):
            chain.add_node()
        chain.initialize(Context())
        chain.create_genesis(Context())

        coordinator = chain.nodes[0]
        expected = sorted('gentx-{}.json'.format(node.node_id()) for node in chain.nodes)
        assert sorted(os.listdir(coordinator.gentx_dir)) == expected
        for node in chain.nodes[1:]:
            assert os.listdir(node.gentx_dir) == []

        collections = [hostname for hostname, command in runtime.commands if command[1] == 'collect-gentxs']
        assert collections == [coordinator.name]


def test_single_validator_genesis(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime) as chain:
        chain.add_node()
        chain.initialize(Context())
        genesis_hash = chain.create_genesis(Context())
        assert chain.nodes[0].genesis_hash() == genesis_hash


def test_zero_validators_is_rejected(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime) as chain:
        chain.add_node(is_validator=False)
        chain.initialize(Context())
        with pytest.raises(InvalidInputError):
            chain.create_genesis(Context())
        with pytest.raises(InvalidInputError):
            chain.create_genesis(Context(), [])


def test_non_validator_is_rejected(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime) as chain:
        validator = chain.add_node()
        full_node = chain.add_node(is_validator=False)
        chain.initialize(Context())
        commands_before = list(runtime.commands)
        with pytest.raises(InvalidInputError):
            chain.create_genesis(Context(), [validator, full_node])
        with pytest.raises(InvalidInputError):
            chain.create_genesis(Context(), [validator, validator])
        assert runtime.commands == commands_before


def test_foreign_validator_is_rejected_before_any_mutation(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime, chain_id='ibc-test-1') as chain_a:
        with fake_chain(str(tmp_path), runtime, chain_id='ibc-test-2') as chain_b:
            for chain in (chain_a, chain_b):
                chain.add_node()
                chain.add_node()
                chain.initialize(Context())

            genesis_before = [node.read_genesis() for node in chain_a.nodes + chain_b.nodes]
            commands_before = list(runtime.commands)

            with pytest.raises(OwnershipError) as excinfo:
                chain_a.create_genesis(Context(), [chain_a.nodes[0], chain_b.nodes[1]])

            assert excinfo.value.chain_id == 'ibc-test-1'
            assert excinfo.value.node_name == 'node-ibc-test-2-1'
            assert runtime.commands == commands_before
            assert [node.read_genesis() for node in chain_a.nodes + chain_b.nodes] == genesis_before


def test_failed_gentx_aborts_before_collection(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime) as chain:
        for _ in range(3):
            chain.add_node()
        chain.initialize(Context())
        runtime.failures[(chain.nodes[2].name, 'gentx')] = 1

        with pytest.raises(ProcessError) as excinfo:
            chain.create_genesis(Context())

        assert excinfo.value.node_name == chain.nodes[2].name
        assert 'collect-gentxs' not in runtime.subcommands()


def test_only_validators_get_keys_by_default(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime) as chain:
        validator = chain.add_node()
        full_node = chain.add_node(is_validator=False)
        chain.initialize(Context())
        assert ('keys', 'add') in [command[1:3] for command in runtime.commands_for(validator.name)]
        assert ('keys', 'add') not in [command[1:3] for command in runtime.commands_for(full_node.name)]


def test_non_validator_keys_when_enabled(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime, create_keys_for_non_validators=True) as chain:
        full_node = chain.add_node(is_validator=False)
        chain.initialize(Context())
        assert full_node.get_key(Context()).name == 'validator'


def test_genesis_mismatch_is_reported(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime) as chain:
        chain.add_node()
        chain.add_node()
        chain.initialize(Context())
        chain.create_genesis(Context())
        chain.nodes[1].write_genesis(b'{}')

        with pytest.raises(GenesisMismatchError) as excinfo:
            verify_genesis_hashes(chain.chain_id, chain.nodes)
        assert set(excinfo.value.hashes) == {node.name for node in chain.nodes}
