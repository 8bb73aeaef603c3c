import re
from typing import (
    Any,
    List,
)

from ibctest.concurrency import Context
from ibctest.network import (
    NetworkConfig,
    NetworkLifecycleManager,
)
from ibctest.topology import (
    make_peer_address,
    peer_string,
)

from .fakes import (
    FakeRuntime,
    fake_chain,
)


PEER_ADDRESS_PATTERN = re.compile(r'^[0-9a-f]{40}@node-ibc-test-1-\d+:26656$')


class StaticPeer:
    def __init__(self, name: str, node_id: str) -> None:
        self.name = name
        self.node_id = node_id

    def peer_address(self) -> str:
        return make_peer_address(self.node_id, self.name)


def test_peer_string_format() -> None:
    peers = [StaticPeer('node-a-0', 'aa'), StaticPeer('node-a-1', 'bb')]
    assert peer_string(peers) == 'aa@node-a-0:26656,bb@node-a-1:26656'
    assert peer_string([]) == ''


def test_peer_string_is_stable_under_appends() -> None:
    peers: List[StaticPeer] = [StaticPeer('node-a-{}'.format(i), '{:02x}'.format(i)) for i in range(3)]
    before = peer_string(peers)
    peers.append(StaticPeer('node-a-3', 'ff'))
    after = peer_string(peers)
    assert after.startswith(before + ',')
    assert after.split(',')[-1] == 'ff@node-a-3:26656'


def test_chain_peer_string_follows_node_order(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    with fake_chain(str(tmp_path), runtime) as chain:
        for _ in range(3):
            chain.add_node()
        chain.initialize(Context())

        entries = chain.peer_string().split(',')
        assert len(entries) == 3
        for node, entry in zip(chain.nodes, entries):
            assert PEER_ADDRESS_PATTERN.match(entry)
            assert entry == '{}@{}:26656'.format(node.node_id(), node.name)

        late = chain.add_node(is_validator=False)
        chain.initialize(Context(), [late])
        assert chain.peer_string().split(',') == entries + [late.peer_address()]


def test_network_config_for_chain() -> None:
    config = NetworkConfig.for_chain('ibc-test-1')
    assert config.name == 'ibctest-ibc-test-1'
    assert config.labels == {'ibc-test': 'ibc-test-1'}


def test_reset_twice_is_a_noop() -> None:
    runtime = FakeRuntime()
    manager = NetworkLifecycleManager(runtime, NetworkConfig.for_chain('ibc-test-1'))

    manager.reset(Context())
    manager.reset(Context())

    assert runtime.removed_containers == []
    assert runtime.removed_networks == []


def test_reset_removes_only_own_leftovers() -> None:
    runtime = FakeRuntime()
    manager = NetworkLifecycleManager(runtime, NetworkConfig.for_chain('ibc-test-1'))
    other = NetworkLifecycleManager(runtime, NetworkConfig.for_chain('ibc-test-2'))
    manager.create()
    other.create()
    runtime.run(image='gaia', command=['gaiad', 'start'], name='node-ibc-test-1-0', network=manager.name)
    runtime.run(image='gaia', command=['gaiad', 'start'], name='node-ibc-test-1-1', network=manager.name)
    runtime.run(image='gaia', command=['gaiad', 'start'], name='node-ibc-test-2-0', network=other.name)

    manager.reset(Context())

    assert sorted(runtime.removed_containers) == ['node-ibc-test-1-0', 'node-ibc-test-1-1']
    assert runtime.removed_networks == ['ibctest-ibc-test-1']
    assert [container.name for container in runtime.containers] == ['node-ibc-test-2-0']
    assert [network.name for network in runtime.networks] == ['ibctest-ibc-test-2']

    manager.reset(Context())
    assert runtime.removed_networks == ['ibctest-ibc-test-1']


def test_setup_recovers_from_previous_run(tmp_path: Any) -> None:
    runtime = FakeRuntime()
    leftover = NetworkLifecycleManager(runtime, NetworkConfig.for_chain('ibc-test-1'))
    leftover.create()
    runtime.run(image='gaia', command=['gaiad', 'start'], name='node-ibc-test-1-0', network=leftover.name)

    with fake_chain(str(tmp_path), runtime) as chain:
        assert [network.name for network in runtime.networks] == [chain.network_name]
        assert runtime.networks[0].labels == {'ibc-test': 'ibc-test-1'}
        assert runtime.containers == []

    assert runtime.networks == []
