import os
import logging
from typing import (
    Any,
    Dict,
    MutableMapping,
)

import toml

from .common import RPC_PORT


RPC_LISTEN_ADDRESS = "tcp://0.0.0.0:{}".format(RPC_PORT)


def _section(config: MutableMapping[str, Any], name: str) -> MutableMapping[str, Any]:
    section = config.get(name)
    if not isinstance(section, dict):
        section = {}
        config[name] = section
    return section


def apply_test_changes(config: MutableMapping[str, Any], *, moniker: str, peers: str, block_timeout: str) -> MutableMapping[str, Any]:
    # turn down block times to make the chain faster
    consensus = _section(config, 'consensus')
    consensus['timeout_commit'] = block_timeout
    consensus['timeout_propose'] = block_timeout

    # open up the rpc address
    rpc = _section(config, 'rpc')
    rpc['laddr'] = RPC_LISTEN_ADDRESS

    # several nodes share one docker network
    p2p = _section(config, 'p2p')
    p2p['allow_duplicate_ip'] = True
    p2p['addr_book_strict'] = False
    p2p['persistent_peers'] = peers

    config['log_level'] = 'info'
    config['moniker'] = moniker
    return config


def load_node_config(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    with open(path, encoding='utf-8') as f:
        return toml.load(f)


def write_node_config(path: str, *, moniker: str, peers: str, block_timeout: str) -> Dict[str, Any]:
    config = load_node_config(path)
    apply_test_changes(config, moniker=moniker, peers=peers, block_timeout=block_timeout)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        toml.dump(config, f)
    logging.debug("%s config written to %s", moniker, path)
    return config
