import logging
from typing import Sequence
import typing_extensions

from .common import P2P_PORT


class Peer(typing_extensions.Protocol):
    name: str

    def peer_address(self) -> str:
        # pylint: disable=pointless-statement
        ...


def make_peer_address(node_id: str, host: str, port: int = P2P_PORT) -> str:
    return '{}@{}:{}'.format(node_id, host, port)


def peer_string(nodes: Sequence[Peer]) -> str:
    """Persistent peers entry for the node set as it is right now.

    Entries follow node order so appending a node never disturbs the entries
    of the nodes before it. The result must not be cached: a node configured
    with an older string does not know the peers added since.
    """
    addresses = []
    for node in nodes:
        address = node.peer_address()
        logging.info("%s peering %s", node.name, address)
        addresses.append(address)
    return ','.join(addresses)
