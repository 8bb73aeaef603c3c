from dataclasses import dataclass
from typing import Dict

import requests

from .concurrency import Context
from .error import TransientQueryError


@dataclass
class NodeStatus:
    latest_height: int
    catching_up: bool


def _check_response(node_name: str, response: requests.Response) -> None:
    if response.status_code != requests.codes.ok:  # pylint: disable=no-member
        raise TransientQueryError(node_name, 'HTTP {}: {}'.format(response.status_code, response.text))


def parse_status(node_name: str, message: Dict) -> NodeStatus:
    try:
        sync_info = message['result']['sync_info']
        return NodeStatus(
            latest_height=int(sync_info['latest_block_height']),
            catching_up=bool(sync_info['catching_up']),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise TransientQueryError(node_name, 'malformed status response: {!r}'.format(e))


class StatusClient():
    """Tendermint RPC client limited to the ``/status`` endpoint."""

    def __init__(self, node_name: str, address: str, timeout: float = 10.0):
        super().__init__()
        self.node_name = node_name
        self.address = address
        self.timeout = timeout
        self.url = "http://{}".format(address)

    def __repr__(self) -> str:
        return '<StatusClient({}, {})>'.format(self.node_name, self.url)

    def status(self, context: Context) -> NodeStatus:
        context.check()
        timeout = self.timeout
        remaining = context.remaining()
        if remaining is not None:
            timeout = min(timeout, max(remaining, 0.1))
        try:
            rep = requests.get(self.url + '/status', timeout=timeout)
        except requests.RequestException as e:
            raise TransientQueryError(self.node_name, str(e))
        _check_response(self.node_name, rep)
        try:
            message = rep.json()
        except ValueError as e:
            raise TransientQueryError(self.node_name, 'invalid JSON: {}'.format(e))
        return parse_status(self.node_name, message)
