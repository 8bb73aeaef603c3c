import json
import logging
from dataclasses import dataclass
from typing import (
    Optional,
    TYPE_CHECKING,
)

from .concurrency import Context
from .error import (
    ProcessError,
    TransientQueryError,
)
from .wait import (
    KEY_POLICY,
    RetryPolicy,
    wait_for_key,
)

if TYPE_CHECKING:
    # pylint: disable=cyclic-import
    from .node import Node


KEYRING_BACKEND = 'test'


@dataclass
class Key:
    name: str
    address: str


def parse_key_output(owner: str, output: str) -> Key:
    """``keys show --output json`` prints a single JSON object, possibly after
    some log noise on the same stream."""
    start = output.find('{')
    if start < 0:
        raise TransientQueryError(owner, 'no key in output: {!r}'.format(output))
    try:
        message = json.loads(output[start:])
        return Key(name=message['name'], address=message['address'])
    except (ValueError, KeyError, TypeError) as e:
        raise TransientQueryError(owner, 'unexpected key output {!r}: {}'.format(output, e))


class KeyStore:
    """The test keyring in a node's home directory, read through the chain
    binary."""

    def __init__(self, node: 'Node', policy: RetryPolicy = KEY_POLICY) -> None:
        self.node = node
        self.policy = policy

    @property
    def owner(self) -> str:
        return self.node.name

    def lookup(self, context: Context, name: str) -> Key:
        try:
            output = self.node.execute(
                context,
                'keys', 'show', name,
                '--keyring-backend', KEYRING_BACKEND,
                '--output', 'json',
                '--home', self.node.home_dir,
            )
        except ProcessError as e:
            # key creation may not have landed in the keyring yet
            raise TransientQueryError(self.owner, 'key {} not available: exit code {}'.format(name, e.exit_code))
        return parse_key_output(self.owner, output)

    def get_key(self, context: Context, name: str, policy: Optional[RetryPolicy] = None) -> Key:
        key = wait_for_key(context, self, name, policy or self.policy)
        logging.info("%s key %s => %s", self.owner, name, key.address)
        return key
