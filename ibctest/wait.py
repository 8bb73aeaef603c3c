import logging
import dataclasses
from typing import (
    Optional,
    TYPE_CHECKING,
)
import typing_extensions

from .concurrency import Context
from .error import (
    HeightTimeoutError,
    TransientQueryError,
    WaitTimeoutError,
)

if TYPE_CHECKING:
    # pylint: disable=cyclic-import
    from .keystore import Key, KeyStore
    from .node import Node
    from .status_client import NodeStatus


# keeps the shifted multiplier within 64 bits
_MAX_BACKOFF_SHIFT = 62


@dataclasses.dataclass(frozen=True)
class RetryPolicy:
    """Bounded or unbounded retries with capped exponential backoff.

    ``max_attempts`` of ``None`` retries until the context is cancelled.
    """
    max_attempts: Optional[int]
    base_delay: float
    max_delay: float

    def delay(self, retry: int) -> float:
        return min(self.max_delay, self.base_delay * (1 << min(retry, _MAX_BACKOFF_SHIFT)))

    def exhausted(self, attempts: int) -> bool:
        return self.max_attempts is not None and attempts >= self.max_attempts


READINESS_POLICY = RetryPolicy(max_attempts=None, base_delay=0.1, max_delay=10.0)
HEIGHT_POLICY = RetryPolicy(max_attempts=15, base_delay=0.1, max_delay=30.0)
KEY_POLICY = RetryPolicy(max_attempts=10, base_delay=0.1, max_delay=5.0)


class PredicateProtocol(typing_extensions.Protocol):
    def __str__(self) -> str:
        # pylint: disable=pointless-statement
        ...

    def is_satisfied(self, context: Context) -> bool:
        # pylint: disable=pointless-statement, no-self-use
        ...


class NodeCaughtUp:
    def __init__(self, node: 'Node') -> None:
        self.node = node
        self.last_status: Optional['NodeStatus'] = None

    def __str__(self) -> str:
        args = ', '.join(repr(a) for a in (self.node.name,))
        return '<{}({})>'.format(self.__class__.__name__, args)

    def is_satisfied(self, context: Context) -> bool:
        self.last_status = self.node.status(context)
        return not self.last_status.catching_up


class NodeReachedHeight:
    def __init__(self, node: 'Node', height: int) -> None:
        self.node = node
        self.height = height
        self.last_status: Optional['NodeStatus'] = None

    def __str__(self) -> str:
        args = ', '.join(repr(a) for a in (self.node.name, self.height))
        return '<{}({})>'.format(self.__class__.__name__, args)

    def is_satisfied(self, context: Context) -> bool:
        self.last_status = self.node.status(context)
        return not self.last_status.catching_up and self.last_status.latest_height >= self.height


class KeyAvailable:
    def __init__(self, keystore: 'KeyStore', name: str) -> None:
        self.keystore = keystore
        self.name = name
        self.result: Optional['Key'] = None

    def __str__(self) -> str:
        args = ', '.join(repr(a) for a in (self.keystore.owner, self.name))
        return '<{}({})>'.format(self.__class__.__name__, args)

    def is_satisfied(self, context: Context) -> bool:
        self.result = self.keystore.lookup(context, self.name)
        return True


def wait_using_backoff(context: Context, predicate: PredicateProtocol, policy: RetryPolicy) -> None:
    logging.info("AWAITING %s", predicate)

    attempts = 0
    last_error: Optional[Exception] = None
    while True:
        context.check()
        try:
            if predicate.is_satisfied(context):
                logging.info("SATISFIED %s", predicate)
                return
            last_error = None
        except TransientQueryError as e:
            last_error = e
            logging.debug("RETRYING %s: %s", predicate, e)

        attempts += 1
        if policy.exhausted(attempts):
            logging.info("TIMEOUT %s", predicate)
            raise WaitTimeoutError(predicate, attempts, last_error)
        context.sleep(policy.delay(attempts - 1))


def wait_for_node_caught_up(context: Context, node: 'Node', policy: RetryPolicy = READINESS_POLICY) -> None:
    predicate = NodeCaughtUp(node)
    wait_using_backoff(context, predicate, policy)


def wait_for_height(context: Context, node: 'Node', height: int, policy: RetryPolicy = HEIGHT_POLICY) -> None:
    predicate = NodeReachedHeight(node, height)
    try:
        wait_using_backoff(context, predicate, policy)
    except WaitTimeoutError as e:
        last_height = None if predicate.last_status is None else predicate.last_status.latest_height
        raise HeightTimeoutError(node.chain.chain_id, node.name, height, last_height, e.attempts) from e
    logging.info("%s => reached block %d", node.name, height)


def wait_for_key(context: Context, keystore: 'KeyStore', name: str, policy: RetryPolicy = KEY_POLICY) -> 'Key':
    predicate = KeyAvailable(keystore, name)
    wait_using_backoff(context, predicate, policy)
    assert predicate.result is not None
    return predicate.result
