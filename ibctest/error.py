from typing import (
    Dict,
    Optional,
    Sequence,
    TYPE_CHECKING,
)

if TYPE_CHECKING:
    # pylint: disable=cyclic-import
    from .wait import PredicateProtocol


class ResourceError(Exception):
    def __init__(self, resource: str, reason: str) -> None:
        super().__init__('{}: {}'.format(resource, reason))
        self.resource = resource
        self.reason = reason


class InvalidInputError(Exception):
    def __init__(self, chain_id: str, reason: str) -> None:
        super().__init__('chain {}: {}'.format(chain_id, reason))
        self.chain_id = chain_id
        self.reason = reason


class OwnershipError(Exception):
    def __init__(self, chain_id: str, node_name: str) -> None:
        super().__init__('node {} does not belong to chain {}'.format(node_name, chain_id))
        self.chain_id = chain_id
        self.node_name = node_name


class ProcessError(Exception):
    def __init__(self, node_name: str, command: Sequence[str], exit_code: int, output: str) -> None:
        super().__init__('{}: {!r} exited with code {}'.format(node_name, ' '.join(command), exit_code))
        self.node_name = node_name
        self.command = tuple(command)
        self.exit_code = exit_code
        self.output = output


class TransientQueryError(Exception):
    def __init__(self, node_name: str, reason: str) -> None:
        super().__init__('{}: {}'.format(node_name, reason))
        self.node_name = node_name
        self.reason = reason


class WaitTimeoutError(Exception):
    def __init__(self, predicate: 'PredicateProtocol', attempts: int, last_error: Optional[Exception] = None) -> None:
        super().__init__('failed to satisfy {} after {} attempts'.format(predicate, attempts))
        self.predicate = predicate
        self.attempts = attempts
        self.last_error = last_error


class HeightTimeoutError(Exception):
    def __init__(self, chain_id: str, node_name: str, height: int, last_height: Optional[int], attempts: int) -> None:
        super().__init__('chain {}: node {} did not reach height {} after {} attempts (last seen {})'.format(
            chain_id, node_name, height, attempts, last_height,
        ))
        self.chain_id = chain_id
        self.node_name = node_name
        self.height = height
        self.last_height = last_height
        self.attempts = attempts


class ContextCancelledError(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class GenesisMismatchError(Exception):
    def __init__(self, chain_id: str, hashes: Dict[str, str]) -> None:
        super().__init__('chain {}: genesis hashes differ across nodes: {}'.format(chain_id, hashes))
        self.chain_id = chain_id
        self.hashes = hashes


class NodeAlreadyStartedError(Exception):
    def __init__(self, node_name: str) -> None:
        super().__init__('failed to start node {}, already exists'.format(node_name))
        self.node_name = node_name


class NodeNotStartedError(Exception):
    def __init__(self, node_name: str) -> None:
        super().__init__('node {} is not running'.format(node_name))
        self.node_name = node_name
