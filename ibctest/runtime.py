from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
)
import typing_extensions

from .concurrency import Context


class ContainerRuntime(typing_extensions.Protocol):
    """What the orchestrator needs from a container engine.

    Container and network handles are opaque apart from their ``id`` and
    ``name`` attributes.
    """

    def run(
        self,
        *,
        image: str,
        command: Sequence[str],
        name: Optional[str] = None,
        hostname: Optional[str] = None,
        mounts: Optional[Dict[str, str]] = None,
        ports: Sequence[str] = (),
        network: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
        host_network: bool = False,
    ) -> Any:
        # pylint: disable=pointless-statement
        ...

    def wait(self, context: Context, container: Any) -> int:
        # pylint: disable=pointless-statement
        ...

    def run_and_wait(
        self,
        context: Context,
        *,
        image: str,
        command: Sequence[str],
        hostname: Optional[str] = None,
        mounts: Optional[Dict[str, str]] = None,
        network: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
        host_network: bool = False,
    ) -> Tuple[int, str]:
        # pylint: disable=pointless-statement
        ...

    def logs(self, container: Any, follow: bool = False) -> Iterator[bytes]:
        # pylint: disable=pointless-statement
        ...

    def stop(self, container: Any, timeout: int) -> None:
        # pylint: disable=pointless-statement
        ...

    def remove(self, container: Any, force: bool = True) -> None:
        # pylint: disable=pointless-statement
        ...

    def list_by_network(self, network_name: str) -> List[Any]:
        # pylint: disable=pointless-statement
        ...

    def create_network(self, name: str, labels: Dict[str, str]) -> Any:
        # pylint: disable=pointless-statement
        ...

    def list_networks(self, name: str) -> List[Any]:
        # pylint: disable=pointless-statement
        ...

    def remove_network(self, network: Any) -> None:
        # pylint: disable=pointless-statement
        ...

    def host_port_for(self, container: Any, container_port: str) -> Optional[str]:
        # pylint: disable=pointless-statement
        ...
