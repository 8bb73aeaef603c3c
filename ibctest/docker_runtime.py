import time
import logging
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
)

import requests
import docker.errors
from docker.client import DockerClient
from docker.models.containers import Container
from docker.models.networks import Network

from .concurrency import Context
from .error import ResourceError
from .utils import (
    join_host_port,
    normalize_host_ip,
)


class DockerRuntime:
    """ContainerRuntime backed by the docker engine through docker-py."""

    def __init__(self, docker_client: DockerClient, wait_poll_interval: float = 1, max_connection_errors: int = 5) -> None:
        self.docker_client = docker_client
        self.wait_poll_interval = wait_poll_interval
        self.max_connection_errors = max_connection_errors

    def __repr__(self) -> str:
        return '<DockerRuntime({!r})>'.format(self.docker_client.api.base_url)

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
    ) -> Container:
        volumes = {host_path: {'bind': container_path, 'mode': 'rw'} for host_path, container_path in (mounts or {}).items()}
        kwargs: Dict[str, Any] = dict(
            name=name,
            hostname=hostname,
            detach=True,
            volumes=volumes,
            labels=labels or {},
        )
        if host_network:
            kwargs['network_mode'] = 'host'
        else:
            kwargs['network'] = network
            kwargs['ports'] = {port: None for port in ports}
            kwargs['publish_all_ports'] = bool(ports)

        logging.info('STARTING %s %s', hostname or image, ' '.join(command))
        return self.docker_client.containers.run(image, command=list(command), **kwargs)

    def wait(self, context: Context, container: Container) -> int:
        connection_errors = 0
        while True:
            context.check()
            timeout = max(1, int(self.wait_poll_interval))
            remaining = context.remaining()
            if remaining is not None:
                timeout = max(1, min(timeout, int(remaining) + 1))
            started = time.monotonic()
            try:
                result = container.wait(timeout=timeout)
            except requests.exceptions.ReadTimeout:
                connection_errors = 0
                continue
            except requests.exceptions.ConnectionError as e:
                # docker-py reports read timeouts on the unix socket as connection errors
                if time.monotonic() - started >= timeout:
                    connection_errors = 0
                    continue
                connection_errors += 1
                if connection_errors >= self.max_connection_errors:
                    raise ResourceError('container {}'.format(container.name), 'docker daemon unreachable: {}'.format(e)) from e
                logging.debug("RETRYING wait for %s: %s", container.name, e)
                context.sleep(self.wait_poll_interval)
                continue
            return int(result['StatusCode'])

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
        container = self.run(
            image=image,
            command=command,
            hostname=hostname,
            mounts=mounts,
            network=network,
            labels=labels,
            host_network=host_network,
        )
        logging.info("COMMAND %s %s", hostname or container.name, command)
        try:
            exit_code = self.wait(context, container)
            output = container.logs().decode('utf-8')
        finally:
            self.remove(container, force=True)

        name = hostname or container.name
        if exit_code != 0:
            for line in output.splitlines():
                logging.info('{}: {}'.format(name, line))
            logging.warning("EXITED {} {} {}".format(name, command, exit_code))
        else:
            for line in output.splitlines():
                logging.debug('{}: {}'.format(name, line))
            logging.debug("EXITED {} {} {}".format(name, command, exit_code))
        return exit_code, output

    def logs(self, container: Container, follow: bool = False) -> Iterator[bytes]:
        if follow:
            return container.logs(stream=True, follow=True)
        return iter(container.logs().splitlines())

    def stop(self, container: Container, timeout: int) -> None:
        try:
            container.stop(timeout=timeout)
        except docker.errors.NotFound:
            return
        logging.info("Stopped container %s", container.name)

    def remove(self, container: Container, force: bool = True) -> None:
        try:
            container.remove(force=force, v=True)
        except docker.errors.NotFound:
            logging.debug("Container %s already removed", container.name)

    def list_by_network(self, network_name: str) -> List[Container]:
        return self.docker_client.containers.list(all=True, filters={'network': network_name})

    def create_network(self, name: str, labels: Dict[str, str]) -> Network:
        try:
            return self.docker_client.networks.create(name, driver="bridge", labels=labels)
        except docker.errors.APIError as e:
            raise ResourceError('docker network {}'.format(name), str(e)) from e

    def list_networks(self, name: str) -> List[Network]:
        # the engine matches names by substring
        return [network for network in self.docker_client.networks.list(names=[name]) if network.name == name]

    def remove_network(self, network: Network) -> None:
        try:
            network.remove()
        except docker.errors.NotFound:
            return
        except docker.errors.APIError as e:
            raise ResourceError('docker network {}'.format(network.name), str(e)) from e

    def host_port_for(self, container: Container, container_port: str) -> Optional[str]:
        container.reload()
        bindings = (container.attrs.get('NetworkSettings') or {}).get('Ports') or {}
        ports = bindings.get(container_port)
        if not ports:
            return None
        binding = ports[0]
        return join_host_port(normalize_host_ip(binding['HostIp']), binding['HostPort'])
