import time
import logging
import contextlib
from random import Random
from collections import defaultdict
from typing import (
    Any,
    Dict,
    Generator,
    List,
)

import pytest
from _pytest.terminal import TerminalReporter
from _pytest.reports import TestReport
from _pytest.config.argparsing import Parser
import requests
import docker as docker_py
from docker.errors import DockerException
from docker.client import DockerClient

from ibctest.common import (
    ChainOptions,
    CommandLineOptions,
    TestingContext,
)


# Silence unwanted noise in logs produced at the DEBUG level
logging.getLogger('urllib3.connectionpool').setLevel(logging.WARNING)
logging.getLogger('connectionpool.py').setLevel(logging.WARNING)
logging.getLogger('docker.utils.config').setLevel(logging.WARNING)
logging.getLogger('docker.auth').setLevel(logging.WARNING)


def pytest_addoption(parser: Parser) -> None:
    parser.addoption("--startup-timeout", type=int, action="store", default=60 * 10, help="timeout in seconds for bringing a chain up")
    parser.addoption("--height-timeout", type=int, action="store", default=60 * 5, help="timeout in seconds for reaching a block height")
    parser.addoption("--command-timeout", type=int, action="store", default=60 * 3, help="timeout in seconds for a single chain binary call")
    parser.addoption("--mount-dir", action="store", default=None, help="directory holding the node home directories (must be shared with the docker daemon)")
    parser.addoption("--keep-data", action="store_true", default=False, help="keep node home directories after the tests")
    parser.addoption("--random-seed", type=int, action="store", default=None, help="seed for the random numbers generator used in integration tests")


def pytest_terminal_summary(terminalreporter: TerminalReporter) -> None:
    tr = terminalreporter
    dlist: Dict[str, List[TestReport]] = defaultdict(list)
    for replist in tr.stats.values():
        for rep in replist:
            if hasattr(rep, "duration"):
                dlist[rep.nodeid].append(rep)
    if not dlist:
        return
    tr.write_sep("=", "test durations")

    for nodeid, reps in dlist.items():
        total_second = sum([rep.duration for rep in reps])
        detail_duration = ",".join(["{:<8} {:8.2f}s".format(rep.when, rep.duration) for rep in reps])
        tr.write_line("Total: {:8.2f}s, {}    {}".format(total_second, detail_duration, nodeid))


@pytest.fixture(scope='session')
def command_line_options(request: Any) -> Generator[CommandLineOptions, None, None]:
    command_line_options = CommandLineOptions(
        startup_timeout=int(request.config.getoption("--startup-timeout")),
        height_timeout=int(request.config.getoption("--height-timeout")),
        command_timeout=int(request.config.getoption("--command-timeout")),
        mount_dir=request.config.getoption("--mount-dir"),
        keep_data=bool(request.config.getoption("--keep-data")),
        random_seed=request.config.getoption("--random-seed"),
    )

    yield command_line_options


@contextlib.contextmanager
def docker_client_context() -> Generator[DockerClient, None, None]:
    try:
        docker_client = docker_py.from_env()
        docker_client.ping()
    except (DockerException, requests.exceptions.RequestException) as e:
        pytest.skip('docker daemon is not reachable: {}'.format(e))
    try:
        yield docker_client
    finally:
        docker_client.volumes.prune()
        docker_client.close()


@pytest.fixture(scope='session')
def docker_client() -> Generator[DockerClient, None, None]:
    with docker_client_context() as docker_cli:
        yield docker_cli


@pytest.fixture(scope='session')
def random_generator(command_line_options: CommandLineOptions) -> Generator[Random, None, None]:
    random_seed = int(time.time()) if command_line_options.random_seed is None else command_line_options.random_seed
    logging.critical("Using tests random number generator seed: %d", random_seed)
    random_generator = Random(random_seed)
    yield random_generator


@contextlib.contextmanager
def testing_context(command_line_options: CommandLineOptions,
                    random_generator: Random,
                    docker_client: DockerClient) -> Generator[TestingContext, None, None]:
    chain_options = ChainOptions(
        command_timeout=command_line_options.command_timeout,
        keep_data=command_line_options.keep_data,
        mount_dir=command_line_options.mount_dir,
    )
    context = TestingContext(
        docker=docker_client,
        chain_options=chain_options,
        random_generator=random_generator,
        startup_timeout=command_line_options.startup_timeout,
        height_timeout=command_line_options.height_timeout,
    )

    yield context


testing_context.__test__ = False # type: ignore
