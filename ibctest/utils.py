import base64
import hashlib
from typing import Union


# Width of a Tendermint node ID in bytes
NODE_ID_LENGTH = 20


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def join_host_port(host: str, port: Union[int, str]) -> str:
    if ':' in host:
        return '[{}]:{}'.format(host, port)
    return '{}:{}'.format(host, port)


def normalize_host_ip(ip: str) -> str:
    """Docker reports wildcard binds for published ports; those are reachable
    through the loopback interface of the host."""
    if ip in ('', '0.0.0.0', '::'):
        return 'localhost'
    return ip


def node_id_from_private_key(encoded_private_key: str) -> str:
    """Tendermint node ID: hex of the first 20 bytes of SHA-256 over the ed25519
    public key, which is the trailing half of the 64 byte private key."""
    raw = base64.b64decode(encoded_private_key)
    if len(raw) != 64:
        raise ValueError('unexpected ed25519 private key length: {}'.format(len(raw)))
    public_key = raw[32:]
    return hashlib.sha256(public_key).digest()[:NODE_ID_LENGTH].hex()
