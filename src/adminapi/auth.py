"""
Request signing for the Serveradmin API.

Every request carries ``X-Timestamp``; the signed message is
``b"<timestamp>:" + body``. Two schemes are supported:

- Security token: ``X-SecurityToken`` is the hex HMAC-SHA1 of the message
  keyed with the shared token, ``X-Application`` the hex SHA-1 of the token.
- SSH key: ``X-PublicKeys`` and ``X-Signatures`` carry the base64 SSH
  wire encodings of the public key and of the signature. The key is read
  from a file or used through ``ssh-agent``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import os
import struct
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import paramiko
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from adminapi.exceptions import ConfigurationError, SigningError

if TYPE_CHECKING:
    from adminapi.config import Settings

logger = logging.getLogger(__name__)

_ECDSA_HASHES = {
    "nistp256": hashes.SHA256,
    "nistp384": hashes.SHA384,
    "nistp521": hashes.SHA512,
}
_CURVE_NAMES = {
    "secp256r1": "nistp256",
    "secp384r1": "nistp384",
    "secp521r1": "nistp521",
}


class Signer(Protocol):
    """Produces authentication headers for one request."""

    def headers(self, timestamp: int, body: bytes) -> dict[str, str]:
        ...


def calc_message(timestamp: int, data: bytes) -> bytes:
    """Message that gets signed: ``<timestamp>:<data>``."""
    return str(timestamp).encode() + b":" + data


def calc_security_token(auth_token: bytes, timestamp: int, data: bytes) -> str:
    """Hex HMAC-SHA1 of ``timestamp:data`` keyed with *auth_token*."""
    return hmac.new(auth_token, calc_message(timestamp, data), hashlib.sha1).hexdigest()


def calc_app_id(auth_token: bytes) -> str:
    """Hex SHA-1 of the auth token, identifies the application."""
    return hashlib.sha1(auth_token).hexdigest()


class SecurityTokenSigner:
    """Signs requests with a shared secret token."""

    def __init__(self, token: str | bytes):
        if isinstance(token, str):
            token = token.encode()
        if not token:
            raise ConfigurationError("Security token must not be empty")
        self._token = token

    def headers(self, timestamp: int, body: bytes) -> dict[str, str]:
        return {
            "X-SecurityToken": calc_security_token(self._token, timestamp, body),
            "X-Application": calc_app_id(self._token),
        }


# =============================================================================
# SSH KEYS
# =============================================================================


def _ssh_string(data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + data


def _ssh_mpint(value: int) -> bytes:
    if value == 0:
        return _ssh_string(b"")
    data = value.to_bytes((value.bit_length() + 8) // 8, "big")
    return _ssh_string(data)


class SshKeySigner:
    """
    Signs requests with an SSH private key.

    Supports Ed25519, ECDSA (P-256, P-384, P-521) and RSA keys. RSA
    signatures use the ``ssh-rsa`` algorithm (SHA-1).
    """

    def __init__(self, private_key: serialization.SSHPrivateKeyTypes):
        if not isinstance(
            private_key,
            (ed25519.Ed25519PrivateKey, ec.EllipticCurvePrivateKey, rsa.RSAPrivateKey),
        ):
            raise SigningError(
                "Unsupported SSH key type",
                details={"key_type": type(private_key).__name__},
            )
        if isinstance(private_key, ec.EllipticCurvePrivateKey) \
                and private_key.curve.name not in _CURVE_NAMES:
            raise SigningError(
                "Unsupported ECDSA curve", details={"curve": private_key.curve.name}
            )
        self._key = private_key
        self._public_blob = self._encode_public_key()

    @classmethod
    def from_file(cls, path: str | Path, password: bytes | None = None) -> SshKeySigner:
        """Load an OpenSSH or PEM private key from *path*."""
        path = Path(path).expanduser()
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ConfigurationError(
                f"failed to read private key from {path}: {e.strerror or e}"
            ) from e
        return cls.from_bytes(data, password)

    @classmethod
    def from_bytes(cls, data: bytes, password: bytes | None = None) -> SshKeySigner:
        try:
            if b"OPENSSH PRIVATE KEY" in data:
                key = serialization.load_ssh_private_key(data, password=password)
            else:
                key = serialization.load_pem_private_key(data, password=password)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise SigningError(f"failed to parse private key: {e}") from e
        return cls(key)  # type: ignore[arg-type]

    @property
    def algorithm(self) -> str:
        if isinstance(self._key, ed25519.Ed25519PrivateKey):
            return "ssh-ed25519"
        if isinstance(self._key, ec.EllipticCurvePrivateKey):
            return f"ecdsa-sha2-{_CURVE_NAMES[self._key.curve.name]}"
        return "ssh-rsa"

    @property
    def public_key_blob(self) -> bytes:
        """SSH wire encoding of the public key."""
        return self._public_blob

    def _encode_public_key(self) -> bytes:
        line = self._key.public_key().public_bytes(
            serialization.Encoding.OpenSSH, serialization.PublicFormat.OpenSSH
        )
        # "<algorithm> <base64 blob>"
        return base64.b64decode(line.split()[1])

    def sign(self, message: bytes) -> bytes:
        """Sign *message* and return the SSH wire encoding of the signature."""
        key = self._key
        if isinstance(key, ed25519.Ed25519PrivateKey):
            signature = key.sign(message)
        elif isinstance(key, ec.EllipticCurvePrivateKey):
            curve = _CURVE_NAMES[key.curve.name]
            der = key.sign(message, ec.ECDSA(_ECDSA_HASHES[curve]()))
            r, s = decode_dss_signature(der)
            signature = _ssh_mpint(r) + _ssh_mpint(s)
        else:
            signature = key.sign(message, padding.PKCS1v15(), hashes.SHA1())
        return _ssh_string(self.algorithm.encode()) + _ssh_string(signature)

    def headers(self, timestamp: int, body: bytes) -> dict[str, str]:
        signature = self.sign(calc_message(timestamp, body))
        return {
            "X-PublicKeys": base64.b64encode(self._public_blob).decode(),
            "X-Signatures": base64.b64encode(signature).decode(),
        }


class SshAgentSigner:
    """
    Signs requests with a key held by a running ``ssh-agent``.

    The agent returns the signature already in SSH wire encoding.
    """

    def __init__(self, agent_key: paramiko.AgentKey):
        self._key = agent_key

    @classmethod
    def from_agent(cls, agent: paramiko.Agent | None = None) -> SshAgentSigner | None:
        """
        Use the first agent key that is able to sign.

        Returns None when the agent holds no usable key.

        Raises:
            ConfigurationError: If the agent cannot list its keys.
        """
        if agent is None:
            agent = paramiko.Agent()
        try:
            keys = agent.get_keys()
        except paramiko.SSHException as e:
            raise ConfigurationError(f"failed to get SSH agent signers: {e}") from e

        for key in keys:
            try:
                key.sign_ssh_data(b"test")
            except paramiko.SSHException as e:
                logger.debug("Skipping SSH agent key %s: %s", key.get_name(), e)
                continue
            return cls(key)
        return None

    @property
    def algorithm(self) -> str:
        return self._key.get_name()

    @property
    def public_key_blob(self) -> bytes:
        return self._key.asbytes()

    def sign(self, message: bytes) -> bytes:
        try:
            return bytes(self._key.sign_ssh_data(message))
        except paramiko.SSHException as e:
            raise SigningError(f"SSH agent failed to sign: {e}") from e

    def headers(self, timestamp: int, body: bytes) -> dict[str, str]:
        signature = self.sign(calc_message(timestamp, body))
        return {
            "X-PublicKeys": base64.b64encode(self.public_key_blob).decode(),
            "X-Signatures": base64.b64encode(signature).decode(),
        }


def signer_from_settings(settings: Settings) -> Signer:
    """
    Build the signer the settings ask for.

    Precedence: the SSH key at ``key_path``, then a key from the agent at
    ``SSH_AUTH_SOCK``, then the security token.
    """
    if settings.key_path is not None:
        logger.debug("Signing requests with SSH key %s", settings.key_path)
        return SshKeySigner.from_file(settings.key_path)
    if os.environ.get("SSH_AUTH_SOCK"):
        agent_signer = SshAgentSigner.from_agent()
        if agent_signer is not None:
            logger.debug("Signing requests with SSH agent key %s", agent_signer.algorithm)
            return agent_signer
    if settings.token:
        logger.debug("Signing requests with security token")
        return SecurityTokenSigner(settings.token)
    raise ConfigurationError(
        "no authentication method found: "
        "set SERVERADMIN_TOKEN/SERVERADMIN_KEY_PATH/SSH_AUTH_SOCK"
    )
