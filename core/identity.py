from typing import Optional, Protocol

import nacl.encoding
import nacl.hash
import nacl.utils

from utils.error_codes import ChatError, ErrorCodes
from utils.validators import truncate_signature


class IdentityResolver(Protocol):
    def resolve(self, address: Optional[str], client_signature: Optional[str]) -> str:
        ...


class FingerprintResolver:
    """
    Coarse moderation key: remote address plus the truncated client
    descriptor. Not an authentication signal; several people behind one
    address with the same browser collide, one person on two networks splits.
    """

    def resolve(self, address, client_signature):
        return f"{address or 'unknown'}::{truncate_signature(client_signature)}"


class HashedFingerprintResolver(FingerprintResolver):
    """
    Same fingerprint, reduced to a keyed BLAKE2b digest so raw client
    addresses are never kept as dictionary keys.
    """

    def __init__(self, secret: Optional[bytes] = None):
        if secret is None:
            secret = nacl.utils.random(32)
        # blake2b keys are capped at 64 bytes, so derive a fixed-size key
        self._key = nacl.hash.blake2b(secret, digest_size=32, encoder=nacl.encoding.RawEncoder)

    def resolve(self, address, client_signature):
        plain = super().resolve(address, client_signature)
        digest = nacl.hash.blake2b(
            plain.encode("utf-8"),
            digest_size=20,
            key=self._key,
            encoder=nacl.encoding.HexEncoder,
        )
        return digest.decode("ascii")


def make_resolver(scheme: str = "plain", secret: Optional[str] = None) -> IdentityResolver:
    if scheme == "plain":
        return FingerprintResolver()
    if scheme == "hashed":
        return HashedFingerprintResolver(secret.encode("utf-8") if secret else None)
    raise ChatError(ErrorCodes.ERR_CONFIG, f"Unknown identity scheme {scheme!r}")
