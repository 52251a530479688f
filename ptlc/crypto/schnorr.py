"""
Copyright (c) 2020, The Decred developers
See LICENSE for details

Ed25519-compatible Schnorr primitives: key generation, challenge derivation,
key aggregation and verification. Signatures are only produced jointly, see
adaptor.py.
"""

import hashlib
import hmac
from functools import reduce as foldl

from ptlc import DecodingError, PtlcError, VerificationFailure

from . import rando
from .ed25519 import (
    POINT_SIZE,
    SCALAR_SIZE,
    CurvePoint,
    Scalar,
    basePointMul,
    scalarMul,
)


SIGNATURE_SIZE = POINT_SIZE + SCALAR_SIZE
SEED_SIZE = 32


def clamp(digest):
    """
    Prune the first half of a SHA-512 digest per RFC 8032 section 5.1.5. The
    lowest three bits of the first octet are cleared, the highest bit of the
    last octet is cleared, and the second highest bit of the last octet is set.

    Args:
        digest (bytes-like): At least 32 bytes.

    Returns:
        bytes: The clamped 32 bytes.
    """
    b = bytearray(digest[:32])
    b[0] &= 248
    b[31] &= 127
    b[31] |= 64
    return bytes(b)


class KeyPair:
    """
    A secret scalar and its public point.
    """

    def __init__(self, secret, public):
        """
        Args:
            secret (Scalar): The secret scalar.
            public (CurvePoint): secret·B.
        """
        self.secret = secret
        self.public = public

    @staticmethod
    def fromSecret(secret):
        """
        Build the KeyPair for a known secret scalar.
        """
        return KeyPair(secret, basePointMul(secret))

    def __repr__(self):
        return f"KeyPair(public={self.public.hex()})"


def keygen(randomness=None):
    """
    Derive a KeyPair from 32 bytes of randomness the way RFC 8032 derives an
    Ed25519 key from its seed, so the public point equals the standard Ed25519
    public key for the same seed.

    Args:
        randomness (bytes-like): Optional. 32 bytes. Fresh random bytes are
            used if not provided.

    Returns:
        KeyPair: The key pair.
    """
    if randomness is None:
        randomness = rando.newKeyRaw()
    randomness = bytes(randomness)
    if len(randomness) != SEED_SIZE:
        raise PtlcError(f"keygen needs {SEED_SIZE} bytes, got {len(randomness)}")
    digest = hashlib.sha512(randomness).digest()
    secret = Scalar.reduce(clamp(digest) + bytes(32))
    return KeyPair.fromSecret(secret)


def challenge(noncePoint, keyPoint, message):
    """
    The Schnorr challenge c = SHA-512(R ‖ A ‖ M) mod L, with R the nonce point
    and A the public key. This is the same hash Ed25519 verification uses, so
    the order of the concatenation is part of the wire contract.

    Args:
        noncePoint (CurvePoint): The (aggregated) nonce point R.
        keyPoint (CurvePoint): The (aggregated) public key A.
        message (bytes-like): The signed message.

    Returns:
        Scalar: The challenge.
    """
    h = hashlib.sha512()
    h.update(noncePoint.bytes())
    h.update(keyPoint.bytes())
    h.update(bytes(message))
    return Scalar.reduce(h.digest())


def aggregate(*points):
    """
    Sum public points into a 2-of-2 (or n-of-n) aggregated point. Nobody holds
    the aggregated secret unless every contributor's secret is known.

    Args:
        *points (CurvePoint): The points to aggregate.

    Returns:
        CurvePoint: The sum.

    Raises:
        VerificationFailure: The sum is the identity, which would make the
            aggregate key trivially signable.
    """
    if not points:
        raise PtlcError("nothing to aggregate")
    agg = foldl(lambda p, q: p + q, points)
    if agg.isIdentity():
        raise VerificationFailure("aggregated point is the identity")
    return agg


class Signature:
    """
    An Ed25519 signature, R ‖ s.
    """

    def __init__(self, noncePoint, s):
        """
        Args:
            noncePoint (CurvePoint): R.
            s (Scalar): s.
        """
        self.noncePoint = noncePoint
        self.s = s

    @staticmethod
    def fromBytes(b):
        """
        Decode a 64-byte signature.

        Raises:
            DecodingError
        """
        b = bytes(b)
        if len(b) != SIGNATURE_SIZE:
            raise DecodingError(
                f"signature must be {SIGNATURE_SIZE} bytes, got {len(b)}"
            )
        return Signature(CurvePoint.decode(b[:POINT_SIZE]), Scalar.fromBytes(b[POINT_SIZE:]))

    def bytes(self):
        return self.noncePoint.bytes() + self.s.bytes()

    def hex(self):
        return self.bytes().hex()

    def __eq__(self, other):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.bytes() == other.bytes()

    def __hash__(self):
        return hash(self.bytes())

    def __repr__(self):
        return f"Signature({self.hex()})"


def verify(pubkey, message, sig):
    """
    Verify an Ed25519 signature. Any input that fails to decode is reported as
    an invalid signature rather than raised.

    Verification requires sB = R + H(R,A,M)A, so R = sB - H(R,A,M)A .

    Args:
        pubkey (CurvePoint or bytes-like): The public key A.
        message (bytes-like): The message.
        sig (Signature or bytes-like): The 64-byte signature.

    Returns:
        bool: True if the signature is valid.
    """
    sig = sig.bytes() if isinstance(sig, Signature) else bytes(sig)
    # The top three bits of s must be clear, ruling out the trivially
    # malleable s + L.
    if len(sig) != SIGNATURE_SIZE or sig[63] & 224 != 0:
        return False
    try:
        A = pubkey if isinstance(pubkey, CurvePoint) else CurvePoint.decode(pubkey)
        s = Scalar.fromBytes(sig[POINT_SIZE:])
    except DecodingError:
        return False

    R = sig[:POINT_SIZE]
    h = hashlib.sha512()
    h.update(R)
    h.update(A.bytes())
    h.update(bytes(message))
    c = Scalar.reduce(h.digest())

    checkR = basePointMul(s) - scalarMul(c, A)
    return hmac.compare_digest(checkR.bytes(), R)
