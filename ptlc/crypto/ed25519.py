"""
Copyright (c) 2020, The Decred developers
See LICENSE for details

Scalar and point arithmetic on edwards25519, beyond what plain Ed25519
sign/verify exposes. Point addition is what makes dealer-free 2-of-2 key
aggregation possible, and scalar addition/subtraction is what adaptor
signatures are made of.

All group and scalar operations are delegated to libsodium through PyNaCl's
low-level bindings, which are constant time with respect to scalars.

References:
  [RFC8032]: Edwards-Curve Digital Signature Algorithm (EdDSA)
    https://tools.ietf.org/html/rfc8032

  libsodium "Finite field arithmetic" documentation
    https://doc.libsodium.org/advanced/point-arithmetic
"""

import hmac

import nacl.bindings as sodium
import nacl.exceptions

from ptlc import DecodingError, VerificationFailure

from . import rando


POINT_SIZE = 32
SCALAR_SIZE = 32
WIDE_SCALAR_SIZE = 64

# L is the order of the prime-order subgroup generated by the base point.
L = 2 ** 252 + 27742317777372353535851937790883648493

_identityBytes = bytes([1]) + bytes(31)
_zeroBytes = bytes(SCALAR_SIZE)


def _hex(s, size):
    """
    Decode a hex string of an expected byte length.

    Raises:
        DecodingError if s is not hex or is the wrong length.
    """
    try:
        b = bytes.fromhex(s)
    except (TypeError, ValueError) as e:
        raise DecodingError(f"invalid hex: {e}")
    if len(b) != size:
        raise DecodingError(f"expected {size} bytes, got {len(b)}")
    return b


class Scalar:
    """
    An integer modulo L, stored as its canonical 32-byte little-endian
    encoding. Scalars are immutable. External bytes should only be turned into
    a Scalar with fromBytes, fromHex or reduce.
    """

    __slots__ = ("_b",)

    def __init__(self, b):
        """
        Args:
            b (bytes-like): A canonical 32-byte encoding. Not checked. Use
                fromBytes for untrusted input.
        """
        self._b = bytes(b)

    @classmethod
    def fromBytes(cls, b):
        """
        Decode a canonical scalar.

        Args:
            b (bytes-like): 32 bytes, little-endian, value < L.

        Returns:
            Scalar: The decoded scalar.

        Raises:
            DecodingError: Wrong length or a value >= L.
        """
        b = bytes(b)
        if len(b) != SCALAR_SIZE:
            raise DecodingError(f"scalar must be {SCALAR_SIZE} bytes, got {len(b)}")
        # Comparing against the reduced value keeps the check branch-free with
        # respect to the scalar's contents.
        reduced = sodium.crypto_core_ed25519_scalar_reduce(b + _zeroBytes)
        if not hmac.compare_digest(reduced, b):
            raise DecodingError("non-canonical scalar")
        return cls(b)

    @classmethod
    def fromHex(cls, s):
        """
        Decode a canonical scalar from hex.

        Raises:
            DecodingError
        """
        return cls.fromBytes(_hex(s, SCALAR_SIZE))

    @classmethod
    def reduce(cls, b):
        """
        Map a 64-byte value, usually a SHA-512 digest, to a scalar mod L.

        Args:
            b (bytes-like): 64 bytes, little-endian.

        Returns:
            Scalar: The reduced scalar.
        """
        b = bytes(b)
        if len(b) != WIDE_SCALAR_SIZE:
            raise DecodingError(
                f"wide scalar must be {WIDE_SCALAR_SIZE} bytes, got {len(b)}"
            )
        return cls(sodium.crypto_core_ed25519_scalar_reduce(b))

    @classmethod
    def fromInt(cls, i):
        """
        The scalar i mod L. Intended for tests and constants, never for secret
        values.
        """
        return cls((i % L).to_bytes(SCALAR_SIZE, "little"))

    @classmethod
    def random(cls):
        """
        A uniformly distributed random scalar.
        """
        return cls.reduce(rando.newWideRaw())

    @classmethod
    def zero(cls):
        return cls(_zeroBytes)

    def add(self, other):
        return Scalar(sodium.crypto_core_ed25519_scalar_add(self._b, other._b))

    def sub(self, other):
        return Scalar(sodium.crypto_core_ed25519_scalar_sub(self._b, other._b))

    def mul(self, other):
        return Scalar(sodium.crypto_core_ed25519_scalar_mul(self._b, other._b))

    def neg(self):
        return Scalar(sodium.crypto_core_ed25519_scalar_negate(self._b))

    def __add__(self, other):
        return self.add(other)

    def __sub__(self, other):
        return self.sub(other)

    def __mul__(self, other):
        if isinstance(other, CurvePoint):
            return scalarMul(self, other)
        return self.mul(other)

    def __neg__(self):
        return self.neg()

    def __eq__(self, other):
        if not isinstance(other, Scalar):
            return NotImplemented
        return hmac.compare_digest(self._b, other._b)

    def __ne__(self, other):
        eq = self.__eq__(other)
        return eq if eq is NotImplemented else not eq

    __hash__ = None

    def __repr__(self):
        # Scalars are usually secrets. Don't print them.
        return f"{type(self).__name__}(...)"

    def iszero(self):
        """True if the scalar is zero."""
        return hmac.compare_digest(self._b, _zeroBytes)

    def basePoint(self):
        """The point self·B."""
        return basePointMul(self)

    def bytes(self):
        """The canonical 32-byte encoding."""
        return self._b

    def hex(self):
        return self._b.hex()

    def int(self):
        """The scalar as an integer. Intended for tests."""
        return int.from_bytes(self._b, "little")


class CurvePoint:
    """
    A point in the prime-order subgroup of edwards25519, held as its 32-byte
    compressed encoding. Untrusted bytes must go through decode, which
    rejects anything that is not the canonical encoding of a subgroup point.
    Points produced by arithmetic are trusted.
    """

    __slots__ = ("_b",)

    def __init__(self, b):
        """
        Args:
            b (bytes-like): A 32-byte point encoding. Not checked. Use decode
                for untrusted input.
        """
        self._b = bytes(b)

    @classmethod
    def decode(cls, b):
        """
        Decode a compressed point.

        Args:
            b (bytes-like): 32 bytes.

        Returns:
            CurvePoint: The point.

        Raises:
            DecodingError: The bytes are the wrong length, non-canonical, not
                on the curve, of small order, or outside the main subgroup.
        """
        b = bytes(b)
        if len(b) != POINT_SIZE:
            raise DecodingError(f"point must be {POINT_SIZE} bytes, got {len(b)}")
        if not sodium.crypto_core_ed25519_is_valid_point(b):
            raise DecodingError(f"invalid curve point {b.hex()}")
        return cls(b)

    @classmethod
    def fromHex(cls, s):
        """
        Decode a point from hex.

        Raises:
            DecodingError
        """
        return cls.decode(_hex(s, POINT_SIZE))

    @classmethod
    def identity(cls):
        return cls(_identityBytes)

    def isIdentity(self):
        return self._b == _identityBytes

    def add(self, other):
        return add(self, other)

    def sub(self, other):
        return sub(self, other)

    def mul(self, scalar):
        return scalarMul(scalar, self)

    def __add__(self, other):
        return add(self, other)

    def __sub__(self, other):
        return sub(self, other)

    def __eq__(self, other):
        if not isinstance(other, CurvePoint):
            return NotImplemented
        return self._b == other._b

    def __ne__(self, other):
        eq = self.__eq__(other)
        return eq if eq is NotImplemented else not eq

    def __hash__(self):
        return hash(self._b)

    def __repr__(self):
        return f"CurvePoint({self._b.hex()})"

    def bytes(self):
        """The 32-byte compressed encoding."""
        return self._b

    def hex(self):
        return self._b.hex()


# B is the Ed25519 base point.
BASE = CurvePoint(bytes.fromhex(
    "5866666666666666666666666666666666666666666666666666666666666666"
))


def decode(b):
    """
    Decode a compressed point. See CurvePoint.decode.
    """
    return CurvePoint.decode(b)


def reduce(b):
    """
    Reduce a 64-byte value to a scalar. See Scalar.reduce.
    """
    return Scalar.reduce(b)


def add(p, q):
    """
    The group operation p + q.

    Args:
        p (CurvePoint): A point.
        q (CurvePoint): Another point.

    Returns:
        CurvePoint: The sum.
    """
    return CurvePoint(sodium.crypto_core_ed25519_add(p.bytes(), q.bytes()))


def sub(p, q):
    """
    p - q.
    """
    return CurvePoint(sodium.crypto_core_ed25519_sub(p.bytes(), q.bytes()))


def scalarMul(s, p):
    """
    The point s·p.

    Args:
        s (Scalar): The scalar.
        p (CurvePoint): The point.

    Returns:
        CurvePoint: The product.
    """
    # libsodium refuses to produce the identity, which is the correct product
    # for a zero scalar or the identity point.
    if s.iszero() or p.isIdentity():
        return CurvePoint.identity()
    if p == BASE:
        return basePointMul(s)
    try:
        return CurvePoint(
            sodium.crypto_scalarmult_ed25519_noclamp(s.bytes(), p.bytes())
        )
    except nacl.exceptions.RuntimeError:
        raise VerificationFailure(f"scalar multiplication failed for point {p.hex()}")


def basePointMul(s):
    """
    The point s·B.

    Args:
        s (Scalar): The scalar.

    Returns:
        CurvePoint: The product.
    """
    if s.iszero():
        return CurvePoint.identity()
    return CurvePoint(sodium.crypto_scalarmult_ed25519_base_noclamp(s.bytes()))
