"""
Copyright (c) 2019, Brian Stafford
Copyright (c) 2019-2020, The Decred developers
See LICENSE for details

Account keys and addresses. Keys are derived from a seed with SLIP-0010
hardened Ed25519 derivation along m/44'/COIN_TYPE'/index'.
"""

import hashlib
import hmac

from base58 import b58decode, b58encode
from blake256.blake256 import blake_hash
import nacl.signing

from ptlc import DecodingError, PtlcError

from . import rando
from .schnorr import keygen


HARDENED_KEY_START = 2 ** 31
MASTER_KEY = b"ed25519 seed"
PURPOSE = 44
COIN_TYPE = 73404
ADDRESS_SIZE = 20
ADDRESS_CORE_SIZE = ADDRESS_SIZE - 1
USER_ADDRESS_TYPE = 0x00
CHECKSUM_SIZE = 4


def hmacDigest(key, msg, digestmod=hashlib.sha512):
    """
    Get the hmac keyed hash.

    Args:
        key (byte-like): the key
        msg (byte-like): the message
        digestmod (digest): A hashlib digest type constant.

    Returns:
        bytes: The secure hash of msg.
    """
    h = hmac.new(key, msg=msg, digestmod=digestmod)
    return h.digest()


def checksum(b):
    """
    A checksum.

    Args:
        b (byte-like): Bytes to obtain a checksum for.

    Returns:
        bytes: A 4-byte checksum.
    """
    return blake_hash(blake_hash(b))[:CHECKSUM_SIZE]


class Address:
    """
    An account address: a type byte followed by the first 19 bytes of the
    SHA3-256 hash of the account public key. The bytes are what signed
    messages commit to. The string form is base58 with a checksum.
    """

    def __init__(self, b):
        """
        Args:
            b (bytes-like): The 20 address bytes.
        """
        b = bytes(b)
        if len(b) != ADDRESS_SIZE:
            raise DecodingError(f"address must be {ADDRESS_SIZE} bytes, got {len(b)}")
        self.b = b

    @staticmethod
    def fromPublicKey(pubkey):
        """
        Args:
            pubkey (CurvePoint): The account public key.

        Returns:
            Address: The user address for the key.
        """
        core = hashlib.sha3_256(pubkey.bytes()).digest()[:ADDRESS_CORE_SIZE]
        return Address(bytes([USER_ADDRESS_TYPE]) + core)

    @staticmethod
    def decode(s):
        """
        Decode the string form.

        Args:
            s (str): The base58 address string.

        Returns:
            Address: The address.

        Raises:
            DecodingError: Bad encoding, length or checksum.
        """
        try:
            decoded = b58decode(s)
        except ValueError as e:
            raise DecodingError(f"invalid address string {s!r}: {e}")
        if len(decoded) != ADDRESS_SIZE + CHECKSUM_SIZE:
            raise DecodingError(f"invalid address length for {s!r}")
        b, check = decoded[:ADDRESS_SIZE], decoded[ADDRESS_SIZE:]
        if checksum(b) != check:
            raise DecodingError(f"checksum mismatch for {s!r}")
        return Address(b)

    def string(self):
        """
        The base58 string form.
        """
        return b58encode(self.b + checksum(self.b)).decode()

    def bytes(self):
        return self.b

    def __eq__(self, other):
        if not isinstance(other, Address):
            return NotImplemented
        return self.b == other.b

    def __hash__(self):
        return hash(self.b)

    def __repr__(self):
        return f"Address({self.string()})"


class AccountKey:
    """
    The long-lived account key used to author ledger actions. It signs with
    plain Ed25519 through PyNaCl. Swap keys are separate and ephemeral.
    """

    def __init__(self, seed):
        """
        Args:
            seed (bytes): The 32-byte Ed25519 seed for the account.
        """
        self.keyPair = keygen(seed)
        self.signingKey = nacl.signing.SigningKey(bytes(seed))
        self.address = Address.fromPublicKey(self.keyPair.public)

    @property
    def public(self):
        return self.keyPair.public

    def sign(self, msg):
        """
        Sign the message.

        Args:
            msg (bytes-like): The message.

        Returns:
            bytes: The 64-byte Ed25519 signature.
        """
        return self.signingKey.sign(bytes(msg)).signature


class KeyStore:
    """
    KeyStore derives account keys from a seed.
    """

    def __init__(self, seed):
        """
        Args:
            seed (bytes-like): The wallet seed, between rando.MinSeedBytes and
                rando.MaxSeedBytes long.
        """
        seed = bytes(seed)
        rando.checkSeedLength(len(seed))
        I = hmacDigest(MASTER_KEY, seed)
        self.key, self.chainCode = I[:32], I[32:]

    @staticmethod
    def fromHex(s):
        try:
            return KeyStore(bytes.fromhex(s))
        except ValueError as e:
            raise DecodingError(f"invalid seed hex: {e}")

    def child(self, key, chainCode, i):
        """
        Hardened SLIP-0010 child derivation. Ed25519 has no non-hardened
        derivation.

        Args:
            key (bytes): The parent key.
            chainCode (bytes): The parent chain code.
            i (int): The child index, < HARDENED_KEY_START.

        Returns:
            bytes: The child key.
            bytes: The child chain code.
        """
        if i < 0 or i >= HARDENED_KEY_START:
            raise PtlcError(f"child index {i} out of range")
        data = b"\x00" + key + (i + HARDENED_KEY_START).to_bytes(4, "big")
        I = hmacDigest(chainCode, data)
        return I[:32], I[32:]

    def derivePath(self, path):
        """
        Derive the key along a path of hardened indices.

        Args:
            path (list(int)): The indices, without the hardened offset.

        Returns:
            bytes: The derived 32-byte key.
        """
        key, chainCode = self.key, self.chainCode
        for i in path:
            key, chainCode = self.child(key, chainCode, i)
        return key

    def deriveForIndex(self, idx):
        """
        Derive the account key at m/44'/COIN_TYPE'/idx'.

        Args:
            idx (int): The account index.

        Returns:
            Address: The account address.
            AccountKey: The account key.
        """
        acctKey = AccountKey(self.derivePath([PURPOSE, COIN_TYPE, idx]))
        return acctKey.address, acctKey
