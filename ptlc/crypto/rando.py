"""
Copyright (c) 2019, Brian Stafford
Copyright (c) 2019-20, The Decred developers
See LICENSE for details
"""

import hashlib
import os

from ptlc import PtlcError


KEY_SIZE = 32
WIDE_SIZE = 64

MinSeedBytes = 16  # 128 bits
MaxSeedBytes = 64  # 512 bits


def checkSeedLength(length):
    """
    Check that seed length is correct.

    Args:
        length int: the seed length to be checked.

    Raises:
        PtlcError if length is not between MinSeedBytes and MaxSeedBytes
        included.
    """
    if length < MinSeedBytes or length > MaxSeedBytes:
        raise PtlcError(f"Invalid seed length {length}")


def generateSeed(length=MaxSeedBytes):
    """
    Generate a cryptographically-strong random seed.

    Returns:
        bytes: a random bytes object of the given length.

    Raises:
        PtlcError if length is not between MinSeedBytes and MaxSeedBytes
        included.
    """
    checkSeedLength(length)
    return os.urandom(length)


def newKeyRaw():
    """
    Generate random key material of KEY_SIZE length.

    Returns:
        bytes: a random object of KEY_SIZE length.
    """
    return generateSeed(KEY_SIZE)


def newWideRaw():
    """
    Generate WIDE_SIZE random bytes, suitable for reduction to a uniform
    scalar.

    Returns:
        bytes: a random object of WIDE_SIZE length.
    """
    return generateSeed(WIDE_SIZE)


class DeterministicRandomness:
    """
    A reproducible stand-in for newKeyRaw. Each call returns the next 32-byte
    block of SHA-512(seed ‖ counter). Intended for tests and simulations that
    need fixed swap transcripts. Never use it for real funds.
    """

    def __init__(self, seed):
        """
        Args:
            seed (bytes-like): The seed. Any length.
        """
        self.seed = bytes(seed)
        self.counter = 0

    def __call__(self):
        block = hashlib.sha512(
            self.seed + self.counter.to_bytes(8, "little")
        ).digest()
        self.counter += 1
        return block[:KEY_SIZE]
