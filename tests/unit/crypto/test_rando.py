"""
Copyright (c) 2020, The Decred developers
See LICENSE for details
"""

import pytest

from ptlc import PtlcError
from ptlc.crypto import rando, schnorr
from ptlc.crypto.adaptor import AdaptorSecret
from ptlc.crypto.ed25519 import Scalar


def test_checkSeedLength():
    with pytest.raises(PtlcError):
        rando.checkSeedLength(rando.MinSeedBytes - 1)
    assert rando.checkSeedLength(rando.MinSeedBytes) is None
    assert rando.checkSeedLength(rando.KEY_SIZE) is None
    assert rando.checkSeedLength(rando.MaxSeedBytes) is None
    with pytest.raises(PtlcError):
        rando.checkSeedLength(rando.MaxSeedBytes + 1)


def test_generate():
    assert len(rando.generateSeed()) == rando.MaxSeedBytes
    assert len(rando.newKeyRaw()) == rando.KEY_SIZE
    assert len(rando.newWideRaw()) == rando.WIDE_SIZE
    assert rando.newKeyRaw() != rando.newKeyRaw()
    with pytest.raises(PtlcError):
        rando.generateSeed(8)


def test_DeterministicRandomness():
    r1 = rando.DeterministicRandomness(b"seed")
    r2 = rando.DeterministicRandomness(b"seed")
    blocks = [r1() for _ in range(4)]
    assert blocks == [r2() for _ in range(4)]
    assert len(set(blocks)) == 4
    assert all(len(b) == rando.KEY_SIZE for b in blocks)
    assert rando.DeterministicRandomness(b"other")() != blocks[0]


def test_wide_scalars():
    b = rando.newWideRaw()
    assert len(b) == rando.WIDE_SIZE
    # Wide randomness reduces to a canonical scalar.
    assert len(Scalar.reduce(b).bytes()) == 32
    assert Scalar.random() != Scalar.random()


def test_DeterministicRandomness_keys():
    # Equal seeds give equal swap keys and adaptor secrets.
    k1 = schnorr.keygen(rando.DeterministicRandomness(b"alice")())
    k2 = schnorr.keygen(rando.DeterministicRandomness(b"alice")())
    assert k1.public == k2.public
    t1 = AdaptorSecret.generate(rando.DeterministicRandomness(b"t")())
    t2 = AdaptorSecret.generate(rando.DeterministicRandomness(b"t")())
    assert t1.point() == t2.point()
    assert t1.point() != k1.public
