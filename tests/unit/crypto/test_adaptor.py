"""
Copyright (c) 2020, The Decred developers
See LICENSE for details
"""

import os

import nacl.signing
import pytest

from ptlc import PtlcError
from ptlc.crypto import adaptor, schnorr
from ptlc.crypto.adaptor import AdaptorSecret
from ptlc.crypto.ed25519 import Scalar


class Party:
    def __init__(self):
        self.sign = schnorr.keygen(os.urandom(32))
        self.nonce = schnorr.keygen(os.urandom(32))


class Leg:
    """
    A two-party leg with an adaptor point folded into the nonce.
    """

    def __init__(self, msg):
        self.t = AdaptorSecret.generate(os.urandom(32))
        self.T = self.t.point()
        self.a, self.b = Party(), Party()
        self.K = schnorr.aggregate(self.a.sign.public, self.b.sign.public)
        self.R = schnorr.aggregate(self.a.nonce.public, self.b.nonce.public, self.T)
        self.msg = msg
        self.c = schnorr.challenge(self.R, self.K, msg)

    def partial(self, p):
        return adaptor.createPreSignature(p.nonce.secret, p.sign.secret, self.c)

    def preSig(self):
        return adaptor.combine(self.partial(self.a), self.partial(self.b))


def test_partials():
    leg = Leg(b"leg message")
    for p in (leg.a, leg.b):
        expected = adaptor.expectedCombination(p.nonce.public, p.sign.public, leg.c)
        assert adaptor.verifyPreSignature(leg.partial(p), expected)
    # A partial checked against the other party's points fails.
    expected = adaptor.expectedCombination(
        leg.b.nonce.public, leg.b.sign.public, leg.c
    )
    assert not adaptor.verifyPreSignature(leg.partial(leg.a), expected)


def test_complete_and_extract():
    for _ in range(5):
        leg = Leg(os.urandom(32))
        pre = leg.preSig()
        expected = adaptor.expectedCombination(leg.R - leg.T, leg.K, leg.c)
        assert adaptor.verifyPreSignature(pre, expected)

        # The pre-signature alone is not a signature.
        assert not schnorr.verify(leg.K, leg.msg, schnorr.Signature(leg.R, pre))

        s = adaptor.completeSignature(pre, leg.t)
        sig = schnorr.Signature(leg.R, s)
        assert schnorr.verify(leg.K, leg.msg, sig)
        nacl.signing.VerifyKey(leg.K.bytes()).verify(leg.msg, sig.bytes())

        t = adaptor.extractAdaptorSecret(s, pre)
        assert isinstance(t, AdaptorSecret)
        assert t == leg.t
        assert t.point() == leg.T


def test_corrupted_pre_signature():
    leg = Leg(b"msg")
    pre = leg.preSig() + Scalar.fromInt(1)
    expected = adaptor.expectedCombination(leg.R - leg.T, leg.K, leg.c)
    assert not adaptor.verifyPreSignature(pre, expected)
    s = adaptor.completeSignature(pre, leg.t)
    assert not schnorr.verify(leg.K, leg.msg, schnorr.Signature(leg.R, s))


def test_extract_with_wrong_pre_signature():
    leg = Leg(b"msg")
    s = adaptor.completeSignature(leg.preSig(), leg.t)
    other = Leg(b"msg")
    t = adaptor.extractAdaptorSecret(s, other.preSig())
    assert t.point() != leg.T


def test_adaptor_secret():
    seed = os.urandom(32)
    t = AdaptorSecret.generate(seed)
    assert AdaptorSecret.generate(seed) == t
    assert AdaptorSecret.generate() != t
    assert t.point() == schnorr.keygen(seed).public
    assert t.hex() not in repr(t)


def test_combine():
    a, b, c = Scalar.random(), Scalar.random(), Scalar.random()
    assert adaptor.combine(a) == a
    assert adaptor.combine(a, b, c) == a + b + c
    with pytest.raises(PtlcError):
        adaptor.combine()
