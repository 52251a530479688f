"""
Copyright (c) 2020, The Decred developers
See LICENSE for details
"""

import os

import nacl.exceptions
import nacl.signing
import pytest

from ptlc import DecodingError, PtlcError, VerificationFailure
from ptlc.crypto import schnorr
from ptlc.crypto.ed25519 import Scalar, basePointMul


def flipBit(b, i):
    b = bytearray(b)
    b[i // 8] ^= 1 << (i % 8)
    return bytes(b)


def jointSignature(msg, n=2):
    """
    An n-of-n aggregated signature, built from partial shares.
    """
    signers = [schnorr.keygen(os.urandom(32)) for _ in range(n)]
    nonces = [schnorr.keygen(os.urandom(32)) for _ in range(n)]
    K = schnorr.aggregate(*(kp.public for kp in signers))
    R = schnorr.aggregate(*(kp.public for kp in nonces))
    c = schnorr.challenge(R, K, msg)
    s = Scalar.zero()
    for x, r in zip(signers, nonces):
        s = s + r.secret + c * x.secret
    return K, schnorr.Signature(R, s)


def test_clamp():
    b = schnorr.clamp(bytes([0xFF] * 64))
    assert len(b) == 32
    assert b[0] == 0xF8
    assert b[31] == 0x7F
    b = schnorr.clamp(bytes(32))
    assert b[31] == 0x40


def test_keygen():
    for _ in range(10):
        seed = os.urandom(32)
        kp = schnorr.keygen(seed)
        # Same derivation as a standard Ed25519 key.
        vk = nacl.signing.SigningKey(seed).verify_key
        assert kp.public.bytes() == bytes(vk)
        assert basePointMul(kp.secret) == kp.public
        assert schnorr.keygen(seed).secret == kp.secret
    assert schnorr.keygen().public != schnorr.keygen().public
    with pytest.raises(PtlcError):
        schnorr.keygen(bytes(31))
    kp = schnorr.keygen()
    assert kp.public.hex() in repr(kp)


def test_verify_standard_signatures():
    """
    Signatures made by PyNaCl verify, so challenge derivation matches RFC 8032.
    """
    for _ in range(10):
        seed = os.urandom(32)
        sk = nacl.signing.SigningKey(seed)
        msg = os.urandom(40)
        sig = sk.sign(msg).signature
        pub = schnorr.keygen(seed).public
        assert schnorr.verify(pub, msg, sig)
        assert schnorr.verify(pub.bytes(), msg, sig)
        R = schnorr.Signature.fromBytes(sig).noncePoint
        c = schnorr.challenge(R, pub, msg)
        s = Scalar.fromBytes(sig[32:])
        assert basePointMul(s) == R + c * pub


def test_aggregated_signature():
    for n in (2, 3):
        msg = os.urandom(32)
        K, sig = jointSignature(msg, n)
        assert schnorr.verify(K, msg, sig)
        assert schnorr.verify(K, msg, sig.bytes())
        # A standard Ed25519 verifier accepts it too.
        nacl.signing.VerifyKey(K.bytes()).verify(msg, sig.bytes())


def test_bit_flips():
    msg = os.urandom(32)
    K, sig = jointSignature(msg)
    b = sig.bytes()
    for i in range(0, 512, 7):
        assert not schnorr.verify(K, msg, flipBit(b, i))
    for i in range(0, 256, 5):
        assert not schnorr.verify(K, flipBit(msg, i), b)
    with pytest.raises(nacl.exceptions.BadSignatureError):
        nacl.signing.VerifyKey(K.bytes()).verify(flipBit(msg, 0), b)


def test_verify_malformed():
    msg = os.urandom(32)
    K, sig = jointSignature(msg)
    b = sig.bytes()
    assert not schnorr.verify(K, msg, b[:63])
    assert not schnorr.verify(K, msg, b + b"\x00")
    assert not schnorr.verify(bytes(32), msg, b)
    assert not schnorr.verify(b"\x01" * 31, msg, b)
    # s + L is rejected.
    s = int.from_bytes(b[32:], "little") + 2 ** 252 + 27742317777372353535851937790883648493
    assert not schnorr.verify(K, msg, b[:32] + s.to_bytes(32, "little"))


def test_aggregate():
    a, b = schnorr.keygen(), schnorr.keygen()
    A, B = a.public, b.public
    assert schnorr.aggregate(A, B) == schnorr.aggregate(B, A)
    assert schnorr.aggregate(A, B) == basePointMul(a.secret + b.secret)
    assert schnorr.aggregate(A) == A
    with pytest.raises(VerificationFailure):
        schnorr.aggregate(A, basePointMul(-a.secret))
    with pytest.raises(PtlcError):
        schnorr.aggregate()


def test_challenge():
    a, r = schnorr.keygen(), schnorr.keygen()
    c1 = schnorr.challenge(r.public, a.public, b"msg")
    assert c1 == schnorr.challenge(r.public, a.public, b"msg")
    assert c1 != schnorr.challenge(r.public, a.public, b"msh")
    assert c1 != schnorr.challenge(a.public, r.public, b"msg")


def test_signature_encoding():
    msg = os.urandom(32)
    _, sig = jointSignature(msg)
    assert schnorr.Signature.fromBytes(sig.bytes()) == sig
    assert len({sig, schnorr.Signature.fromBytes(sig.bytes())}) == 1
    assert sig.hex() in repr(sig)
    with pytest.raises(DecodingError):
        schnorr.Signature.fromBytes(sig.bytes()[:63])
    with pytest.raises(DecodingError):
        schnorr.Signature.fromBytes(bytes(64))
