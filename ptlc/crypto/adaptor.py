"""
Copyright (c) 2020, The Decred developers
See LICENSE for details

Adaptor signatures over aggregated Ed25519 keys.

Each signer i holds a signing secret x_i and a nonce secret r_i for a leg. For
a leg with aggregated key K = sum(X_i), aggregated nonce R = sum(R_i) + T and
challenge c = H(R ‖ K ‖ M), each signer produces the partial share

    s_i = r_i + c·x_i

The sum of the partial shares is a pre-signature. It is missing t, the
discrete log of the adaptor point T, so it is not yet a valid signature:

    pre·B = R - T + c·K

Adding t completes it, s = pre + t, and (R, s) is a standard Ed25519
signature under K. Anybody holding pre who later sees s learns t = s - pre.
"""

from functools import reduce as foldl

from ptlc import PtlcError

from .ed25519 import Scalar, basePointMul, scalarMul
from .schnorr import keygen


class AdaptorSecret(Scalar):
    """
    The hidden scalar t. It is never sent to the counterpart. The counterpart
    recovers it with extractAdaptorSecret once a completed signature is
    published.
    """

    __slots__ = ()

    @classmethod
    def generate(cls, randomness=None):
        """
        Generate a fresh adaptor secret. Derived like a signing key so that
        the same randomness source can be used for every secret in a swap.

        Args:
            randomness (bytes-like): Optional. 32 bytes.

        Returns:
            AdaptorSecret: The secret t.
        """
        return cls(keygen(randomness).secret.bytes())

    def point(self):
        """The public adaptor point T = t·B."""
        return basePointMul(self)


def createPreSignature(nonceSecret, signingSecret, challenge):
    """
    A signer's partial share r + c·x.

    Args:
        nonceSecret (Scalar): The signer's nonce secret for the leg.
        signingSecret (Scalar): The signer's signing secret for the leg.
        challenge (Scalar): The leg challenge.

    Returns:
        Scalar: The partial share.
    """
    return nonceSecret + challenge * signingSecret


def expectedCombination(noncePoint, keyPoint, challenge):
    """
    The point a correct share must multiply out to, R + c·K. For a single
    signer's partial, R and K are that signer's nonce and key points. For a
    combined pre-signature, R is the aggregated nonce without T and K is the
    aggregated key.

    Args:
        noncePoint (CurvePoint): The nonce point.
        keyPoint (CurvePoint): The key point.
        challenge (Scalar): The challenge.

    Returns:
        CurvePoint: R + c·K.
    """
    return noncePoint + scalarMul(challenge, keyPoint)


def verifyPreSignature(preSig, expected):
    """
    Check preSig·B == expected. This must pass before any message that depends
    on preSig is sent, or a malicious counterpart could learn t without
    settling its own side.

    Args:
        preSig (Scalar): A partial share or a combined pre-signature.
        expected (CurvePoint): See expectedCombination.

    Returns:
        bool: True if the share is consistent.
    """
    return basePointMul(preSig) == expected


def combine(*shares):
    """
    Sum partial shares into a pre-signature.

    Args:
        *shares (Scalar): The partial shares.

    Returns:
        Scalar: The combined pre-signature.
    """
    if not shares:
        raise PtlcError("no shares to combine")
    return foldl(lambda a, b: a + b, shares)


def completeSignature(preSig, t):
    """
    Fold the adaptor secret into a pre-signature.

    Args:
        preSig (Scalar): The combined pre-signature.
        t (Scalar): The adaptor secret.

    Returns:
        Scalar: s = preSig + t.
    """
    return preSig + t


def extractAdaptorSecret(completedSig, preSig):
    """
    Recover t from a completed signature and the matching pre-signature.

    Args:
        completedSig (Scalar): The s of a published signature.
        preSig (Scalar): The pre-signature it was completed from.

    Returns:
        AdaptorSecret: t = completedSig - preSig.
    """
    return AdaptorSecret((completedSig - preSig).bytes())
