"""
Copyright (c) 2020, The Decred developers
See LICENSE for details
"""

import random

import pytest

from ptlc.config import INITIATOR, RESPONDER, SwapConfig
from ptlc.crypto import rando
from ptlc.util import helpers


# Seed initialization is delegated to tests.
# random.seed(0)


@pytest.fixture
def randBytes():
    def _randBytes(low=0, high=50):
        return bytes(random.randint(0, 255) for _ in range(random.randint(low, high)))

    return _randBytes


@pytest.fixture(scope="module")
def prepareLogger(request):
    helpers.prepareLogging()


@pytest.fixture
def seededRandomness():
    """
    Build reproducible key material sources. Each label gets its own stream.
    """

    def _seeded(label):
        return rando.DeterministicRandomness(label.encode())

    return _seeded


INIT_SEED = "0f" * 32
RESP_SEED = "f0" * 32


@pytest.fixture
def swapConfigs():
    """
    A matching pair of initiator and responder configurations. Keyword
    arguments override both.
    """

    def _configs(initiator=None, responder=None):
        initCfg = SwapConfig(
            **{
                **dict(
                    role=INITIATOR,
                    seed=INIT_SEED,
                    assetId="ZNN",
                    amount=1000,
                    counterAssetId="QSR",
                    counterAmount=5000,
                    pollInterval=0.01,
                    confirmationTimeout=1,
                    receiveTimeout=5,
                ),
                **(initiator or {}),
            }
        )
        respCfg = SwapConfig(
            **{
                **dict(
                    role=RESPONDER,
                    seed=RESP_SEED,
                    assetId="QSR",
                    amount=5000,
                    counterAssetId="ZNN",
                    counterAmount=1000,
                    pollInterval=0.01,
                    confirmationTimeout=1,
                    receiveTimeout=5,
                ),
                **(responder or {}),
            }
        )
        return initCfg, respCfg

    return _configs
