"""
Copyright (c) 2020, The Decred developers
See LICENSE for details

Full swaps between two engines running in their own threads.
"""

import pytest

from ptlc import PtlcError
from ptlc.crypto import schnorr
from ptlc.swap import simulate
from ptlc.swap.engine import SwapState
from ptlc.swap.ledger import MemoryLedger


def test_local_swap(swapConfigs, prepareLogger):
    initCfg, respCfg = swapConfigs()
    # Escrows take a few polls to confirm.
    ledger = MemoryLedger(confirmAfterPolls=2)
    initiator, responder, ledger = simulate.runLocalSwap(
        initCfg, respCfg, ledger=ledger, fund=True, joinTimeout=30
    )
    assert initiator.state == SwapState.Done
    assert responder.state == SwapState.Done

    initAddr = simulate.accountAddress(initCfg)
    respAddr = simulate.accountAddress(respCfg)
    assert ledger.balance(initAddr, "QSR") == respCfg.amount
    assert ledger.balance(respAddr, "ZNN") == initCfg.amount
    assert ledger.balance(initAddr, "ZNN") == 0
    assert ledger.balance(respAddr, "QSR") == 0

    # The signatures the ledger accepted are the ones the engines built.
    respEscrow = ledger.escrow(responder.localRef)
    initEscrow = ledger.escrow(initiator.localRef)
    assert respEscrow.signature == initiator.signature.bytes()
    assert initEscrow.signature == responder.signature.bytes()
    assert schnorr.verify(
        respEscrow.lockPoint, initiator.legInit.message, respEscrow.signature
    )
    assert schnorr.verify(
        initEscrow.lockPoint, responder.legResp.message, initEscrow.signature
    )
    assert initEscrow.expiration - respEscrow.expiration >= initCfg.expirationMargin


def test_seeded_local_swap(swapConfigs, seededRandomness, prepareLogger):
    initCfg, respCfg = swapConfigs()
    initiator, responder, _ = simulate.runLocalSwap(
        initCfg,
        respCfg,
        fund=True,
        initiatorRandomness=seededRandomness("alice"),
        responderRandomness=seededRandomness("bob"),
        joinTimeout=30,
    )
    assert (initiator.state, responder.state) == (SwapState.Done, SwapState.Done)


def test_unfunded_swap(swapConfigs, prepareLogger):
    initCfg, respCfg = swapConfigs()
    initiator, responder, ledger = simulate.runLocalSwap(
        initCfg, respCfg, joinTimeout=30
    )
    assert initiator.state == SwapState.Aborted
    assert responder.state == SwapState.Aborted
    assert initiator.failure.state == SwapState.KeysExchanged
    assert initiator.failure.recoverable


def test_roles(swapConfigs):
    initCfg, respCfg = swapConfigs()
    with pytest.raises(PtlcError):
        simulate.runLocalSwap(respCfg, initCfg)
