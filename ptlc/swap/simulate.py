"""
Copyright (c) 2020, The Decred developers
See LICENSE for details

Run both parties of a swap in one process, each engine in its own thread,
over a MemoryChannel pair and a shared ledger.
"""

import threading

from ptlc import PtlcError
from ptlc.config import INITIATOR, RESPONDER
from ptlc.crypto.keystore import KeyStore
from ptlc.util import helpers

from .channel import MemoryChannel
from .engine import SwapEngine
from .ledger import MemoryLedger


log = helpers.getLogger("SIMULATE")


def accountAddress(cfg):
    """
    The account address a config's seed and account index derive.

    Args:
        cfg (SwapConfig): The configuration.

    Returns:
        Address: The address.
    """
    addr, _ = KeyStore.fromHex(cfg.seed).deriveForIndex(cfg.accountIndex)
    return addr


def runLocalSwap(
    initiatorCfg,
    responderCfg,
    ledger=None,
    fund=False,
    initiatorRandomness=None,
    responderRandomness=None,
    joinTimeout=None,
):
    """
    Run a complete swap attempt between two in-process engines.

    Args:
        initiatorCfg (SwapConfig): The initiator's configuration.
        responderCfg (SwapConfig): The responder's configuration.
        ledger (Ledger): Optional. The shared ledger. A new MemoryLedger is
            created if not provided.
        fund (bool): Optional. If True, credit each party's account with the
            amount it locks. Requires a MemoryLedger.
        initiatorRandomness (func() -> bytes): Optional. The initiator's key
            material source.
        responderRandomness (func() -> bytes): Optional. The responder's key
            material source.
        joinTimeout (float): Optional. Seconds to wait for each engine thread.

    Returns:
        SwapEngine: The initiator's engine.
        SwapEngine: The responder's engine.
        Ledger: The ledger.
    """
    if initiatorCfg.role != INITIATOR or responderCfg.role != RESPONDER:
        raise PtlcError("configs must be one initiator and one responder")
    if ledger is None:
        ledger = MemoryLedger()
    if fund:
        for cfg in (initiatorCfg, responderCfg):
            ledger.fund(accountAddress(cfg), cfg.assetId, cfg.amount)

    initChan, respChan = MemoryChannel.pair(INITIATOR, RESPONDER)
    engines = (
        SwapEngine.fromConfig(
            initiatorCfg, initChan, ledger, randomness=initiatorRandomness
        ),
        SwapEngine.fromConfig(
            responderCfg, respChan, ledger, randomness=responderRandomness
        ),
    )
    threads = [
        threading.Thread(target=engine.run, name=engine.role, daemon=True)
        for engine in engines
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(joinTimeout)
        if thread.is_alive():
            raise PtlcError(f"{thread.name} did not finish in {joinTimeout} seconds")

    initiator, responder = engines
    log.info(f"swap finished: initiator {initiator.state}, responder {responder.state}")
    return initiator, responder, ledger
