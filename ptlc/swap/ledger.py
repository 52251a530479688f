"""
Copyright (c) 2020, The Decred developers
See LICENSE for details

The ledger collaborators the swap engine depends on, plus MemoryLedger, an
in-process ledger that enforces PTLC rules for simulations and tests.

A PTLC escrow holds funds until either a signature valid under its lock point
is presented before the expiration, or the expiration passes and the owner
reclaims. The signed message is SHA3-256(reference ‖ claimant address), so a
signature can only ever pay the claimant it was made for.
"""

import hashlib
import threading
import time

import nacl.exceptions
import nacl.signing

from ptlc import LedgerError, PtlcError
from ptlc.crypto import schnorr
from ptlc.crypto.ed25519 import CurvePoint
from ptlc.crypto.keystore import Address
from ptlc.util import helpers


log = helpers.getLogger("LEDGER")

ActionCreate = "create"
ActionUnlock = "unlock"
ActionReclaim = "reclaim"


def unlockMessage(reference, address):
    """
    The message an unlocking signature must sign.

    Args:
        reference (bytes): The escrow reference.
        address (Address): The claimant.

    Returns:
        bytes: SHA3-256(reference ‖ address).
    """
    return hashlib.sha3_256(bytes(reference) + address.bytes()).digest()


class EscrowInfo:
    """
    The ledger's view of an escrow.
    """

    def __init__(
        self,
        reference,
        owner,
        assetId,
        amount,
        expiration,
        lockPoint,
        confirmed=False,
        claimant=None,
        signature=None,
        reclaimed=False,
    ):
        """
        Args:
            reference (bytes): The escrow reference.
            owner (Address): The account that funded the escrow.
            assetId (str): The asset.
            amount (int): The locked amount, in atoms.
            expiration (int): UNIX time after which only the owner can reclaim.
            lockPoint (CurvePoint): The point an unlocking signature must verify
                under.
            confirmed (bool): Whether the create action is confirmed.
            claimant (Address): Optional. Set once unlocked.
            signature (bytes): Optional. The unlocking signature, once unlocked.
            reclaimed (bool): Whether the owner reclaimed after expiration.
        """
        self.reference = reference
        self.owner = owner
        self.assetId = assetId
        self.amount = amount
        self.expiration = expiration
        self.lockPoint = lockPoint
        self.confirmed = confirmed
        self.claimant = claimant
        self.signature = signature
        self.reclaimed = reclaimed

    @property
    def settled(self):
        return self.claimant is not None or self.reclaimed


class Confirmation:
    """
    The ledger's receipt for an unlock or reclaim.
    """

    def __init__(self, reference, recipient, assetId, amount):
        self.reference = reference
        self.recipient = recipient
        self.assetId = assetId
        self.amount = amount

    def __repr__(self):
        return (
            f"Confirmation(reference={self.reference.hex()}, "
            f"recipient={self.recipient.string()}, amount={self.amount} {self.assetId})"
        )


class LedgerTimeSource:
    """
    The ledger's notion of the current time, which escrow expirations are
    measured against.
    """

    def currentTime(self):
        """
        Returns:
            int: The UNIX timestamp of the ledger's latest state.
        """
        raise NotImplementedError


class EscrowService:
    """
    PTLC escrow actions. Every method raises LedgerError on failure.
    """

    def create(self, signer, assetId, amount, expiration, lockPoint):
        """
        Lock funds from the signer's account.

        Args:
            signer (Signer): The funding account.
            assetId (str): The asset.
            amount (int): The amount.
            expiration (int): UNIX expiration time.
            lockPoint (CurvePoint): The point unlocking signatures verify under.

        Returns:
            bytes: The escrow reference.
        """
        raise NotImplementedError

    def unlock(self, signer, reference, signature):
        """
        Claim an escrow for the signer's account.

        Args:
            signer (Signer): The claimant account.
            reference (bytes): The escrow reference.
            signature (bytes): 64-byte R ‖ s over unlockMessage.

        Returns:
            Confirmation: The receipt.
        """
        raise NotImplementedError

    def escrow(self, reference):
        """
        Look up an escrow.

        Args:
            reference (bytes): The escrow reference.

        Returns:
            EscrowInfo: The escrow.
        """
        raise NotImplementedError


class Ledger(LedgerTimeSource, EscrowService):
    """
    The full collaborator a SwapEngine is given.
    """

    pass


class SignedAction:
    """
    A ledger action authored by an account.
    """

    def __init__(self, kind, payload, address, publicKey, signature):
        self.kind = kind
        self.payload = payload
        self.address = address
        self.publicKey = publicKey
        self.signature = signature


class Signer:
    """
    Signer authors ledger actions for an account. Beyond signing, it is opaque
    to the swap engine.
    """

    def __init__(self, accountKey):
        """
        Args:
            accountKey (AccountKey): The account key.
        """
        self.accountKey = accountKey

    @property
    def address(self):
        return self.accountKey.address

    def sign(self, kind, payload):
        """
        Sign an action.

        Args:
            kind (str): The action kind.
            payload (bytes): The serialized action parameters.

        Returns:
            SignedAction: The signed action.
        """
        msg = kind.encode() + payload
        return SignedAction(
            kind,
            payload,
            self.address,
            self.accountKey.public.bytes(),
            self.accountKey.sign(msg),
        )


def waitForEscrow(ledger, reference, timeout, interval, sleep=time.sleep):
    """
    Poll the ledger until the escrow is confirmed.

    Args:
        ledger (EscrowService): The ledger.
        reference (bytes): The escrow reference.
        timeout (float): Seconds to wait before giving up.
        interval (float): Seconds between polls.
        sleep (func(float)): Optional. The sleep function.

    Returns:
        EscrowInfo: The confirmed escrow.

    Raises:
        LedgerError: The escrow was not confirmed before the timeout.
    """
    deadline = time.monotonic() + timeout
    while True:
        info = ledger.escrow(reference)
        if info.confirmed:
            return info
        if time.monotonic() >= deadline:
            raise LedgerError(
                f"escrow {reference.hex()} not confirmed after {timeout} seconds",
                retryable=True,
            )
        sleep(interval)


def waitForUnlock(ledger, reference, interval, sleep=time.sleep):
    """
    Poll the ledger until the escrow is unlocked or can no longer be unlocked.
    An escrow can't be unlocked once it has expired by the ledger's clock.

    Args:
        ledger (Ledger): The ledger.
        reference (bytes): The escrow reference.
        interval (float): Seconds between polls.
        sleep (func(float)): Optional. The sleep function.

    Returns:
        bytes: The published unlock signature, or None if the escrow expired
            without one.
    """
    while True:
        info = ledger.escrow(reference)
        if info.signature is not None:
            return info.signature
        if info.reclaimed or ledger.currentTime() >= info.expiration:
            return None
        sleep(interval)


class MemoryLedger(Ledger):
    """
    MemoryLedger is an in-process PTLC ledger. It keeps account balances,
    checks that actions are signed by the account they spend from, and
    enforces escrow expiration and unlock signatures.
    """

    def __init__(self, clock=None, confirmAfterPolls=0):
        """
        Args:
            clock (func() -> int): Optional. The ledger clock. Defaults to the
                system clock.
            confirmAfterPolls (int): Optional. How many escrow lookups report an
                escrow unconfirmed before it confirms.
        """
        self.clock = clock if clock else lambda: int(time.time())
        self.confirmAfterPolls = confirmAfterPolls
        self.balances = {}
        self.escrows = {}
        self.polls = {}
        self.nonce = 0
        self.lock = threading.Lock()

    def fund(self, address, assetId, amount):
        """
        Credit an account. Simulation setup only.
        """
        with self.lock:
            key = (address, assetId)
            self.balances[key] = self.balances.get(key, 0) + amount

    def balance(self, address, assetId):
        with self.lock:
            return self.balances.get((address, assetId), 0)

    def currentTime(self):
        return self.clock()

    def _checkAuthor(self, action):
        try:
            vk = nacl.signing.VerifyKey(action.publicKey)
            vk.verify(action.kind.encode() + action.payload, action.signature)
        except (nacl.exceptions.BadSignatureError, nacl.exceptions.ValueError):
            raise LedgerError(f"{action.kind}: bad action signature")
        if Address.fromPublicKey(_point(action.publicKey)) != action.address:
            raise LedgerError(f"{action.kind}: key does not match address")

    def create(self, signer, assetId, amount, expiration, lockPoint):
        if amount <= 0:
            raise LedgerError(f"invalid amount {amount}")
        payload = (
            assetId.encode()
            + amount.to_bytes(16, "little")
            + expiration.to_bytes(8, "little")
            + lockPoint.bytes()
        )
        action = signer.sign(ActionCreate, payload)
        self._checkAuthor(action)
        owner = action.address
        with self.lock:
            if expiration <= self.clock():
                raise LedgerError(f"expiration {expiration} is in the past")
            key = (owner, assetId)
            if self.balances.get(key, 0) < amount:
                raise LedgerError(f"insufficient {assetId} balance for {owner.string()}")
            self.balances[key] -= amount
            self.nonce += 1
            ref = hashlib.sha3_256(
                owner.bytes() + self.nonce.to_bytes(8, "little") + payload
            ).digest()
            self.escrows[ref] = EscrowInfo(
                reference=ref,
                owner=owner,
                assetId=assetId,
                amount=amount,
                expiration=expiration,
                lockPoint=lockPoint,
            )
            self.polls[ref] = 0
        log.info(
            f"escrow {ref.hex()} created by {owner.string()}: {amount} {assetId}, "
            f"expires {expiration}"
        )
        return ref

    def escrow(self, reference):
        with self.lock:
            info = self.escrows.get(bytes(reference))
            if info is None:
                raise LedgerError(f"unknown escrow {bytes(reference).hex()}")
            if not info.confirmed:
                self.polls[info.reference] += 1
                if self.polls[info.reference] > self.confirmAfterPolls:
                    info.confirmed = True
            return info

    def unlock(self, signer, reference, signature):
        reference = bytes(reference)
        signature = bytes(signature)
        action = signer.sign(ActionUnlock, reference + signature)
        self._checkAuthor(action)
        claimant = action.address
        with self.lock:
            info = self.escrows.get(reference)
            if info is None:
                raise LedgerError(f"unknown escrow {reference.hex()}")
            if not info.confirmed:
                raise LedgerError(f"escrow {reference.hex()} not confirmed", retryable=True)
            if info.settled:
                raise LedgerError(f"escrow {reference.hex()} already settled")
            if self.clock() >= info.expiration:
                raise LedgerError(f"escrow {reference.hex()} expired")
            msg = unlockMessage(reference, claimant)
            if not schnorr.verify(info.lockPoint, msg, signature):
                raise LedgerError(f"invalid unlock signature for escrow {reference.hex()}")
            info.claimant = claimant
            info.signature = signature
            key = (claimant, info.assetId)
            self.balances[key] = self.balances.get(key, 0) + info.amount
        log.info(f"escrow {reference.hex()} unlocked by {claimant.string()}")
        return Confirmation(reference, claimant, info.assetId, info.amount)

    def reclaim(self, signer, reference):
        """
        Return an expired escrow's funds to its owner.

        Args:
            signer (Signer): The escrow owner.
            reference (bytes): The escrow reference.

        Returns:
            Confirmation: The receipt.
        """
        reference = bytes(reference)
        action = signer.sign(ActionReclaim, reference)
        self._checkAuthor(action)
        with self.lock:
            info = self.escrows.get(reference)
            if info is None:
                raise LedgerError(f"unknown escrow {reference.hex()}")
            if info.owner != action.address:
                raise LedgerError("only the owner can reclaim an escrow")
            if info.settled:
                raise LedgerError(f"escrow {reference.hex()} already settled")
            if self.clock() < info.expiration:
                raise LedgerError(f"escrow {reference.hex()} not expired", retryable=True)
            info.reclaimed = True
            key = (info.owner, info.assetId)
            self.balances[key] = self.balances.get(key, 0) + info.amount
        log.info(f"escrow {reference.hex()} reclaimed by {info.owner.string()}")
        return Confirmation(reference, info.owner, info.assetId, info.amount)


def _point(b):
    try:
        return CurvePoint.decode(b)
    except PtlcError:
        raise LedgerError("action key is not a valid point")
