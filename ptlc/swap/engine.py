"""
Copyright (c) 2020, The Decred developers
See LICENSE for details

SwapEngine runs one party's side of a PTLC atomic swap.

The initiator holds the adaptor secret t. Each party funds an escrow locked
to an aggregated key it shares with the counterpart. There are two legs,
named by the party that completes and publishes the leg's signature:

    initiator leg: key Ki = Xi,i + Xr,i   unlocks the responder's escrow
    responder leg: key Kr = Xi,r + Xr,r   unlocks the initiator's escrow

Both legs use a nonce that includes T, so both pre-signatures are missing t.
When the initiator completes and publishes its leg, the responder subtracts
the pre-signature it built and learns t, which completes the responder leg.
"""

import hashlib
import time

from ptlc import ProtocolViolation, PtlcError, SwapAborted, VerificationFailure
from ptlc.config import INITIATOR, RESPONDER
from ptlc.crypto import adaptor, rando, schnorr
from ptlc.crypto.adaptor import AdaptorSecret
from ptlc.crypto.keystore import KeyStore
from ptlc.util import helpers

from . import wire
from .ledger import Signer, unlockMessage, waitForEscrow, waitForUnlock


log = helpers.getLogger("SWAP")


class SwapState:
    """
    The states of a swap attempt. Done and Aborted are terminal.
    """

    Init = "Init"
    KeysExchanged = "KeysExchanged"
    LocalEscrowFunded = "LocalEscrowFunded"
    RemoteEscrowObserved = "RemoteEscrowObserved"
    ChallengesExchanged = "ChallengesExchanged"
    AdaptorPreSigExchanged = "AdaptorPreSigExchanged"
    CounterpartUnlocked = "CounterpartUnlocked"
    LocalCompleted = "LocalCompleted"
    Done = "Done"
    Aborted = "Aborted"

    # The happy path, in order. Aborted can follow any non-terminal state.
    Sequence = (
        Init,
        KeysExchanged,
        LocalEscrowFunded,
        RemoteEscrowObserved,
        ChallengesExchanged,
        AdaptorPreSigExchanged,
        CounterpartUnlocked,
        LocalCompleted,
        Done,
    )

    @staticmethod
    def isTerminal(state):
        return state in (SwapState.Done, SwapState.Aborted)

    @staticmethod
    def canTransition(old, new):
        if SwapState.isTerminal(old):
            return False
        if new == SwapState.Aborted:
            return True
        seq = SwapState.Sequence
        return new in seq and seq.index(new) == seq.index(old) + 1


class SwapFailure:
    """
    The context of an aborted swap attempt.
    """

    def __init__(self, role, state, error, recoverable, secretRevealed, retryable):
        """
        Args:
            role (str): INITIATOR or RESPONDER.
            state (str): The state the engine was in when it failed.
            error (PtlcError): The cause.
            recoverable (bool): False if funds may be one-sided at risk and
                need external remedy. Otherwise the escrow refund path covers
                the failure.
            secretRevealed (bool): Whether the ledger has accepted a signature
                carrying t.
            retryable (bool): Whether the failed action was an unlock that
                can be resubmitted with retryUnlock.
        """
        self.role = role
        self.state = state
        self.error = error
        self.recoverable = recoverable
        self.secretRevealed = secretRevealed
        self.retryable = retryable

    def __str__(self):
        return (
            f"{self.role} aborted in state {self.state}: "
            f"{type(self.error).__name__}: {self.error} "
            f"(recoverable={self.recoverable}, secretRevealed={self.secretRevealed}, "
            f"retryable={self.retryable})"
        )


class PartyKeys:
    """
    One party's ephemeral signing and nonce key pairs for both legs.
    """

    def __init__(self, randomness):
        """
        Args:
            randomness (func() -> bytes): Source of 32-byte keygen inputs.
        """
        self.signInit = schnorr.keygen(randomness())
        self.signResp = schnorr.keygen(randomness())
        self.nonceInit = schnorr.keygen(randomness())
        self.nonceResp = schnorr.keygen(randomness())

    def message(self, adaptorPoint=None):
        """
        The public points as a MsgKeys.
        """
        return wire.MsgKeys(
            signInit=self.signInit.public,
            signResp=self.signResp.public,
            nonceInit=self.nonceInit.public,
            nonceResp=self.nonceResp.public,
            adaptor=adaptorPoint,
        )


class Leg:
    """
    The public, jointly derived values for one leg.
    """

    def __init__(self, key, nonce):
        """
        Args:
            key (CurvePoint): The aggregated signing key.
            nonce (CurvePoint): The aggregated nonce, including T.
        """
        self.key = key
        self.nonce = nonce
        self.message = None
        self.challenge = None

    def bind(self, message):
        """
        Set the message and derive the challenge.

        Args:
            message (bytes): The unlock message for the leg.
        """
        self.message = message
        self.challenge = schnorr.challenge(self.nonce, self.key, message)


class SwapEngine:
    """
    SwapEngine is the state machine for one party. Create one per swap
    attempt and call run. All coordination with the counterpart goes through
    the channel, and all escrow actions through the ledger.
    """

    def __init__(
        self,
        role,
        channel,
        ledger,
        signer,
        assetId,
        amount,
        counterAssetId,
        counterAmount,
        safetyWindow=10 * 60 * 60,
        expirationMargin=60 * 60,
        pollInterval=10,
        confirmationTimeout=10 * 60,
        receiveTimeout=None,
        randomness=None,
        sleep=time.sleep,
    ):
        """
        Args:
            role (str): INITIATOR or RESPONDER.
            channel (Channel): The channel to the counterpart.
            ledger (Ledger): The ledger collaborator.
            signer (Signer): This party's account signer.
            assetId (str): The asset this party locks.
            amount (int): The amount this party locks.
            counterAssetId (str): The asset expected from the counterpart.
            counterAmount (int): The minimum amount expected from the
                counterpart.
            safetyWindow (int): The initiator's escrow lifetime, seconds.
            expirationMargin (int): The minimum gap between the initiator's
                and the responder's escrow expirations, seconds.
            pollInterval (float): Seconds between ledger polls.
            confirmationTimeout (float): Seconds to wait for an escrow to
                confirm.
            receiveTimeout (float): Optional. Liveness timeout for counterpart
                messages. None blocks.
            randomness (func() -> bytes): Optional. Source of 32-byte key
                material. Defaults to the OS random source. Keys and t must be
                fresh for every attempt.
            sleep (func(float)): Optional. The sleep used between polls.
        """
        if role not in (INITIATOR, RESPONDER):
            raise PtlcError(f"invalid role {role!r}")
        self.role = role
        self.channel = channel
        self.ledger = ledger
        self.signer = signer
        self.assetId = assetId
        self.amount = amount
        self.counterAssetId = counterAssetId
        self.counterAmount = counterAmount
        self.safetyWindow = safetyWindow
        self.expirationMargin = expirationMargin
        self.pollInterval = pollInterval
        self.confirmationTimeout = confirmationTimeout
        self.receiveTimeout = receiveTimeout
        self.randomness = randomness if randomness else rando.newKeyRaw
        self.sleep = sleep

        self.state = SwapState.Init
        self.failure = None
        self.counterpartAddress = None
        self.keys = None
        self.adaptorSecret = None
        self.adaptorPoint = None
        self.initKeys = None
        self.respKeys = None
        self.legInit = None
        self.legResp = None
        self.expiration = None
        self.localRef = None
        self.remoteRef = None
        self.partials = None
        self.preInit = None
        self.preResp = None
        self.signature = None
        self.confirmation = None
        self.pendingUnlock = None
        self.secretRevealed = False
        self.counterpartUnlocked = False

    @staticmethod
    def fromConfig(cfg, channel, ledger, **k):
        """
        Create a SwapEngine from a validated SwapConfig. The account is
        derived from the configured seed and account index.

        Args:
            cfg (SwapConfig): The configuration.
            channel (Channel): The channel to the counterpart.
            ledger (Ledger): The ledger collaborator.
            **k: Passed to the constructor, e.g. randomness.

        Returns:
            SwapEngine: The engine.
        """
        cfg.validate()
        _, acctKey = KeyStore.fromHex(cfg.seed).deriveForIndex(cfg.accountIndex)
        return SwapEngine(
            role=cfg.role,
            channel=channel,
            ledger=ledger,
            signer=Signer(acctKey),
            assetId=cfg.assetId,
            amount=cfg.amount,
            counterAssetId=cfg.counterAssetId,
            counterAmount=cfg.counterAmount,
            safetyWindow=cfg.safetyWindow,
            expirationMargin=cfg.expirationMargin,
            pollInterval=cfg.pollInterval,
            confirmationTimeout=cfg.confirmationTimeout,
            receiveTimeout=cfg.receiveTimeout,
            **k,
        )

    @property
    def isInitiator(self):
        return self.role == INITIATOR

    @property
    def initiatorAddress(self):
        return self.signer.address if self.isInitiator else self.counterpartAddress

    @property
    def responderAddress(self):
        return self.counterpartAddress if self.isInitiator else self.signer.address

    def run(self):
        """
        Run the protocol to completion. Failures do not raise. They move the
        engine to Aborted and are recorded in the failure attribute. See
        raiseForFailure.

        Returns:
            str: The final state, Done or Aborted.
        """
        if self.state != SwapState.Init:
            raise PtlcError(f"{self.role}: run called in state {self.state}")
        log.info(f"{self.role}: starting swap as {self.signer.address.string()}")
        try:
            self.exchangeKeys()
            self.exchangeEscrows()
            self.exchangeChallenges()
            self.exchangePreSignatures()
            self.settle()
        except PtlcError as e:
            self.abort(e)
        except Exception as e:
            err = PtlcError(f"unexpected {type(e).__name__}: {e}")
            err.__cause__ = e
            self.abort(err)
        return self.state

    def raiseForFailure(self):
        """
        Raise SwapAborted if the attempt was aborted.
        """
        if self.failure:
            raise SwapAborted(self.failure)

    def transition(self, newState):
        if not SwapState.canTransition(self.state, newState):
            raise PtlcError(f"{self.role}: illegal transition {self.state} -> {newState}")
        log.info(f"{self.role}: {self.state} -> {newState}")
        self.state = newState

    def abort(self, err):
        """
        Move to Aborted and record the failure context.

        Args:
            err (PtlcError): The cause.
        """
        recoverable = not self.counterpartUnlocked
        self.failure = SwapFailure(
            role=self.role,
            state=self.state,
            error=err,
            recoverable=recoverable,
            secretRevealed=self.secretRevealed or self.counterpartUnlocked,
            retryable=self.pendingUnlock is not None,
        )
        msg = f"{self.failure}\n{helpers.formatTraceback(err)}"
        if recoverable:
            log.error(msg)
        else:
            log.critical(
                f"counterpart already unlocked, funds need manual remedy: {msg}"
            )
        self.transition(SwapState.Aborted)
        self.channel.close()

    def send(self, msg):
        log.debug(f"{self.role}: send {msg.command()}")
        self.channel.send(wire.writeMessage(msg))

    def receive(self, msgType):
        msg = wire.readMessage(self.channel.receive(self.receiveTimeout), msgType)
        log.debug(f"{self.role}: received {msg.command()}")
        return msg

    def exchangeKeys(self):
        """
        Hello exchange, key generation and key exchange. The responder commits
        to its keys before it sees the initiator's.
        """
        hello = wire.MsgHello(self.signer.address)
        if self.isInitiator:
            self.send(hello)
            theirHello = self.receive(wire.MsgHello)
        else:
            theirHello = self.receive(wire.MsgHello)
            self.send(hello)
        if theirHello.version != wire.ProtocolVersion:
            raise ProtocolViolation(
                f"unsupported protocol version {theirHello.version}"
            )
        self.counterpartAddress = theirHello.address

        self.keys = PartyKeys(self.randomness)
        if self.isInitiator:
            self.adaptorSecret = AdaptorSecret.generate(self.randomness())
            self.adaptorPoint = self.adaptorSecret.point()
            self.initKeys = self.keys.message(self.adaptorPoint)
            commitment = self.receive(wire.MsgKeyCommit).commitment
            self.send(self.initKeys)
            self.respKeys = self.receive(wire.MsgKeys)
            if self.respKeys.adaptor is not None:
                raise ProtocolViolation("responder sent an adaptor point")
            if hashlib.sha256(self.respKeys.encode()).digest() != commitment:
                raise VerificationFailure("responder keys do not match commitment")
        else:
            self.respKeys = self.keys.message()
            commitment = hashlib.sha256(self.respKeys.encode()).digest()
            self.send(wire.MsgKeyCommit(commitment))
            self.initKeys = self.receive(wire.MsgKeys)
            if self.initKeys.adaptor is None:
                raise ProtocolViolation("initiator sent no adaptor point")
            self.adaptorPoint = self.initKeys.adaptor
            self.send(self.respKeys)

        ik, rk, T = self.initKeys, self.respKeys, self.adaptorPoint
        self.legInit = Leg(
            key=schnorr.aggregate(ik.signInit, rk.signInit),
            nonce=schnorr.aggregate(ik.nonceInit, rk.nonceInit, T),
        )
        self.legResp = Leg(
            key=schnorr.aggregate(ik.signResp, rk.signResp),
            nonce=schnorr.aggregate(ik.nonceResp, rk.nonceResp, T),
        )
        self.transition(SwapState.KeysExchanged)

    def exchangeEscrows(self):
        """
        Fund this party's escrow and observe the counterpart's. The initiator
        funds first. The responder checks the initiator's escrow before
        funding its own, with an expiration at least expirationMargin earlier.
        """
        if self.isInitiator:
            self.expiration = self.ledger.currentTime() + self.safetyWindow
            self.localRef = self.fundEscrow(self.legResp.key)
            self.transition(SwapState.LocalEscrowFunded)
            self.send(wire.MsgEscrow(self.localRef))
            self.remoteRef = self.receive(wire.MsgEscrow).reference
            self.checkRemoteEscrow(self.legInit.key)
            self.transition(SwapState.RemoteEscrowObserved)
        else:
            self.remoteRef = self.receive(wire.MsgEscrow).reference
            info = self.checkRemoteEscrow(self.legResp.key)
            self.expiration = info.expiration - self.expirationMargin
            self.localRef = self.fundEscrow(self.legInit.key)
            self.transition(SwapState.LocalEscrowFunded)
            self.send(wire.MsgEscrow(self.localRef))
            self.transition(SwapState.RemoteEscrowObserved)

    def fundEscrow(self, lockPoint):
        """
        Create this party's escrow and wait for it to confirm.

        Args:
            lockPoint (CurvePoint): The counterpart leg's aggregated key.

        Returns:
            bytes: The escrow reference.
        """
        ref = self.ledger.create(
            self.signer, self.assetId, self.amount, self.expiration, lockPoint
        )
        log.info(
            f"{self.role}: funded escrow {ref.hex()} with {self.amount} {self.assetId}, "
            f"expires {self.expiration}"
        )
        waitForEscrow(
            self.ledger, ref, self.confirmationTimeout, self.pollInterval, self.sleep
        )
        return ref

    def checkRemoteEscrow(self, lockPoint):
        """
        Wait for the counterpart's escrow to confirm and check its terms.

        Args:
            lockPoint (CurvePoint): The key the escrow must be locked to.

        Returns:
            EscrowInfo: The counterpart's escrow.

        Raises:
            VerificationFailure: The escrow terms are not acceptable.
        """
        ref = self.remoteRef
        info = waitForEscrow(
            self.ledger, ref, self.confirmationTimeout, self.pollInterval, self.sleep
        )
        now = self.ledger.currentTime()
        if info.owner != self.counterpartAddress:
            raise VerificationFailure(f"escrow {ref.hex()} not funded by counterpart")
        if info.settled:
            raise VerificationFailure(f"escrow {ref.hex()} already settled")
        if info.assetId != self.counterAssetId:
            raise VerificationFailure(
                f"escrow {ref.hex()} holds {info.assetId}, expected {self.counterAssetId}"
            )
        if info.amount < self.counterAmount:
            raise VerificationFailure(
                f"escrow {ref.hex()} holds {info.amount}, expected {self.counterAmount}"
            )
        if info.lockPoint != lockPoint:
            raise VerificationFailure(f"escrow {ref.hex()} locked to the wrong key")
        if self.isInitiator:
            # The responder's escrow must expire first, with enough room for
            # the responder to claim after the initiator reveals t.
            if info.expiration > self.expiration - self.expirationMargin:
                raise VerificationFailure(
                    f"responder escrow expires at {info.expiration}, "
                    f"must be before {self.expiration - self.expirationMargin}"
                )
            if info.expiration <= now:
                raise VerificationFailure(f"escrow {ref.hex()} already expired")
        elif info.expiration - self.expirationMargin <= now + self.expirationMargin:
            raise VerificationFailure(
                f"initiator escrow expires at {info.expiration}, too soon to swap"
            )
        log.info(f"{self.role}: counterpart escrow {ref.hex()} verified")
        return info

    def exchangeChallenges(self):
        """
        Bind each leg to its unlock message, derive the challenges and compute
        this party's partial shares. The initiator sends its partials. The
        responder checks them.
        """
        if self.isInitiator:
            initRef, respRef = self.localRef, self.remoteRef
        else:
            initRef, respRef = self.remoteRef, self.localRef
        # Each leg signs over the escrow it unlocks and the address of the
        # party that claims it.
        self.legInit.bind(unlockMessage(respRef, self.initiatorAddress))
        self.legResp.bind(unlockMessage(initRef, self.responderAddress))

        k = self.keys
        self.partials = wire.MsgPartials(
            initLeg=adaptor.createPreSignature(
                k.nonceInit.secret, k.signInit.secret, self.legInit.challenge
            ),
            respLeg=adaptor.createPreSignature(
                k.nonceResp.secret, k.signResp.secret, self.legResp.challenge
            ),
        )
        if self.isInitiator:
            self.send(self.partials)
        else:
            theirs = self.receive(wire.MsgPartials)
            ik = self.initKeys
            for name, partial, nonce, key, leg in (
                ("initiator", theirs.initLeg, ik.nonceInit, ik.signInit, self.legInit),
                ("responder", theirs.respLeg, ik.nonceResp, ik.signResp, self.legResp),
            ):
                expected = adaptor.expectedCombination(nonce, key, leg.challenge)
                if not adaptor.verifyPreSignature(partial, expected):
                    raise VerificationFailure(
                        f"invalid initiator partial for the {name} leg"
                    )
            self.preInit = adaptor.combine(theirs.initLeg, self.partials.initLeg)
            self.preResp = adaptor.combine(theirs.respLeg, self.partials.respLeg)
        self.transition(SwapState.ChallengesExchanged)

    def exchangePreSignatures(self):
        """
        The responder sends the initiator-leg pre-signature and keeps the
        responder-leg pre-signature.
        """
        if self.isInitiator:
            self.preInit = self.receive(wire.MsgPreSig).preSig
        else:
            self.send(wire.MsgPreSig(self.preInit))
        self.transition(SwapState.AdaptorPreSigExchanged)

    def settle(self):
        if self.isInitiator:
            self.settleInitiator()
        else:
            self.settleResponder()

    def settleInitiator(self):
        """
        Check the pre-signature, complete it with t and claim the responder's
        escrow. Claiming publishes t to the responder.
        """
        leg = self.legInit
        expected = adaptor.expectedCombination(
            leg.nonce - self.adaptorPoint, leg.key, leg.challenge
        )
        if not adaptor.verifyPreSignature(self.preInit, expected):
            raise VerificationFailure("invalid pre-signature from responder")
        s = adaptor.completeSignature(self.preInit, self.adaptorSecret)
        sig = schnorr.Signature(leg.nonce, s)
        if not schnorr.verify(leg.key, leg.message, sig):
            raise VerificationFailure("completed initiator signature does not verify")
        self.signature = sig

        self.unlock(sig)
        self.transition(SwapState.CounterpartUnlocked)
        self.send(wire.MsgSignature(sig))
        self.transition(SwapState.LocalCompleted)
        self.transition(SwapState.Done)
        self.channel.close()

    def settleResponder(self):
        """
        Learn t from the initiator's published signature, complete the
        responder leg and claim the initiator's escrow.
        """
        theirSig = self.observeCompletedSignature()
        self.counterpartUnlocked = True
        self.transition(SwapState.CounterpartUnlocked)

        t = adaptor.extractAdaptorSecret(theirSig.s, self.preInit)
        if t.point() != self.adaptorPoint:
            raise VerificationFailure("extracted secret does not match adaptor point")
        leg = self.legResp
        s = adaptor.completeSignature(self.preResp, t)
        sig = schnorr.Signature(leg.nonce, s)
        if not schnorr.verify(leg.key, leg.message, sig):
            raise VerificationFailure("completed responder signature does not verify")
        self.signature = sig

        self.unlock(sig)
        self.transition(SwapState.LocalCompleted)
        self.transition(SwapState.Done)
        self.channel.close()

    def validInitiatorSignature(self, sig):
        leg = self.legInit
        return sig.noncePoint == leg.nonce and schnorr.verify(leg.key, leg.message, sig)

    def observeCompletedSignature(self):
        """
        Get the initiator's completed signature. It is expected over the
        channel. If the channel fails or carries a bad signature, the
        responder watches its own escrow, where the initiator's unlock
        publishes the signature. The initiator can claim at any time before
        the escrow expires, so the watch only ends at expiration.

        Returns:
            Signature: The initiator-leg signature.
        """
        try:
            sig = self.receive(wire.MsgSignature).signature
            if self.validInitiatorSignature(sig):
                return sig
            log.warning(f"{self.role}: invalid signature on channel, watching ledger")
        except PtlcError as e:
            log.warning(f"{self.role}: no signature on channel ({e}), watching ledger")
        published = waitForUnlock(
            self.ledger, self.localRef, self.pollInterval, self.sleep
        )
        if published is None:
            raise ProtocolViolation(
                f"escrow {self.localRef.hex()} expired without an initiator unlock"
            )
        self.counterpartUnlocked = True
        sig = schnorr.Signature.fromBytes(published)
        if not self.validInitiatorSignature(sig):
            raise VerificationFailure("initiator's published signature is not the expected one")
        return sig

    def unlock(self, sig):
        """
        Claim the counterpart's escrow with a completed signature.

        Args:
            sig (Signature): The completed signature.
        """
        self.pendingUnlock = sig
        self.confirmation = self.ledger.unlock(self.signer, self.remoteRef, sig.bytes())
        self.unlocked()
        log.info(f"{self.role}: unlocked counterpart escrow {self.remoteRef.hex()}")

    def unlocked(self):
        self.pendingUnlock = None
        if self.isInitiator:
            # The ledger accepted the signature, which carries t.
            self.secretRevealed = True
            if self.failure:
                self.failure.secretRevealed = True

    def retryUnlock(self):
        """
        Resubmit an unlock that failed after a valid signature was built. The
        signature stays valid until the escrow expires.

        Returns:
            Confirmation: The ledger receipt.

        Raises:
            LedgerError: The ledger rejected the unlock again.
        """
        if self.pendingUnlock is None:
            raise PtlcError(f"{self.role}: no pending unlock")
        sig = self.pendingUnlock
        self.confirmation = self.ledger.unlock(self.signer, self.remoteRef, sig.bytes())
        self.unlocked()
        if self.failure:
            self.failure.retryable = False
        log.info(f"{self.role}: unlock retry succeeded for {self.remoteRef.hex()}")
        return self.confirmation
