"""
Copyright (c) 2020, The Decred developers
See LICENSE for details

Swap protocol messages. Every message travels as a frame made of a 12-byte
NUL-padded ASCII command followed by the message payload. The messages and
their order are the wire contract between the two parties:

    initiator                          responder
    hello        ------------------->
                 <-------------------  hello
                 <-------------------  keycommit
    keys         ------------------->
                 <-------------------  keys
    escrow       ------------------->
                 <-------------------  escrow
    partials     ------------------->
                 <-------------------  presig
    signature    ------------------->
"""

from ptlc import DecodingError, ProtocolViolation
from ptlc.crypto.ed25519 import POINT_SIZE, SCALAR_SIZE, CurvePoint, Scalar
from ptlc.crypto.keystore import ADDRESS_SIZE, Address
from ptlc.crypto.schnorr import SIGNATURE_SIZE, Signature


# fmt: off
CommandSize = 12

CmdHello     = "hello"
CmdKeyCommit = "keycommit"
CmdKeys      = "keys"
CmdEscrow    = "escrow"
CmdPartials  = "partials"
CmdPreSig    = "presig"
CmdSignature = "signature"
# fmt: on

# ProtocolVersion is the latest protocol version this package speaks.
ProtocolVersion = 1

CommitmentSize = 32
MaxReferenceSize = 255


def _checkLength(cmd, b, expected):
    if len(b) != expected:
        raise DecodingError(f"{cmd}: expected {expected} bytes, got {len(b)}")


class MsgHello:
    """
    MsgHello opens the conversation with the sender's protocol version and
    account address. The address is committed to in the messages the other
    party's leg signs.
    """

    def __init__(self, address, version=ProtocolVersion):
        """
        Args:
            address (Address): The sender's account address.
            version (int): The sender's protocol version.
        """
        self.address = address
        self.version = version

    @staticmethod
    def decode(b):
        _checkLength(CmdHello, b, 2 + ADDRESS_SIZE)
        return MsgHello(
            address=Address(b[2:]), version=int.from_bytes(b[:2], "little")
        )

    def encode(self):
        return self.version.to_bytes(2, "little") + self.address.bytes()

    @staticmethod
    def command():
        return CmdHello


class MsgKeyCommit:
    """
    MsgKeyCommit binds the responder to its keys before it sees the
    initiator's. Without it, the responder could pick its keys as a function
    of the initiator's and control an aggregated key alone.
    """

    def __init__(self, commitment):
        """
        Args:
            commitment (bytes): SHA-256 of the responder's MsgKeys payload.
        """
        self.commitment = commitment

    @staticmethod
    def decode(b):
        _checkLength(CmdKeyCommit, b, CommitmentSize)
        return MsgKeyCommit(bytes(b))

    def encode(self):
        return self.commitment

    @staticmethod
    def command():
        return CmdKeyCommit


class MsgKeys:
    """
    MsgKeys carries the sender's public signing and nonce points for both
    legs. The initiator's message also carries the adaptor point T.
    """

    def __init__(self, signInit, signResp, nonceInit, nonceResp, adaptor=None):
        """
        Args:
            signInit (CurvePoint): Signing point for the initiator leg.
            signResp (CurvePoint): Signing point for the responder leg.
            nonceInit (CurvePoint): Nonce point for the initiator leg.
            nonceResp (CurvePoint): Nonce point for the responder leg.
            adaptor (CurvePoint): Optional. The adaptor point T. Only sent by
                the initiator.
        """
        self.signInit = signInit
        self.signResp = signResp
        self.nonceInit = nonceInit
        self.nonceResp = nonceResp
        self.adaptor = adaptor

    def points(self):
        pts = [self.signInit, self.signResp, self.nonceInit, self.nonceResp]
        if self.adaptor is not None:
            pts.append(self.adaptor)
        return pts

    @staticmethod
    def decode(b):
        if len(b) not in (4 * POINT_SIZE, 5 * POINT_SIZE):
            raise DecodingError(f"{CmdKeys}: unexpected length {len(b)}")
        pts = [
            CurvePoint.decode(b[i : i + POINT_SIZE])
            for i in range(0, len(b), POINT_SIZE)
        ]
        return MsgKeys(*pts)

    def encode(self):
        return b"".join(pt.bytes() for pt in self.points())

    @staticmethod
    def command():
        return CmdKeys


class MsgEscrow:
    """
    MsgEscrow announces the reference of the sender's funded escrow.
    """

    def __init__(self, reference):
        """
        Args:
            reference (bytes): The ledger's escrow reference.
        """
        if not 0 < len(reference) <= MaxReferenceSize:
            raise DecodingError(f"invalid escrow reference length {len(reference)}")
        self.reference = bytes(reference)

    @staticmethod
    def decode(b):
        if len(b) < 1 or len(b) != 1 + b[0]:
            raise DecodingError(f"{CmdEscrow}: malformed reference")
        return MsgEscrow(b[1:])

    def encode(self):
        return bytes([len(self.reference)]) + self.reference

    @staticmethod
    def command():
        return CmdEscrow


class MsgPartials:
    """
    MsgPartials carries the initiator's partial shares r + c·x for both legs.
    """

    def __init__(self, initLeg, respLeg):
        """
        Args:
            initLeg (Scalar): The partial for the initiator leg.
            respLeg (Scalar): The partial for the responder leg.
        """
        self.initLeg = initLeg
        self.respLeg = respLeg

    @staticmethod
    def decode(b):
        _checkLength(CmdPartials, b, 2 * SCALAR_SIZE)
        return MsgPartials(
            Scalar.fromBytes(b[:SCALAR_SIZE]), Scalar.fromBytes(b[SCALAR_SIZE:])
        )

    def encode(self):
        return self.initLeg.bytes() + self.respLeg.bytes()

    @staticmethod
    def command():
        return CmdPartials


class MsgPreSig:
    """
    MsgPreSig carries the combined initiator-leg pre-signature, which needs t
    to become valid.
    """

    def __init__(self, preSig):
        """
        Args:
            preSig (Scalar): The pre-signature.
        """
        self.preSig = preSig

    @staticmethod
    def decode(b):
        _checkLength(CmdPreSig, b, SCALAR_SIZE)
        return MsgPreSig(Scalar.fromBytes(b))

    def encode(self):
        return self.preSig.bytes()

    @staticmethod
    def command():
        return CmdPreSig


class MsgSignature:
    """
    MsgSignature carries the completed initiator-leg signature. In a
    deployment the responder can read the same signature from the ledger.
    """

    def __init__(self, signature):
        """
        Args:
            signature (Signature): The completed signature.
        """
        self.signature = signature

    @staticmethod
    def decode(b):
        _checkLength(CmdSignature, b, SIGNATURE_SIZE)
        return MsgSignature(Signature.fromBytes(b))

    def encode(self):
        return self.signature.bytes()

    @staticmethod
    def command():
        return CmdSignature


Messages = {
    m.command(): m
    for m in (
        MsgHello,
        MsgKeyCommit,
        MsgKeys,
        MsgEscrow,
        MsgPartials,
        MsgPreSig,
        MsgSignature,
    )
}


def writeMessage(msg):
    """
    Frame a message for the channel.

    Args:
        msg (object): A message implementing command and encode.

    Returns:
        bytes: The framed message.
    """
    cmd = msg.command().encode("ascii")
    return cmd.ljust(CommandSize, b"\x00") + msg.encode()


def readMessage(b, expected=None):
    """
    Parse a framed message.

    Args:
        b (bytes-like): The framed message.
        expected (type): Optional. The message class the protocol expects next.

    Returns:
        object: The decoded message.

    Raises:
        DecodingError: The frame or payload is malformed.
        ProtocolViolation: The message is not the expected type.
    """
    b = bytes(b)
    if len(b) < CommandSize:
        raise DecodingError(f"message too short: {len(b)} bytes")
    cmd = b[:CommandSize].rstrip(b"\x00")
    try:
        cmd = cmd.decode("ascii")
    except UnicodeDecodeError:
        raise DecodingError("non-ascii command")
    msgType = Messages.get(cmd)
    if msgType is None:
        raise DecodingError(f"unknown command {cmd!r}")
    if expected is not None and msgType is not expected:
        raise ProtocolViolation(
            f"expected {expected.command()!r} message, got {cmd!r}"
        )
    return msgType.decode(b[CommandSize:])
