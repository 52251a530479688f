"""
Copyright (c) 2020, The Decred developers
See LICENSE for details
"""


class PtlcError(Exception):
    pass


class DecodingError(PtlcError):
    """
    A point, scalar, hex string or protocol message received from outside
    could not be decoded into a valid value.
    """

    pass


class VerificationFailure(PtlcError):
    """
    A pre-signature, partial signature, nonce or completed signature failed
    its algebraic check.
    """

    pass


class LedgerError(PtlcError):
    """
    The ledger rejected an escrow create or unlock, or could not be reached.
    """

    def __init__(self, msg, retryable=False):
        """
        Args:
            msg (str): A description of the failure.
            retryable (bool): Whether resubmitting the same action is safe and
                may succeed.
        """
        super().__init__(msg)
        self.retryable = retryable


class ProtocolViolation(PtlcError):
    """
    The counterpart sent a message out of order, or the channel closed before
    the protocol finished.
    """

    pass


class SwapAborted(PtlcError):
    """
    A swap attempt ended in the Aborted state. The failure attribute carries
    the state machine context.
    """

    def __init__(self, failure):
        """
        Args:
            failure (SwapFailure): The recorded failure context.
        """
        super().__init__(str(failure))
        self.failure = failure
