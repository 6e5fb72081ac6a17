from enum import Enum


class ErrorKind(str, Enum):
    MALFORMED_REQUEST = "MalformedRequest"
    INVALID_SEND_MODE = "InvalidSendMode"
    INVALID_AMOUNT = "InvalidAmount"
    BATCH_TOO_LARGE = "BatchTooLarge"
    CHAIN_UNAVAILABLE = "ChainUnavailable"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    COMMENT_ENCODING_FAILED = "CommentEncodingFailed"
    SUBMISSION_FAILED = "SubmissionFailed"
    SUBMISSION_TIMEOUT = "SubmissionTimeout"


class TransferError(Exception):
    """Base class for every failure of a batch transfer request."""

    kind: ErrorKind
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedRequest(TransferError):
    """Raised when the body is not a non-empty JSON object of strings."""

    kind = ErrorKind.MALFORMED_REQUEST


class InvalidSendMode(TransferError):
    """Raised when send_mode is not an 8-bit unsigned integer."""

    kind = ErrorKind.INVALID_SEND_MODE


class InvalidAmount(TransferError):
    """Raised when an amount is not a valid non-negative decimal."""

    kind = ErrorKind.INVALID_AMOUNT


class BatchTooLarge(TransferError):
    """Raised when the batch exceeds the per-transaction message limit."""

    kind = ErrorKind.BATCH_TOO_LARGE


class ChainUnavailable(TransferError):
    """Raised when the chain head or the wallet balance cannot be fetched."""

    kind = ErrorKind.CHAIN_UNAVAILABLE
    status_code = 503


class InsufficientBalance(TransferError):
    """Raised when the wallet balance is below the requested total."""

    kind = ErrorKind.INSUFFICIENT_BALANCE


class CommentEncodingFailed(TransferError):
    """Raised when the comment cannot be encoded into a message body."""

    kind = ErrorKind.COMMENT_ENCODING_FAILED


class SubmissionFailed(TransferError):
    """Raised when sending the transaction or waiting for it fails."""

    kind = ErrorKind.SUBMISSION_FAILED


class SubmissionTimeout(TransferError):
    """Raised when confirmation does not arrive before the deadline.

    The transaction may still be included later; nothing reconciles it.
    """

    kind = ErrorKind.SUBMISSION_TIMEOUT
    status_code = 504
