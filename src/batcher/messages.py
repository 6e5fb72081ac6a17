from dataclasses import dataclass
from typing import Any

from batcher.errors import BatchTooLarge

# Highload wallets accept at most 254 outbound messages per transaction
MAX_MESSAGES = 254


@dataclass(frozen=True)
class PaymentInstruction:
    """One outbound message of a batch."""

    destination: str
    amount: int  # nanotons
    send_mode: int
    comment: Any = None
    # Deliver even to uninitialized accounts
    bounce: bool = False


# Outbound messages a single transaction of each wallet variant can carry
WALLET_MAX_MESSAGES = {
    "highload_v2": 254,
    "highload_v3": 254,
    "v4r2": 4,
}


def message_limit(wallet_version: str, max_messages: int = MAX_MESSAGES) -> int:
    """Return the configured ceiling, capped by what the wallet variant supports."""
    return min(max_messages, WALLET_MAX_MESSAGES.get(wallet_version, max_messages))


def check_batch_size(count: int, max_messages: int = MAX_MESSAGES) -> None:
    if count > max_messages:
        raise BatchTooLarge(
            f"Batch of {count} transfers exceeds the limit of {max_messages} messages per transaction"
        )


def build_instructions(
    amounts: dict[str, int],
    send_mode: int,
    comment: Any = None,
    max_messages: int = MAX_MESSAGES,
) -> list[PaymentInstruction]:
    """
    Build one payment instruction per destination.

    :param amounts: Destination address to amount in nanotons
    :param send_mode: Send mode shared by every message
    :param comment: Encoded comment payload shared by every message
    :param max_messages: Per-transaction message ceiling

    :return: Instructions in the iteration order of ``amounts``
    """
    check_batch_size(len(amounts), max_messages)
    return [
        PaymentInstruction(
            destination=destination,
            amount=amount,
            send_mode=send_mode,
            comment=comment,
        )
        for destination, amount in amounts.items()
    ]
