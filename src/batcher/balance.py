from dataclasses import dataclass
from typing import Any

from loguru import logger

from batcher.amounts import format_amount, total_amount
from batcher.client import ChainClient
from batcher.errors import ChainUnavailable, InsufficientBalance


@dataclass(frozen=True)
class BalanceDecision:
    balance: int
    requested: int

    @property
    def allowed(self) -> bool:
        return self.balance >= self.requested


async def check_balance(client: ChainClient, head: Any, amounts: dict[str, int]) -> BalanceDecision:
    """
    Compare the wallet balance at ``head`` with the total of ``amounts``.

    Advisory only: the balance can change before the batch is submitted.
    """
    try:
        balance = await client.get_balance(head)
    except Exception as exc:
        logger.error(f"Failed to fetch wallet balance: {exc}")
        raise ChainUnavailable(f"Failed to fetch wallet balance: {exc}") from exc

    decision = BalanceDecision(balance=balance, requested=total_amount(amounts))
    logger.info(
        f"Wallet balance: {format_amount(decision.balance)} TON, "
        f"requested: {format_amount(decision.requested)} TON, allowed: {decision.allowed}"
    )
    return decision


async def ensure_sufficient_balance(client: ChainClient, head: Any, amounts: dict[str, int]) -> BalanceDecision:
    decision = await check_balance(client, head, amounts)
    if not decision.allowed:
        raise InsufficientBalance("Not enough balance")
    return decision
