from abc import ABC, abstractmethod
from typing import Any, Sequence


class ChainClient(ABC):
    """
    Wallet-bound access to the chain.

    Implementations own the wallet handle. Callers must not run two
    ``send_many_wait_hash`` calls at once; the orchestrator serializes them.
    """

    @property
    @abstractmethod
    def wallet_address(self) -> str:
        """Return the user-friendly address of the wallet."""

    @abstractmethod
    async def get_chain_head(self) -> Any:
        """Return a reference to the latest masterchain block."""

    @abstractmethod
    async def get_balance(self, head: Any) -> int:
        """Return the wallet balance in nanotons as of ``head``."""

    @abstractmethod
    def validate_address(self, address: str) -> Any:
        """Parse ``address``, raising ``ValueError`` when it is not a valid address."""

    @abstractmethod
    def encode_comment(self, text: str) -> Any:
        """Encode ``text`` into the comment payload attached to every message."""

    @abstractmethod
    async def send_many_wait_hash(self, instructions: Sequence) -> bytes:
        """Send all instructions in one transaction and return its hash once included."""

    async def close(self) -> None:
        return None
