import asyncio
from typing import Sequence

from loguru import logger
from pytoniq import HighloadWallet, LiteBalancer, LiteClient, WalletV4R2
from pytoniq.contract.wallets.highload_v3 import HighloadWalletV3
from pytoniq_core import Address, begin_cell

from batcher.client import ChainClient
from batcher.config import Settings
from batcher.errors import SubmissionFailed
from batcher.messages import PaymentInstruction

# Transactions fetched per confirmation poll
POLL_TRANSACTIONS = 16


class RecordsExternalBody:
    """Keeps the signed body of the last external message the wallet sent."""

    last_external_body = None

    async def send_external(self, *args, **kwargs):
        # send_external(state_init=None, body=None)
        self.last_external_body = kwargs.get("body", args[1] if len(args) > 1 else None)
        return await super().send_external(*args, **kwargs)


class TrackedHighloadWallet(RecordsExternalBody, HighloadWallet):
    pass


class TrackedHighloadWalletV3(RecordsExternalBody, HighloadWalletV3):
    pass


class TrackedWalletV4R2(RecordsExternalBody, WalletV4R2):
    pass


WALLET_CLASSES = {
    "highload_v2": TrackedHighloadWallet,
    "highload_v3": TrackedHighloadWalletV3,
    "v4r2": TrackedWalletV4R2,
}


def create_provider(settings: Settings):
    """Build a lite client for the configured server, or a balancer over mainnet."""
    if settings.liteserver_host:
        if not settings.liteserver_pub_key:
            raise ValueError("LITESERVER_PUB_KEY is required when LITESERVER_HOST is set")
        return LiteClient(
            host=settings.liteserver_host,
            port=settings.liteserver_port,
            server_pub_key=settings.liteserver_pub_key,
            trust_level=settings.trust_level,
        )
    return LiteBalancer.from_mainnet_config(trust_level=settings.trust_level)


def check_transaction(tx) -> None:
    """Raise ``SubmissionFailed`` when the wallet transaction was aborted or its phases failed."""
    description = tx.description
    if getattr(description, "aborted", False):
        raise SubmissionFailed("Transaction was aborted on-chain")

    compute = getattr(description, "compute_ph", None)
    if compute is not None and getattr(compute, "success", True) is False:
        raise SubmissionFailed(f"Transaction compute phase failed with exit code {getattr(compute, 'exit_code', None)}")

    action = getattr(description, "action", None)
    if action is not None and getattr(action, "success", True) is False:
        raise SubmissionFailed(f"Transaction action phase failed with result code {getattr(action, 'result_code', None)}")


class TonChainClient(ChainClient):
    def __init__(self, provider, wallet, poll_interval: float = 2.0):
        self.provider = provider
        self.wallet = wallet
        self.poll_interval = poll_interval

    @classmethod
    async def connect(cls, settings: Settings, mnemonic: list[str]) -> "TonChainClient":
        """
        Open the lite server connection and load the wallet from its mnemonic.

        :param settings: Connection and wallet settings
        :param mnemonic: Seed words

        :return: A connected client bound to the wallet
        """
        wallet_class = WALLET_CLASSES.get(settings.wallet_version)
        if wallet_class is None:
            raise ValueError(
                f"Unsupported wallet version {settings.wallet_version!r}, "
                f"expected one of {', '.join(WALLET_CLASSES)}"
            )

        provider = create_provider(settings)
        if isinstance(provider, LiteBalancer):
            await provider.start_up()
        else:
            await provider.connect()

        try:
            wallet = await wallet_class.from_mnemonic(provider=provider, mnemonics=mnemonic)
        except Exception:
            await cls._close_provider(provider)
            raise
        logger.info(f"Wallet address: {wallet.address.to_str()} ({settings.wallet_version})")
        return cls(provider, wallet, poll_interval=settings.confirmation_poll_interval)

    @staticmethod
    async def _close_provider(provider) -> None:
        if isinstance(provider, LiteBalancer):
            await provider.close_all()
        else:
            await provider.close()

    @property
    def wallet_address(self) -> str:
        return self.wallet.address.to_str()

    async def get_chain_head(self):
        await self.provider.get_masterchain_info()
        return self.provider.last_mc_block

    async def get_balance(self, head) -> int:
        account, _ = await self.provider.raw_get_account_state(self.wallet.address, block=head)
        # Uninitialized accounts have no state
        if account is None:
            return 0
        return account.storage.balance.grams

    def validate_address(self, address: str) -> Address:
        return Address(address)

    def encode_comment(self, text: str):
        return begin_cell().store_uint(0, 32).store_snake_string(text).end_cell()

    async def _last_transaction_lt(self) -> int:
        transactions = await self.provider.get_transactions(self.wallet.address, count=1)
        return transactions[0].lt if transactions else 0

    def _find_transaction(self, transactions, last_lt: int, body_hash: bytes):
        for tx in transactions:
            if tx.lt <= last_lt or tx.in_msg is None or not tx.in_msg.is_external:
                continue
            if tx.in_msg.body.hash == body_hash:
                return tx
        return None

    async def send_many_wait_hash(self, instructions: Sequence[PaymentInstruction]) -> bytes:
        messages = [
            self.wallet.create_wallet_internal_message(
                destination=Address(instruction.destination),
                send_mode=instruction.send_mode,
                value=instruction.amount,
                body=instruction.comment,
                bounce=instruction.bounce,
            )
            for instruction in instructions
        ]

        last_lt = await self._last_transaction_lt()
        self.wallet.last_external_body = None
        await self.wallet.raw_transfer(msgs=messages)
        body = self.wallet.last_external_body
        if body is None:
            raise SubmissionFailed("Wallet did not send an external message")
        logger.info(f"External message {body.hash.hex()} sent, waiting for its transaction after lt {last_lt}")

        # Cancelled by the caller's deadline
        while True:
            await asyncio.sleep(self.poll_interval)
            transactions = await self.provider.get_transactions(self.wallet.address, count=POLL_TRANSACTIONS)
            tx = self._find_transaction(transactions, last_lt, body.hash)
            if tx is not None:
                check_transaction(tx)
                return tx.cell.hash

    async def close(self) -> None:
        await self._close_provider(self.provider)
