import asyncio
import base64
import json
from contextlib import nullcontext
from dataclasses import dataclass

from loguru import logger

from batcher.amounts import parse_amounts
from batcher.balance import ensure_sufficient_balance
from batcher.client import ChainClient
from batcher.config import Settings, setting
from batcher.errors import (
    ChainUnavailable,
    CommentEncodingFailed,
    InvalidSendMode,
    MalformedRequest,
    SubmissionFailed,
    SubmissionTimeout,
    TransferError,
)
from batcher.messages import build_instructions, check_batch_size, message_limit


@dataclass(frozen=True)
class TransferRequest:
    transfers: dict[str, str]
    send_mode: int
    comment: str = ""


@dataclass(frozen=True)
class TransferReceipt:
    tx_hash: bytes
    explorer_tx_url: str = "https://tonscan.org/tx/"

    @property
    def tx_hash_b64(self) -> str:
        return base64.b64encode(self.tx_hash).decode("ascii")

    @property
    def link(self) -> str:
        return self.explorer_tx_url + base64.urlsafe_b64encode(self.tx_hash).decode("ascii")


def parse_send_mode(value: str | None) -> int:
    """Parse the send_mode query parameter as an 8-bit unsigned integer."""
    if value is None or not value.isascii() or not value.isdigit():
        raise InvalidSendMode(f"Invalid send_mode: {value!r}")
    mode = int(value)
    if mode > 255:
        raise InvalidSendMode(f"send_mode {value} is out of range 0-255")
    return mode


def decode_transfers(body: bytes | str) -> dict[str, str]:
    """Decode the request body into a mapping of destination address to amount."""
    try:
        transfers = json.loads(body)
    except (ValueError, UnicodeDecodeError) as exc:
        logger.warning(f"Json decode err: {exc}")
        raise MalformedRequest(f"Invalid JSON body: {exc}") from exc

    if not isinstance(transfers, dict):
        raise MalformedRequest("Request body must be a JSON object of address to amount")
    if not transfers:
        raise MalformedRequest("Request body contains no transfers")
    for address, amount in transfers.items():
        if not isinstance(amount, str):
            raise MalformedRequest(f"Amount for {address} must be a string")
    return transfers


def parse_request(send_mode: str | None, comment: str | None, body: bytes | str) -> TransferRequest:
    mode = parse_send_mode(send_mode)
    logger.info(f"Send mode: {mode}")
    logger.info(f"Comment: {comment}")
    transfers = decode_transfers(body)
    logger.info(f"Transactions: {transfers}")
    return TransferRequest(transfers=transfers, send_mode=mode, comment=comment or "")


class TransferOrchestrator:
    """
    Runs a batch transfer request end to end against one wallet.

    Requests may run concurrently; submissions to the wallet never do.
    """

    def __init__(self, client: ChainClient, settings: Settings = setting):
        self.client = client
        self.settings = settings
        self._submit_lock = asyncio.Lock()

    @property
    def max_messages(self) -> int:
        return message_limit(self.settings.wallet_version, self.settings.max_messages)

    def _validate_addresses(self, transfers: dict[str, str]) -> None:
        for address in transfers:
            try:
                self.client.validate_address(address)
            except Exception as exc:
                raise MalformedRequest(f"Invalid destination address {address}: {exc}") from exc

    async def _get_chain_head(self):
        try:
            return await self.client.get_chain_head()
        except Exception as exc:
            logger.error(f"Failed to fetch masterchain info: {exc}")
            raise ChainUnavailable(f"Failed to fetch masterchain info: {exc}") from exc

    def _encode_comment(self, comment: str):
        try:
            return self.client.encode_comment(comment)
        except Exception as exc:
            logger.error(f"Failed to encode comment: {exc}")
            raise CommentEncodingFailed(f"Failed to encode comment: {exc}") from exc

    async def _submit(self, instructions) -> bytes:
        logger.info(f"Sending transaction with {len(instructions)} messages and waiting for confirmation...")
        try:
            return await asyncio.wait_for(
                self.client.send_many_wait_hash(instructions),
                timeout=self.settings.confirmation_timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error(f"Confirmation not received within {self.settings.confirmation_timeout}s")
            raise SubmissionTimeout(
                f"Transaction was not confirmed within {self.settings.confirmation_timeout} seconds"
            ) from exc
        except TransferError:
            raise
        except Exception as exc:
            logger.error(f"Failed to send transaction: {exc}")
            raise SubmissionFailed(f"Failed to send transaction: {exc}") from exc

    async def send_transactions(self, send_mode: str | None, comment: str | None, body: bytes | str) -> TransferReceipt:
        """
        Validate, balance-check, build and submit one batch transaction.

        :param send_mode: Raw send_mode query value
        :param comment: Comment attached to every message, may be empty
        :param body: Raw JSON body mapping destination address to amount

        :return: The receipt of the confirmed transaction
        """
        return await self.process(parse_request(send_mode, comment, body))

    async def process(self, request: TransferRequest) -> TransferReceipt:
        check_batch_size(len(request.transfers), self.max_messages)
        amounts = parse_amounts(request.transfers)
        self._validate_addresses(request.transfers)

        if self.settings.atomic_balance_check:
            # Balance check and submission share one critical section
            async with self._submit_lock:
                return await self._run(request, amounts, nullcontext())
        return await self._run(request, amounts, self._submit_lock)

    async def _run(self, request: TransferRequest, amounts: dict[str, int], submit_lock) -> TransferReceipt:
        head = await self._get_chain_head()
        await ensure_sufficient_balance(self.client, head, amounts)

        payload = self._encode_comment(request.comment)
        instructions = build_instructions(amounts, request.send_mode, payload, self.max_messages)

        async with submit_lock:
            tx_hash = await self._submit(instructions)

        receipt = TransferReceipt(tx_hash=tx_hash, explorer_tx_url=self.settings.explorer_tx_url)
        logger.info(f"Transaction sent, hash: {receipt.tx_hash_b64}")
        logger.info(f"Explorer link: {receipt.link}")
        return receipt
