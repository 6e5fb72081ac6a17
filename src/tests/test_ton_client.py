import asyncio
import json
from types import SimpleNamespace

import pytest

from batcher import ton_client
from batcher.errors import SubmissionFailed, SubmissionTimeout
from batcher.messages import PaymentInstruction
from batcher.orchestrator import TransferOrchestrator
from batcher.ton_client import RecordsExternalBody, TonChainClient
from fakes import NANO, make_settings

ZERO_ADDRESS = "EQAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAM9c"


def make_tx(lt, body_hash, tx_hash, aborted=False, compute_success=True, action_success=True):
    return SimpleNamespace(
        lt=lt,
        in_msg=SimpleNamespace(is_external=True, body=SimpleNamespace(hash=body_hash)),
        cell=SimpleNamespace(hash=tx_hash),
        description=SimpleNamespace(
            aborted=aborted,
            compute_ph=SimpleNamespace(success=compute_success, exit_code=0 if compute_success else 33),
            action=SimpleNamespace(success=action_success, result_code=0 if action_success else 37),
        ),
    )


class FakeProvider:
    """Lite client exposing the pytoniq calls the chain client relies on."""

    def __init__(self, balance=100 * NANO):
        self.account = SimpleNamespace(storage=SimpleNamespace(balance=SimpleNamespace(grams=balance)))
        self.last_mc_block = "head-1"
        self.transactions = []  # newest first
        self.pending = []
        self.account_state_calls = []
        self.connected = False
        self.closed = False

    async def connect(self):
        self.connected = True

    async def close(self):
        self.closed = True

    async def get_masterchain_info(self):
        return {"last": self.last_mc_block}

    async def raw_get_account_state(self, address, block=None):
        self.account_state_calls.append((address, block))
        return self.account, None

    async def get_transactions(self, address, count):
        result = self.transactions[:count]
        if self.pending:
            self.transactions = self.pending + self.transactions
            self.pending = []
        return result


class FakeWallet:
    def __init__(self, on_transfer=None):
        self.address = SimpleNamespace(to_str=lambda: "EQ-wallet")
        self.on_transfer = on_transfer
        self.last_external_body = None
        self.transfers = []

    def create_wallet_internal_message(self, **kwargs):
        return kwargs

    async def raw_transfer(self, msgs):
        self.transfers.append(msgs)
        self.last_external_body = SimpleNamespace(hash=f"body-{len(self.transfers)}".encode())
        if self.on_transfer:
            self.on_transfer(len(self.transfers))


def instructions():
    return [PaymentInstruction(destination=ZERO_ADDRESS, amount=NANO, send_mode=1)]


@pytest.mark.anyio
async def test_get_balance_reads_account_at_head():
    provider = FakeProvider(balance=7 * NANO)
    client = TonChainClient(provider, FakeWallet())

    assert await client.get_balance("head-1") == 7 * NANO
    assert provider.account_state_calls == [(client.wallet.address, "head-1")]


@pytest.mark.anyio
async def test_get_balance_of_uninitialized_account_is_zero():
    provider = FakeProvider()
    provider.account = None
    client = TonChainClient(provider, FakeWallet())

    assert await client.get_balance("head-1") == 0


@pytest.mark.anyio
async def test_send_returns_hash_of_matching_transaction():
    provider = FakeProvider()
    provider.transactions = [make_tx(5, b"old", b"OLD-TX")]

    def land(n):
        provider.transactions = [make_tx(6, b"other", b"OTHER-TX")] + provider.transactions
        provider.pending = [make_tx(7, f"body-{n}".encode(), b"OUR-TX")]

    wallet = FakeWallet(on_transfer=land)
    client = TonChainClient(provider, wallet, poll_interval=0.001)

    tx_hash = await client.send_many_wait_hash(instructions())

    assert tx_hash == b"OUR-TX"
    assert wallet.transfers[0][0]["bounce"] is False
    assert wallet.transfers[0][0]["value"] == NANO


@pytest.mark.anyio
async def test_late_transaction_of_timed_out_request_is_not_reused():
    provider = FakeProvider()

    def land(n):
        if n == 2:
            # The first request's transaction lands only now
            provider.transactions = [make_tx(1, b"body-1", b"FIRST-REQUEST-TX")]
            provider.pending = [make_tx(2, b"body-2", b"SECOND-REQUEST-TX")]

    client = TonChainClient(provider, FakeWallet(on_transfer=land), poll_interval=0.01)
    orchestrator = TransferOrchestrator(client, make_settings(confirmation_timeout=0.1))
    body = json.dumps({ZERO_ADDRESS: "1"})

    with pytest.raises(SubmissionTimeout):
        await orchestrator.send_transactions("1", "", body)

    receipt = await orchestrator.send_transactions("1", "", body)

    assert receipt.tx_hash == b"SECOND-REQUEST-TX"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "failure",
    [{"aborted": True}, {"compute_success": False}, {"action_success": False}],
)
async def test_failed_transaction_raises_submission_failed(failure):
    provider = FakeProvider()

    def land(n):
        provider.pending = [make_tx(1, f"body-{n}".encode(), b"FAILED-TX", **failure)]

    client = TonChainClient(provider, FakeWallet(on_transfer=land), poll_interval=0.001)

    with pytest.raises(SubmissionFailed):
        await asyncio.wait_for(client.send_many_wait_hash(instructions()), timeout=1)


@pytest.mark.anyio
async def test_records_external_body():
    class Wallet:
        async def send_external(self, state_init=None, body=None):
            return "sent"

    class Tracked(RecordsExternalBody, Wallet):
        pass

    wallet = Tracked()
    assert await wallet.send_external(body="signed-body") == "sent"
    assert wallet.last_external_body == "signed-body"

    await wallet.send_external(None, "positional-body")
    assert wallet.last_external_body == "positional-body"


class FakeWalletClass:
    loaded = []
    fail = False

    @classmethod
    async def from_mnemonic(cls, provider, mnemonics):
        if cls.fail:
            raise ValueError("bad mnemonic")
        cls.loaded.append((provider, mnemonics))
        return FakeWallet()


@pytest.fixture
def fake_wallet_class(monkeypatch):
    provider = FakeProvider()
    FakeWalletClass.loaded = []
    FakeWalletClass.fail = False
    monkeypatch.setattr(ton_client, "create_provider", lambda settings: provider)
    monkeypatch.setitem(ton_client.WALLET_CLASSES, "v4r2", FakeWalletClass)
    return provider


@pytest.mark.anyio
async def test_connect_selects_configured_wallet_version(fake_wallet_class):
    provider = fake_wallet_class

    client = await TonChainClient.connect(make_settings(wallet_version="v4r2"), ["word"] * 24)

    assert provider.connected
    assert FakeWalletClass.loaded == [(provider, ["word"] * 24)]
    assert client.wallet_address == "EQ-wallet"


@pytest.mark.anyio
async def test_connect_closes_provider_when_wallet_fails(fake_wallet_class):
    provider = fake_wallet_class
    FakeWalletClass.fail = True

    with pytest.raises(ValueError):
        await TonChainClient.connect(make_settings(wallet_version="v4r2"), ["word"] * 24)

    assert provider.closed


@pytest.mark.anyio
async def test_connect_rejects_unknown_wallet_version(fake_wallet_class):
    with pytest.raises(ValueError, match="Unsupported wallet version"):
        await TonChainClient.connect(make_settings(wallet_version="v1r1"), ["word"] * 24)

    assert not fake_wallet_class.connected


def test_tracked_wallet_classes():
    assert issubclass(ton_client.WALLET_CLASSES["highload_v2"], ton_client.HighloadWallet)
    assert issubclass(ton_client.WALLET_CLASSES["highload_v3"], ton_client.HighloadWalletV3)
    assert issubclass(ton_client.WALLET_CLASSES["v4r2"], ton_client.WalletV4R2)
