from __future__ import annotations

import base64
from types import SimpleNamespace
from typing import Any

import base58
import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

QUOTE_JSON = {
    "inputMint": "So11111111111111111111111111111111111111112",
    "outputMint": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "inAmount": "100000",
    "outAmount": "23456",
    "priceImpactPct": "0.0001",
    "routePlan": [{"swapInfo": {"label": "Whirlpool"}}],
    "contextSlot": 1,
}


class FakeResp:
    def __init__(self, payload: Any, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code
        self.ok = status_code < 400
        self.text = str(payload)

    def json(self):
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            import requests

            raise requests.HTTPError(f"{self.status_code} error")


class FakeNetwork:
    """Stands in for NetworkService in swap-level tests."""

    def __init__(self, balance: int = 10_000_000, sim_err=None, confirm_exc: Exception | None = None):
        self.balance = balance
        self.sim_err = sim_err
        self.confirm_exc = confirm_exc
        self.sent: list[VersionedTransaction] = []
        self.fees: list[dict] = []
        self.closed = False

    def get_balance(self, pubkey, use_cache=True):
        return self.balance

    def simulate_transaction(self, tx):
        from sol_swap_engine.errors import SimulationError

        value = SimpleNamespace(err=self.sim_err, logs=["log1", "log2"], units_consumed=123_456)
        if self.sim_err:
            raise SimulationError(f"Transaction simulation failed: {self.sim_err}", result=value)
        return value

    def send_transaction(self, tx, max_retries=3, retry_delay=1.0):
        self.sent.append(tx)
        return tx.signatures[0]

    def confirm_transaction(self, signature, timeout=60.0):
        if self.confirm_exc:
            raise self.confirm_exc
        return SimpleNamespace(value=[SimpleNamespace(err=None)])

    def measure_rpc_latency(self):
        return 42.0

    def get_recent_prioritization_fees(self, accounts=None):
        return self.fees

    def close(self):
        self.closed = True


class FakeQuotes:
    """Stands in for QuoteService; records the kwargs it was called with."""

    def __init__(self, quote_json, swap_tx_b64):
        from sol_swap_engine.aggregators.quotes import QuoteService

        self._svc = QuoteService()
        self.quote_json = quote_json
        self.swap_tx_b64 = swap_tx_b64
        self.quote_calls: list[dict] = []
        self.swap_calls: list[dict] = []

    def get_quote(self, input_mint, output_mint, amount, **kwargs):
        self.quote_calls.append(dict(kwargs, amount=amount))
        return self._svc.enhance(self.quote_json, amount, kwargs.get("slippage_bps") or 50)

    def create_swap_transaction(self, quote, user_public_key, **kwargs):
        self.swap_calls.append(dict(kwargs, user=user_public_key))
        return self.swap_tx_b64


@pytest.fixture
def keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def secret_b58(keypair) -> str:
    return base58.b58encode(bytes(keypair)).decode()


@pytest.fixture
def swap_tx_b64(keypair) -> str:
    ix = transfer(TransferParams(from_pubkey=keypair.pubkey(), to_pubkey=Pubkey.new_unique(), lamports=1))
    msg = MessageV0.try_compile(keypair.pubkey(), [ix], [], Hash.default())
    # Jupiter hands back the message with an empty signature slot
    tx = VersionedTransaction.populate(msg, [Signature.default()])
    return base64.b64encode(bytes(tx)).decode()


@pytest.fixture
def quote_json() -> dict:
    return dict(QUOTE_JSON)
