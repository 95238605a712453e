from __future__ import annotations

import json
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any

import requests
from loguru import logger
from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from sol_swap_engine.errors import ConfirmationError, NetworkError, SimulationError
from sol_swap_engine.retry import retry_call

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")


def associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    addr, _ = Pubkey.find_program_address(
        [bytes(owner), bytes(TOKEN_PROGRAM_ID), bytes(mint)], ASSOCIATED_TOKEN_PROGRAM_ID
    )
    return addr


@dataclass
class NetworkService:
    """Solana RPC access with a short-lived read cache and parallel read helpers."""

    rpc_endpoint: str
    client: Client
    cache_ttl: float = 30.0
    http_timeout: float = 15.0
    _cache: dict[str, tuple[float, Any]] = field(default_factory=dict, repr=False)
    _inflight: dict[str, Future] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _pool: ThreadPoolExecutor = field(
        default_factory=lambda: ThreadPoolExecutor(max_workers=8), repr=False
    )

    @classmethod
    def create(cls, rpc_endpoint: str, **kwargs) -> NetworkService:
        client = Client(rpc_endpoint, commitment=Confirmed)
        logger.info("NetworkService connected to: {}", rpc_endpoint)
        return cls(rpc_endpoint=rpc_endpoint, client=client, **kwargs)

    # --- cache helpers ---
    def _cached(self, key: str) -> tuple[bool, Any]:
        hit = self._cache.get(key)
        if hit and time.time() - hit[0] < self.cache_ttl:
            return True, hit[1]
        return False, None

    def _store(self, key: str, value: Any) -> None:
        self._cache[key] = (time.time(), value)

    def clear_expired_cache(self) -> int:
        now = time.time()
        expired = [k for k, (ts, _) in self._cache.items() if now - ts > self.cache_ttl]
        for k in expired:
            del self._cache[k]
        return len(expired)

    # --- raw JSON-RPC for methods the client library does not wrap ---
    def _rpc(self, method: str, params: list | None = None, url: str | None = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params or []}
        r = requests.post(url or self.rpc_endpoint, json=payload, timeout=self.http_timeout)
        r.raise_for_status()
        body = r.json() or {}
        if body.get("error"):
            err = body["error"]
            msg = err.get("message") if isinstance(err, dict) else err
            raise NetworkError(f"{method} failed: {msg}")
        return body.get("result")

    # --- reads ---
    def get_balance(self, pubkey: Pubkey, use_cache: bool = True) -> int:
        key = f"balance_{pubkey}"
        if use_cache:
            hit, value = self._cached(key)
            if hit:
                return value
        try:
            balance = int(self.client.get_balance(pubkey).value)
        except Exception as e:
            raise NetworkError(f"Failed to get balance: {e}") from e
        if use_cache:
            self._store(key, balance)
        return balance

    def get_slot(self) -> int:
        return int(self.client.get_slot().value)

    def get_health(self) -> str:
        return self._rpc("getHealth")

    def get_recent_prioritization_fees(self, accounts: list[str] | None = None) -> list[dict]:
        try:
            result = self._rpc("getRecentPrioritizationFees", [accounts] if accounts else [])
            return list(result or [])
        except Exception as e:
            logger.warning("Failed to fetch prioritization fees: {}", e)
            return []

    def get_token_accounts(self, owner: Pubkey) -> list[dict]:
        """Parsed SPL token accounts held by ``owner`` as ``{pubkey, mint, amount}`` rows."""
        result = self._rpc(
            "getTokenAccountsByOwner",
            [str(owner), {"programId": str(TOKEN_PROGRAM_ID)}, {"encoding": "jsonParsed"}],
        )
        rows = []
        for item in (result or {}).get("value", []):
            info = (((item.get("account") or {}).get("data") or {}).get("parsed") or {}).get("info") or {}
            amount = info.get("tokenAmount") or {}
            rows.append(
                {
                    "pubkey": item.get("pubkey"),
                    "mint": info.get("mint"),
                    "amount": amount.get("uiAmountString") or "0",
                }
            )
        return rows

    def get_token_balance(self, token_account: Pubkey) -> str | None:
        """UI balance of a token account, or None when the account does not exist."""
        try:
            result = self._rpc("getTokenAccountBalance", [str(token_account)])
        except NetworkError:
            return None
        return ((result or {}).get("value") or {}).get("uiAmountString")

    def execute_parallel_calls(self, calls: list[dict]) -> list[Any]:
        """Run independent reads concurrently.

        Each call is ``{"method": name, "params": [...], "cache_key": optional}``.
        ``method`` names a NetworkService method first, then a Client method.
        Identical in-flight requests share one future.
        """
        futures = []
        for call in calls:
            method = call["method"]
            params = list(call.get("params") or [])
            cache_key = call.get("cache_key")
            if cache_key:
                hit, value = self._cached(cache_key)
                if hit:
                    done: Future = Future()
                    done.set_result(value)
                    futures.append(done)
                    continue
            request_key = f"{method}_{json.dumps(params, default=str)}"
            with self._lock:
                fut = self._inflight.get(request_key)
                created = fut is None
                if created:
                    fut = self._pool.submit(self._invoke, method, params, cache_key)
                    self._inflight[request_key] = fut
            if created:
                # runs inline when already done, so it must not hold the lock
                fut.add_done_callback(lambda _f, k=request_key: self._release(k))
            futures.append(fut)
        return [f.result() for f in futures]

    def _release(self, request_key: str) -> None:
        with self._lock:
            self._inflight.pop(request_key, None)

    def _invoke(self, method: str, params: list, cache_key: str | None) -> Any:
        target = self if hasattr(type(self), method) else self.client
        result = getattr(target, method)(*params)
        if cache_key:
            self._store(cache_key, result)
        return result

    def get_health_status(self) -> dict[str, Any]:
        try:
            slot, health = self.execute_parallel_calls(
                [{"method": "get_slot"}, {"method": "get_health"}]
            )
            return {"healthy": True, "slot": slot, "health": health, "endpoint": self.rpc_endpoint}
        except Exception as e:
            return {"healthy": False, "error": str(e), "endpoint": self.rpc_endpoint}

    def measure_rpc_latency(self) -> float:
        start = time.perf_counter()
        try:
            self.get_slot()
        except Exception as e:
            logger.error("Failed to measure RPC latency: {}", e)
            return -1.0
        return (time.perf_counter() - start) * 1000

    # --- writes ---
    def simulate_transaction(self, tx: VersionedTransaction):
        try:
            resp = self.client.simulate_transaction(tx, sig_verify=False)
        except Exception as e:
            raise NetworkError(f"Simulation request failed: {e}") from e
        value = resp.value
        if value.err:
            raise SimulationError(f"Transaction simulation failed: {value.err}", result=value)
        return value

    def send_transaction(
        self, tx: VersionedTransaction, max_retries: int = 3, retry_delay: float = 1.0
    ) -> Signature:
        opts = TxOpts(skip_preflight=False, preflight_commitment=Confirmed, max_retries=3)
        raw = bytes(tx)
        try:
            return retry_call(
                lambda _attempt: self.client.send_raw_transaction(raw, opts=opts).value,
                attempts=max_retries,
                base_delay=retry_delay,
                backoff=1.0,
                label="Send",
            )
        except Exception as e:
            raise NetworkError(
                f"Transaction send failed after {max_retries} attempts: {e}"
            ) from e

    def confirm_transaction(self, signature: Signature | str, timeout: float = 60.0):
        if isinstance(signature, str):
            signature = Signature.from_string(signature)
        fut = self._pool.submit(self.client.confirm_transaction, signature, Confirmed)
        try:
            resp = fut.result(timeout=timeout)
        except FutureTimeout as e:
            raise ConfirmationError(
                "Transaction confirmation failed: Transaction confirmation timeout"
            ) from e
        except Exception as e:
            raise ConfirmationError(f"Transaction confirmation failed: {e}") from e
        statuses = list(resp.value or [])
        status = statuses[0] if statuses else None
        if status is not None and status.err:
            raise ConfirmationError(f"Transaction failed: {status.err}", result=status)
        return resp

    def close(self) -> None:
        self._pool.shutdown(wait=False)
        self._cache.clear()
        with self._lock:
            self._inflight.clear()
