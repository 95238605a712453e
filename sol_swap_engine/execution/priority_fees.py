from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

import requests
from loguru import logger

from sol_swap_engine.chains.solana import NetworkService
from sol_swap_engine.config import (
    DEFAULT_MAX_PRIORITY_FEE_MICRO_LAMPORTS,
    DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS,
    LAMPORTS_PER_SOL,
    AppSettings,
)

JUPITER_PROGRAM_ID = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
MEDIAN_FALLBACK_MICRO_LAMPORTS = 5_000
PERCENTILES = (25, 50, 75, 90, 95)


def fee_percentiles(fees: Iterable[int]) -> dict[int, int]:
    ordered = sorted(int(f) for f in fees)
    n = len(ordered)
    out = {}
    for p in PERCENTILES:
        idx = math.floor(n * p / 100)
        out[p] = ordered[idx] if idx < n else 0
    return out


def median_priority_fee(fees: Iterable[int]) -> int:
    """Median of the non-zero samples; 5000 µlamports when there are none."""
    nonzero = sorted(int(f) for f in fees if int(f) > 0)
    if not nonzero:
        return MEDIAN_FALLBACK_MICRO_LAMPORTS
    return nonzero[len(nonzero) // 2]


def estimated_cost_sol(fee_micro_lamports: int, compute_units: int = 150_000) -> float:
    # µlamports/CU * CU -> µlamports -> lamports -> SOL
    return fee_micro_lamports * compute_units / 1_000_000 / LAMPORTS_PER_SOL


def fetch_median_priority_fee(network: NetworkService) -> int:
    samples = network.get_recent_prioritization_fees()
    return median_priority_fee(s.get("prioritizationFee", 0) for s in samples)


@dataclass
class PriorityFeeCalculator:
    network: NetworkService | None = None
    fixed_fee: int = DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS
    multiplier: float = 1.2
    max_fee: int = DEFAULT_MAX_PRIORITY_FEE_MICRO_LAMPORTS
    helius_rpc_endpoint: str | None = None
    timeout: float = 10.0

    @classmethod
    def from_settings(
        cls, settings: AppSettings, network: NetworkService | None = None
    ) -> PriorityFeeCalculator:
        return cls(
            network=network,
            fixed_fee=settings.fixed_priority_fee_micro_lamports,
            multiplier=settings.dynamic_priority_fee_multiplier,
            max_fee=settings.max_priority_fee_micro_lamports,
            helius_rpc_endpoint=settings.helius_rpc_endpoint,
            timeout=settings.http_timeout_sec,
        )

    def calculate(self, mode: str = "auto") -> int:
        mode = (mode or "auto").lower()
        logger.info("Calculating priority fee (mode: {})", mode)
        if mode == "fixed":
            fee = self.fixed()
        elif mode == "dynamic":
            fee = self.dynamic()
        elif mode == "helius":
            fee = self.helius()
        else:
            fee = DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS
            logger.info("   Using default auto fee: {} micro-lamports", fee)

        max_fee = self.max_fee or DEFAULT_MAX_PRIORITY_FEE_MICRO_LAMPORTS
        if fee > max_fee:
            logger.warning("Priority fee capped at {} micro-lamports (was {})", max_fee, fee)
            fee = max_fee
        logger.info(
            "Priority fee: {} micro-lamports, ~{:.9f} SOL for 150k CU", fee, estimated_cost_sol(fee)
        )
        return fee

    def fixed(self) -> int:
        fee = self.fixed_fee or DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS
        logger.info("   Using fixed priority fee: {} micro-lamports", fee)
        return fee

    def dynamic(self) -> int:
        if self.network is None:
            logger.warning("   No RPC connection for dynamic fees, using default")
            return DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS
        try:
            samples = self.network.get_recent_prioritization_fees()
            fees = [int(s.get("prioritizationFee", 0)) for s in samples]
            if not fees:
                logger.info("   No recent fee data, using default")
                return DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS
            pct = fee_percentiles(fees)
            multiplier = self.multiplier or 1.2
            dynamic_fee = math.ceil(pct[75] * multiplier)
            logger.info(
                "   Samples: {}, P25: {}, P50: {}, P75: {}, P90: {}, P95: {}",
                len(fees), pct[25], pct[50], pct[75], pct[90], pct[95],
            )
            logger.info("   Dynamic fee: P75 ({}) x {} = {}", pct[75], multiplier, dynamic_fee)
            return max(dynamic_fee, DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS)
        except Exception as e:
            logger.warning("   Failed to fetch dynamic fees: {}, using default", e)
            return DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS

    def helius(self) -> int:
        if not self.helius_rpc_endpoint:
            logger.warning("   HELIUS_RPC_ENDPOINT not configured, using default")
            return DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getPriorityFeeEstimate",
            "params": [{"accountKeys": [JUPITER_PROGRAM_ID], "options": {"recommended": True}}],
        }
        try:
            r = requests.post(self.helius_rpc_endpoint, json=payload, timeout=self.timeout)
            r.raise_for_status()
            result = (r.json() or {}).get("result") or {}
            estimate = result.get("priorityFeeEstimate")
            if estimate is None:
                raise ValueError("no priorityFeeEstimate in response")
            fee = math.ceil(float(estimate))
            logger.info("   Helius estimate: {} micro-lamports", fee)
            return fee
        except Exception as e:
            logger.warning("   Failed to fetch Helius priority fee: {}, using default", e)
            return DEFAULT_PRIORITY_FEE_MICRO_LAMPORTS
