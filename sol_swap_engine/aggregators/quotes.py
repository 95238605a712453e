from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from loguru import logger

from sol_swap_engine.aggregators import jupiter
from sol_swap_engine.config import LAMPORTS_PER_SOL, SOL_MINT, USDC_DECIMALS, USDC_MINT

# Route labels whose pools tend to move between quote and execution
VOLATILE_DEXES = frozenset({"Serum", "OpenBook", "Raydium CLMM"})


@dataclass(frozen=True)
class SlippageConfig:
    base: int = 100  # bps
    min: int = 50
    max: int = 500
    price_impact_multiplier: float = 2.0
    volatility_factor: float = 1.5


@dataclass(frozen=True)
class RouteInfo:
    exchanges: list[str]
    hops: int
    complexity: str
    route: str


@dataclass(frozen=True)
class FeeEstimate:
    platform_fee: int = 0
    jupiter_fee: int = 0
    total: int = 0


@dataclass
class Quote:
    raw: dict[str, Any]
    input_amount: int
    output_amount: int
    price_impact: float
    route: RouteInfo
    slippage_bps: int
    estimated_fees: FeeEstimate
    recommended_slippage_bps: int
    fetched_at: float = field(default_factory=time.time)

    @property
    def is_direct(self) -> bool:
        return self.route.hops <= 1


def route_info(quote: dict[str, Any]) -> RouteInfo:
    plan = quote.get("routePlan") or []
    if not plan:
        return RouteInfo(exchanges=["Direct"], hops=1, complexity="Simple", route="Direct")
    exchanges = []
    for step in plan:
        info = step.get("swapInfo") or {}
        exchanges.append(info.get("label") or info.get("dexLabel") or "Unknown")
    hops = len(plan)
    complexity = "Simple"
    if hops > 2:
        complexity = "Complex"
    elif hops > 1:
        complexity = "Moderate"
    return RouteInfo(exchanges=exchanges, hops=hops, complexity=complexity, route=" → ".join(exchanges))


def calculate_adaptive_slippage(
    price_impact: float, route: RouteInfo, config: SlippageConfig = SlippageConfig()
) -> int:
    """Recommended slippage in bps for a quote, always within [config.min, config.max]."""
    slippage = config.base
    if price_impact > 0.5:
        slippage += int(price_impact * config.price_impact_multiplier * 100)
    if route.hops > 1:
        slippage += (route.hops - 1) * 25  # +0.25% per extra hop
    if any(ex in VOLATILE_DEXES for ex in route.exchanges):
        slippage = int(slippage * config.volatility_factor)
    return max(config.min, min(config.max, slippage))


def estimate_fees(quote: dict[str, Any]) -> FeeEstimate:
    platform_fee = 0
    if quote.get("platformFee"):
        platform_fee = int((quote["platformFee"] or {}).get("amount") or 0)
    # Jupiter does not itemise its own cut; assume 0.01% of output
    jupiter_fee = int(int(quote.get("outAmount") or 0) * 0.0001)
    return FeeEstimate(
        platform_fee=platform_fee, jupiter_fee=jupiter_fee, total=platform_fee + jupiter_fee
    )


def is_output_monotonic(samples: Iterable[tuple[int, int]]) -> bool:
    """True when, ordered by input amount, quoted outputs never decrease."""
    ordered = sorted(samples, key=lambda s: s[0])
    return all(b[1] >= a[1] for a, b in zip(ordered, ordered[1:]))


def find_best_quote(
    quotes: list[Quote],
    prioritize_output: bool = True,
    max_price_impact: float = 5.0,
    prefer_direct_routes: bool = False,
) -> Quote:
    valid = [q for q in quotes if q.price_impact <= max_price_impact]
    if not valid:
        raise ValueError("No valid quotes found within price impact constraints")
    if prioritize_output:
        valid.sort(key=lambda q: q.output_amount, reverse=True)
    else:
        valid.sort(key=lambda q: q.price_impact)
    if prefer_direct_routes:
        direct = [q for q in valid if q.is_direct]
        if direct:
            return direct[0]
    return valid[0]


@dataclass
class QuoteService:
    quote_url: str = "https://quote-api.jup.ag/v6/quote"
    swap_url: str = "https://quote-api.jup.ag/v6/swap"
    timeout: float = 10.0
    retries: int = 3
    cache_ttl: float = 15.0
    slippage: SlippageConfig = field(default_factory=SlippageConfig)
    _cache: dict[tuple, tuple[float, Quote]] = field(default_factory=dict, repr=False)

    @classmethod
    def from_settings(cls, settings) -> QuoteService:
        return cls(
            quote_url=settings.jupiter_quote_url,
            swap_url=settings.jupiter_swap_url,
            timeout=settings.http_timeout_sec,
            retries=settings.http_retries,
        )

    def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int | None = None,
        only_direct_routes: bool = False,
        platform_fee_bps: int | None = None,
        fee_account: str | None = None,
        exclude_dexes: Iterable[str] = (),
        max_accounts: int = 64,
        use_cache: bool = True,
    ) -> Quote:
        slippage_bps = self.slippage.base if slippage_bps is None else slippage_bps
        key = (input_mint, output_mint, int(amount), slippage_bps, only_direct_routes)
        if use_cache:
            cached = self._cache.get(key)
            if cached and time.time() - cached[0] < self.cache_ttl:
                logger.info("Using cached quote")
                return cached[1]

        logger.info("Fetching quote from Jupiter V6...")
        raw = jupiter.get_quote(
            self.quote_url,
            input_mint,
            output_mint,
            amount,
            slippage_bps,
            only_direct_routes=only_direct_routes,
            platform_fee_bps=platform_fee_bps,
            fee_account=fee_account,
            exclude_dexes=exclude_dexes,
            max_accounts=max_accounts,
            timeout=self.timeout,
            retries=self.retries,
        )
        quote = self.enhance(raw, amount, slippage_bps)
        self._cache[key] = (quote.fetched_at, quote)
        self.log_quote(quote, input_mint, output_mint)
        return quote

    def enhance(self, raw: dict[str, Any], amount: int, slippage_bps: int) -> Quote:
        route = route_info(raw)
        price_impact = float(raw.get("priceImpactPct") or 0)
        return Quote(
            raw=raw,
            input_amount=int(amount),
            output_amount=int(raw["outAmount"]),
            price_impact=price_impact,
            route=route,
            slippage_bps=slippage_bps,
            estimated_fees=estimate_fees(raw),
            recommended_slippage_bps=calculate_adaptive_slippage(price_impact, route, self.slippage),
        )

    def create_swap_transaction(
        self,
        quote: Quote,
        user_public_key: str,
        wrap_and_unwrap_sol: bool = True,
        use_shared_accounts: bool = False,
        fee_account: str | None = None,
        compute_unit_price_micro_lamports: jupiter.ComputeUnitPrice = "auto",
    ) -> str:
        logger.info("Creating swap transaction via Jupiter...")
        return jupiter.get_swap_transaction(
            self.swap_url,
            quote.raw,
            user_public_key,
            wrap_and_unwrap_sol=wrap_and_unwrap_sol,
            use_shared_accounts=use_shared_accounts,
            fee_account=fee_account,
            compute_unit_price_micro_lamports=compute_unit_price_micro_lamports,
            timeout=self.timeout,
            retries=self.retries,
        )

    def log_quote(self, quote: Quote, input_mint: str, output_mint: str) -> None:
        in_label = "SOL" if input_mint == SOL_MINT else "tokens"
        out_label = "USDC" if output_mint == USDC_MINT else "tokens"
        logger.info("Quote received:")
        logger.info("   Input: {:.6f} {}", quote.input_amount / LAMPORTS_PER_SOL, in_label)
        logger.info("   Output: {:.6f} {}", quote.output_amount / 10**USDC_DECIMALS, out_label)
        logger.info("   Price Impact: {:.4f}%", quote.price_impact * 100)
        logger.info("   Route: {} ({})", quote.route.route, quote.route.complexity)
        logger.info("   Slippage Used: {}%", quote.slippage_bps / 100)
        logger.info("   Recommended: {}%", quote.recommended_slippage_bps / 100)
        if quote.estimated_fees.total > 0:
            logger.info("   Estimated Fees: {} tokens", quote.estimated_fees.total)

    def quote_age(self, quote: Quote) -> float:
        return time.time() - quote.fetched_at

    def is_quote_fresh(self, quote: Quote, max_age: float | None = None) -> bool:
        return self.quote_age(quote) < (self.cache_ttl if max_age is None else max_age)

    def clear_expired_cache(self) -> int:
        now = time.time()
        expired = [k for k, (ts, _) in self._cache.items() if now - ts > self.cache_ttl]
        for k in expired:
            del self._cache[k]
        return len(expired)
