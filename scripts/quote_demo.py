from __future__ import annotations

import argparse

from loguru import logger

from sol_swap_engine.aggregators.quotes import QuoteService, is_output_monotonic
from sol_swap_engine.config import LAMPORTS_PER_SOL, SOL_MINT, SWAP_AMOUNT_LAMPORTS, USDC_DECIMALS, USDC_MINT, AppSettings

TEST_AMOUNTS = (100_000, 1_000_000, 10_000_000)


def main() -> int:
    p = argparse.ArgumentParser(description="Fetch SOL -> USDC quotes from Jupiter without signing anything")
    p.add_argument("--amount", type=int, default=SWAP_AMOUNT_LAMPORTS, help="Lamports for the detailed quote")
    p.add_argument("--skip-ladder", action="store_true", help="Only fetch the single detailed quote")
    args = p.parse_args()

    settings = AppSettings()
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=settings.log_level)

    quotes = QuoteService.from_settings(settings)
    try:
        q = quotes.get_quote(SOL_MINT, USDC_MINT, args.amount, slippage_bps=settings.slippage_bps)
        sol = args.amount / LAMPORTS_PER_SOL
        usdc = q.output_amount / 10**USDC_DECIMALS
        logger.info("Rate: 1 SOL = {:.2f} USDC", usdc / sol)
        if q.raw.get("contextSlot"):
            logger.info("Context slot: {}", q.raw["contextSlot"])
        if q.raw.get("timeTaken") is not None:
            logger.info("Time taken: {}", q.raw["timeTaken"])

        if not args.skip_ladder:
            samples = []
            for amount in TEST_AMOUNTS:
                lq = quotes.get_quote(SOL_MINT, USDC_MINT, amount, slippage_bps=settings.slippage_bps)
                samples.append((amount, lq.output_amount))
                out = lq.output_amount / 10**USDC_DECIMALS
                logger.info(
                    "{} SOL -> {:.6f} USDC (rate {:.2f})",
                    amount / LAMPORTS_PER_SOL,
                    out,
                    out / (amount / LAMPORTS_PER_SOL),
                )
            if not is_output_monotonic(samples):
                logger.error("Quoted output decreased as the input grew: {}", samples)
                return 1
    except Exception as e:
        logger.error("Quote demo failed: {}", e)
        return 1
    logger.info("Jupiter V6 quote API is working")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
