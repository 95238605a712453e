from __future__ import annotations

import argparse

from loguru import logger

from sol_swap_engine.chains.solana import NetworkService
from sol_swap_engine.config import LAMPORTS_PER_SOL, AppSettings
from sol_swap_engine.execution.priority_fees import PriorityFeeCalculator, median_priority_fee
from sol_swap_engine.keys import load_keypair


def main() -> int:
    p = argparse.ArgumentParser(description="Show the priority fee each mode would pick right now")
    p.add_argument(
        "--modes",
        default="auto,fixed,dynamic",
        help="Comma separated modes to evaluate (auto,fixed,dynamic,helius)",
    )
    args = p.parse_args()

    settings = AppSettings()
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=settings.log_level)

    network = NetworkService.create(settings.rpc_endpoint)
    if settings.private_key:
        try:
            owner = load_keypair(settings.private_key).pubkey()
            balance = network.get_balance(owner)
            logger.info("Wallet {} balance: {:.9f} SOL", owner, balance / LAMPORTS_PER_SOL)
        except Exception as e:
            logger.warning("Could not read wallet balance: {}", e)

    logger.info("Priority fee mode (configured): {}", settings.priority_fee_mode)
    logger.info("Max priority fee: {} micro-lamports", settings.max_priority_fee_micro_lamports)

    calc = PriorityFeeCalculator.from_settings(settings, network=network)
    for mode in [m.strip() for m in args.modes.split(",") if m.strip()]:
        calc.calculate(mode)

    samples = network.get_recent_prioritization_fees()
    logger.info(
        "Median of recent non-zero fees: {} micro-lamports",
        median_priority_fee(s.get("prioritizationFee", 0) for s in samples),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
