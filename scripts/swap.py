from __future__ import annotations

import argparse
import signal
import sys

from loguru import logger

from sol_swap_engine.config import AppSettings, SwapOptions
from sol_swap_engine.execution.priority_fees import PriorityFeeCalculator, fetch_median_priority_fee
from sol_swap_engine.execution.swap import CoreSwap

EPILOG = """Examples:
  python scripts/swap.py --priority-fee-mode none
  python scripts/swap.py --priority-fee-mode fixed --fixed-priority-fee 1000
  python scripts/swap.py --priority-fee-mode dynamic --dynamic-priority-fee-multiplier 1.5
"""


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Swap 0.0001 SOL to USDC through Jupiter V6",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument(
        "--priority-fee-mode",
        choices=["auto", "fixed", "dynamic", "helius", "none"],
        help="Priority fee mode; omit to let Jupiter pick the compute unit price",
    )
    p.add_argument("--fixed-priority-fee", type=int, help="Fixed fee in micro-lamports (mode=fixed)")
    p.add_argument("--dynamic-priority-fee-multiplier", type=float, help="Multiplier on P75 (mode=dynamic)")
    p.add_argument("--max-priority-fee", type=int, help="Cap in micro-lamports")
    p.add_argument("--preset", choices=["detailed", "minimal", "shared"], default="detailed")
    p.add_argument("--no-priority", action="store_true", help="Send with a zero compute unit price")
    p.add_argument(
        "--median-priority",
        action="store_true",
        help="Use the median of recent non-zero prioritization fees",
    )
    return p


def settings_from_args(args: argparse.Namespace) -> AppSettings:
    overrides = {}
    if args.priority_fee_mode and args.priority_fee_mode != "none":
        overrides["priority_fee_mode"] = args.priority_fee_mode
    if args.fixed_priority_fee is not None:
        overrides["fixed_priority_fee_micro_lamports"] = args.fixed_priority_fee
    if args.dynamic_priority_fee_multiplier is not None:
        overrides["dynamic_priority_fee_multiplier"] = args.dynamic_priority_fee_multiplier
    if args.max_priority_fee is not None:
        overrides["max_priority_fee_micro_lamports"] = args.max_priority_fee
    return AppSettings(**overrides)


def resolve_priority_fee(args: argparse.Namespace, settings: AppSettings, swapper: CoreSwap) -> int | str:
    if args.no_priority or args.priority_fee_mode == "none":
        return 0
    if args.median_priority:
        return fetch_median_priority_fee(swapper.network)
    # an explicit flag or a configured non-auto PRIORITY_FEE_MODE gets a concrete fee
    if args.priority_fee_mode or settings.priority_fee_mode != "auto":
        calc = PriorityFeeCalculator.from_settings(settings, network=swapper.network)
        return calc.calculate(settings.priority_fee_mode)
    return "auto"


def _install_signal_handlers() -> None:
    def _stop(signum, _frame):
        logger.warning("Received {}, shutting down", signal.Signals(signum).name)
        sys.exit(1)

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = settings_from_args(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=settings.log_level)
    _install_signal_handlers()

    try:
        swapper = CoreSwap.create(settings, options=SwapOptions.preset(args.preset))
        fee = resolve_priority_fee(args, settings, swapper)
        logger.info("Using priority fee: {}", fee)
        result = swapper.perform_swap(priority_fee=fee)
    except Exception as e:
        logger.error("Fatal error: {}", e)
        return 1

    for phase, ms in result.timings.items():
        logger.debug("{}: {:.1f}ms", phase, ms)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
