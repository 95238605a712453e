from __future__ import annotations

import argparse
import signal
import sys

from loguru import logger

from sol_swap_engine.analytics.metrics import analyze_bottlenecks, format_report, recommend
from sol_swap_engine.analytics.profiler import PerformanceProfiler
from sol_swap_engine.config import AppSettings, SwapOptions
from sol_swap_engine.execution.swap import CoreSwap


def main() -> int:
    p = argparse.ArgumentParser(description="Run real swaps and profile each phase (spends SOL!)")
    p.add_argument("--runs", type=int, default=5)
    p.add_argument("--pause", type=float, default=2.0, help="Seconds between runs")
    p.add_argument("--out-dir", default=".")
    args = p.parse_args()

    settings = AppSettings()
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=settings.log_level)

    def _stop(signum, _frame):
        logger.warning("Profiling interrupted")
        sys.exit(1)

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    profiler = PerformanceProfiler(
        swap_factory=lambda: CoreSwap.create(settings, options=SwapOptions.preset("detailed")),
        runs=args.runs,
        pause_sec=args.pause,
    )
    summary = profiler.run_all()
    profiler.write(args.out_dir)
    print(
        format_report(
            summary,
            analyze_bottlenecks(summary.metrics),
            recommend(summary.metrics, summary),
            title="JUPITER SWAP PERFORMANCE PROFILE",
        )
    )
    return 0 if summary.successful_runs else 1


if __name__ == "__main__":
    raise SystemExit(main())
