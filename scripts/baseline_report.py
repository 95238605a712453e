from __future__ import annotations

import argparse
import random

from sol_swap_engine.analytics.metrics import (
    analyze_bottlenecks,
    format_report,
    generate_mock_results,
    recommend,
    summarize,
    write_report,
)


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a baseline performance report from synthetic swap runs")
    p.add_argument("--runs", type=int, default=10)
    p.add_argument("--seed", type=int, help="Seed for reproducible synthetic data")
    p.add_argument("--out-dir", default=".", help="Directory for the JSON report")
    p.add_argument("--no-save", action="store_true")
    args = p.parse_args()

    results = generate_mock_results(args.runs, rng=random.Random(args.seed))
    summary = summarize(results)
    bottlenecks = analyze_bottlenecks(summary.metrics)
    recs = recommend(summary.metrics, summary)

    print(format_report(summary, bottlenecks, recs))
    if not args.no_save:
        path = write_report(args.out_dir, summary, bottlenecks, recs)
        print(f"Detailed report saved to: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
