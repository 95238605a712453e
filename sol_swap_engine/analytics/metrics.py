from __future__ import annotations

import json
import math
import random
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable

from loguru import logger

METRIC_KEYS = (
    "totalSwapTime",
    "getQuote",
    "createSwapTransaction",
    "simulateTransaction",
    "sendTransaction",
    "confirmTransaction",
    "computeUnits",
    "rpcLatency",
)

PHASE_LABELS = (
    ("Quote API", "getQuote"),
    ("Build Transaction", "createSwapTransaction"),
    ("Simulate", "simulateTransaction"),
    ("Send", "sendTransaction"),
    ("Confirm", "confirmTransaction"),
)

PRIORITY_RANK = {"Critical": 4, "High": 3, "Medium": 2, "Low": 1}


@dataclass
class MetricStats:
    min: float
    max: float
    avg: float
    median: float
    p95: float
    count: int


@dataclass
class RunResult:
    test_number: int
    with_priority_fee: bool
    timestamp: str
    success: bool = False
    error: str | None = None
    metrics: dict[str, float] = field(default_factory=dict)
    signature: str | None = None
    input_amount: float | None = None
    output_amount: float | None = None


@dataclass
class ReportSummary:
    total_runs: int
    successful_runs: int
    failed_runs: int
    failure_rate: str  # e.g. "20.0%"
    metrics: dict[str, MetricStats]
    failures: list[dict[str, Any]]


@dataclass
class Bottleneck:
    type: str
    details: list[str]


@dataclass
class Recommendation:
    priority: str
    category: str
    issue: str
    recommendation: str
    expected_improvement: str


def calculate_stats(values: Iterable[float]) -> MetricStats | None:
    ordered = sorted(values)
    n = len(ordered)
    if not n:
        return None
    if n % 2 == 0:
        median = (ordered[n // 2 - 1] + ordered[n // 2]) / 2
    else:
        median = ordered[n // 2]
    p95 = ordered[max(0, math.ceil(n * 0.95) - 1)]
    return MetricStats(
        min=ordered[0], max=ordered[-1], avg=sum(ordered) / n, median=median, p95=p95, count=n
    )


def summarize(results: list[RunResult]) -> ReportSummary:
    successful = [r for r in results if r.success]
    failed = [r for r in results if not r.success]
    rate = (len(failed) / len(results) * 100) if results else 0.0

    metrics: dict[str, MetricStats] = {}
    for key in METRIC_KEYS:
        values = [
            r.metrics[key] for r in successful if r.metrics.get(key) is not None and r.metrics[key] >= 0
        ]
        stats = calculate_stats(values)
        if stats:
            metrics[key] = stats

    return ReportSummary(
        total_runs=len(results),
        successful_runs=len(successful),
        failed_runs=len(failed),
        failure_rate=f"{rate:.1f}%",
        metrics=metrics,
        failures=[
            {"test_number": r.test_number, "error": r.error, "with_priority_fee": r.with_priority_fee}
            for r in failed
        ],
    )


def analyze_bottlenecks(metrics: dict[str, MetricStats]) -> list[Bottleneck]:
    out: list[Bottleneck] = []
    avg_times = sorted(
        ((label, metrics[key].avg if key in metrics else 0.0) for label, key in PHASE_LABELS),
        key=lambda t: t[1],
        reverse=True,
    )
    slowest = [(label, t) for label, t in avg_times[:3] if t > 0]
    if slowest:
        out.append(
            Bottleneck(
                type="Slowest Phases",
                details=[f"{i}. {label}: {t:.1f}ms" for i, (label, t) in enumerate(slowest, 1)],
            )
        )

    variable = []
    for label, key in PHASE_LABELS:
        m = metrics.get(key)
        if m and m.max > m.avg * 3:
            variable.append(f"{label}: {m.min:.1f}ms - {m.max:.1f}ms")
    if variable:
        out.append(Bottleneck(type="High Variability", details=variable))

    rpc = metrics.get("rpcLatency")
    if rpc and rpc.avg > 100:
        out.append(Bottleneck(type="High RPC Latency", details=[f"{rpc.avg:.1f}ms average"]))
    return out


def _avg(metrics: dict[str, MetricStats], key: str) -> float:
    m = metrics.get(key)
    return m.avg if m else 0.0


def recommend(metrics: dict[str, MetricStats], summary: ReportSummary) -> list[Recommendation]:
    recs: list[Recommendation] = []
    if _avg(metrics, "rpcLatency") > 100:
        recs.append(
            Recommendation(
                "High",
                "Infrastructure",
                "High RPC Latency",
                "Consider using a dedicated/premium RPC endpoint (Alchemy, QuickNode, or Helius) to reduce latency",
                "30-50% latency reduction",
            )
        )
    if _avg(metrics, "getQuote") > 1500:
        recs.append(
            Recommendation(
                "Medium",
                "API Optimization",
                "Slow Quote Fetching",
                "Implement quote caching with TTL, use onlyDirectRoutes for simple swaps, or implement parallel quote requests",
                "20-40% faster quote retrieval",
            )
        )
    if _avg(metrics, "createSwapTransaction") > 1500:
        recs.append(
            Recommendation(
                "Medium",
                "Transaction Building",
                "Slow Transaction Creation",
                "Optimize payload structure, use shared accounts where possible, or implement transaction caching",
                "15-25% faster transaction building",
            )
        )
    if _avg(metrics, "confirmTransaction") > 25_000:
        recs.append(
            Recommendation(
                "High",
                "Transaction Confirmation",
                "Slow Transaction Confirmation",
                "Implement dynamic priority fees, use confirmation retry logic with exponential backoff",
                "40-60% faster confirmations",
            )
        )
    if _avg(metrics, "computeUnits") > 180_000:
        recs.append(
            Recommendation(
                "Low",
                "Compute Efficiency",
                "High Compute Usage",
                "Optimize transaction complexity, reduce instruction count, or use lookup tables",
                "10-20% compute unit reduction",
            )
        )
    if float(summary.failure_rate.rstrip("%")) > 10:
        recs.append(
            Recommendation(
                "Critical",
                "Reliability",
                f"High Failure Rate ({summary.failure_rate})",
                "Implement comprehensive error handling, retry logic, and better simulation validation",
                "Reduce failure rate to <5%",
            )
        )
    if _avg(metrics, "getQuote") + _avg(metrics, "createSwapTransaction") > 2000:
        recs.append(
            Recommendation(
                "Medium",
                "Serialization",
                "High Serialization Overhead",
                "Optimize JSON parsing, implement request batching, or use more efficient serialization formats",
                "15-30% processing time reduction",
            )
        )
    # stable: equal priorities keep discovery order
    recs.sort(key=lambda r: PRIORITY_RANK.get(r.priority, 0), reverse=True)
    return recs


def generate_mock_results(runs: int = 10, rng: random.Random | None = None) -> list[RunResult]:
    """Synthetic runs with realistic latencies; the second half uses priority fees."""
    rng = rng or random.Random()
    now = datetime.now(timezone.utc)
    results = []
    for i in range(1, runs + 1):
        with_fee = i > runs // 2
        m = {
            "rpcLatency": 45 + rng.random() * 30,
            "getQuote": 800 + rng.random() * 400,
            "createSwapTransaction": 1200 + rng.random() * 600,
            "simulateTransaction": 150 + rng.random() * 100,
            "sendTransaction": 200 + rng.random() * 150,
            "confirmTransaction": (8000 + rng.random() * 4000)
            if with_fee
            else (15000 + rng.random() * 10000),
        }
        m["totalSwapTime"] = sum(m.values())
        m["executeSwap"] = m["simulateTransaction"] + m["sendTransaction"] + m["confirmTransaction"]
        m["computeUnits"] = 120_000 + rng.randrange(40_000)
        success = rng.random() > 0.15
        r = RunResult(
            test_number=i,
            with_priority_fee=with_fee,
            timestamp=(now - timedelta(minutes=runs - i)).isoformat(),
            success=success,
            metrics=m,
        )
        if success:
            r.signature = "5KHx" + "".join(rng.choice("abcdefghijklmnopqrstuvwxyz0123456789") for _ in range(13))
            r.input_amount = 0.0001
            r.output_amount = 0.000023 + rng.random() * 0.000005
        else:
            r.error = "Transaction simulation failed"
        results.append(r)
    return results


def _fmt(value: float, unit: str) -> str:
    if unit == "CU":
        return f"{round(value):,}".rjust(7)
    return f"{value:.1f}".rjust(7)


def format_report(
    summary: ReportSummary,
    bottlenecks: list[Bottleneck],
    recommendations: list[Recommendation],
    title: str = "JUPITER SWAP PERFORMANCE BASELINE REPORT",
) -> str:
    lines = ["=" * 80, title, "=" * 80]
    lines.append(f"Generated on: {datetime.now(timezone.utc).isoformat()}")
    lines.append("Environment: Solana Mainnet via Jupiter V6 API")

    total = summary.total_runs or 1
    lines += [
        "",
        "Test Summary:",
        f"   Total Test Runs: {summary.total_runs}",
        f"   Successful Swaps: {summary.successful_runs} ({summary.successful_runs / total * 100:.1f}%)",
        f"   Failed Swaps: {summary.failed_runs} ({summary.failure_rate})",
    ]
    if summary.failures:
        lines += ["", "Failure Analysis:"]
        for f in summary.failures:
            kind = "(with priority fee)" if f["with_priority_fee"] else "(standard)"
            lines.append(f"   • Test {f['test_number']} {kind}: {f['error']}")

    lines += [
        "",
        "Swap Flow Performance Metrics:",
        "   " + "-" * 85,
        "   Phase                     | Min     | Avg     | Median  | P95     | Max     | Unit",
        "   " + "-" * 85,
    ]
    rows = (
        ("Total Swap Time", "totalSwapTime", "ms"),
        ("1. Quote API Latency", "getQuote", "ms"),
        ("2. Build Transaction", "createSwapTransaction", "ms"),
        ("3. Simulate Transaction", "simulateTransaction", "ms"),
        ("4. Send Transaction", "sendTransaction", "ms"),
        ("5. Confirm Transaction", "confirmTransaction", "ms"),
        ("RPC Latency", "rpcLatency", "ms"),
        ("Compute Units", "computeUnits", "CU"),
    )
    for label, key, unit in rows:
        m = summary.metrics.get(key)
        if m:
            cells = " | ".join(_fmt(v, unit) for v in (m.min, m.avg, m.median, m.p95, m.max))
            lines.append(f"   {label.ljust(25)} | {cells} | {unit}")

    lines += ["", "Bottleneck Analysis:"]
    if not bottlenecks:
        lines.append("   No significant bottlenecks detected")
    for b in bottlenecks:
        lines.append(f"   {b.type}:")
        lines += [f"   • {d}" for d in b.details]

    confirm_avg = _avg(summary.metrics, "confirmTransaction")
    total_avg = _avg(summary.metrics, "totalSwapTime")
    cu_avg = _avg(summary.metrics, "computeUnits")
    lines += [
        "",
        "Cost & Efficiency Analysis:",
        f"   Average Confirmation Time: {confirm_avg:.0f}ms ({confirm_avg / 1000:.1f}s)",
        f"   Average Total Swap Time: {total_avg:.0f}ms ({total_avg / 1000:.1f}s)",
        f"   Average Compute Units: {round(cu_avg):,}",
        f"   Estimated TX Cost: ~{cu_avg * 0.000005:.6f} SOL",
    ]
    if confirm_avg > 20_000:
        lines.append("   Consider enabling priority fees for faster confirmation")

    lines += ["", "Optimization Recommendations:"]
    if not recommendations:
        lines.append("   Performance appears optimal - no critical issues detected")
    for i, rec in enumerate(recommendations, 1):
        lines.append(f"   {i}. [{rec.priority}] {rec.issue} ({rec.category})")
        lines.append(f"      Recommendation: {rec.recommendation}")
        lines.append(f"      Expected Impact: {rec.expected_improvement}")
    lines.append("=" * 80)
    return "\n".join(lines)


def timestamp_slug(now: datetime) -> str:
    return now.isoformat().replace(":", "-").replace(".", "-").replace("+", "-")


def write_report(
    directory: str | Path,
    summary: ReportSummary,
    bottlenecks: list[Bottleneck],
    recommendations: list[Recommendation],
    now: datetime | None = None,
) -> Path:
    now = now or datetime.now(timezone.utc)
    path = Path(directory) / f"jupiter-swap-baseline-report-{timestamp_slug(now)}.json"
    data = {
        "metadata": {
            "timestamp": now.isoformat(),
            "environment": "Solana Mainnet",
            "jupiter_version": "V6 API",
            "test_type": "Performance Baseline",
            "swap_pair": "SOL → USDC",
            "swap_amount": "0.0001 SOL",
        },
        "summary": asdict(summary),
        "bottlenecks": [asdict(b) for b in bottlenecks],
        "recommendations": [asdict(r) for r in recommendations],
    }
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False))
    logger.info("Detailed report saved to: {}", path)
    return path
