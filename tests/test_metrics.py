from __future__ import annotations

import json
import random
from datetime import datetime, timezone

import pytest


def _run(n, success=True, with_fee=False, **metrics):
    from sol_swap_engine.analytics.metrics import RunResult

    return RunResult(
        test_number=n,
        with_priority_fee=with_fee,
        timestamp="2024-01-01T00:00:00+00:00",
        success=success,
        error=None if success else "boom",
        metrics=metrics,
    )


def test_calculate_stats():
    from sol_swap_engine.analytics.metrics import calculate_stats

    assert calculate_stats([]) is None

    s = calculate_stats([5, 1, 3, 2, 4])
    assert (s.min, s.max, s.avg, s.median, s.count) == (1, 5, 3, 3, 5)
    assert s.p95 == 5

    even = calculate_stats([10, 20, 30, 40])
    assert even.median == 25
    # ceil(4 * .95) - 1 = 3
    assert even.p95 == 40

    one = calculate_stats([7.5])
    assert one.p95 == one.median == 7.5


def test_summarize_skips_failures_and_negative_latency():
    from sol_swap_engine.analytics.metrics import summarize

    results = [
        _run(1, getQuote=100, rpcLatency=-1.0),
        _run(2, getQuote=300, rpcLatency=50.0),
        _run(3, success=False, with_fee=True, getQuote=9999),
    ]
    summary = summarize(results)
    assert summary.total_runs == 3
    assert summary.successful_runs == 2
    assert summary.failed_runs == 1
    assert summary.failure_rate == "33.3%"
    assert summary.metrics["getQuote"].avg == 200
    assert summary.metrics["rpcLatency"].count == 1
    assert "confirmTransaction" not in summary.metrics
    assert summary.failures == [{"test_number": 3, "error": "boom", "with_priority_fee": True}]


def test_summarize_empty():
    from sol_swap_engine.analytics.metrics import summarize

    summary = summarize([])
    assert summary.failure_rate == "0.0%"
    assert summary.metrics == {}


def test_bottlenecks():
    from sol_swap_engine.analytics.metrics import analyze_bottlenecks, summarize

    summary = summarize(
        [
            _run(1, getQuote=100, confirmTransaction=1000, sendTransaction=50, rpcLatency=150),
            _run(2, getQuote=100, confirmTransaction=1000, sendTransaction=50, rpcLatency=150),
            _run(3, getQuote=100, confirmTransaction=1000, sendTransaction=50, rpcLatency=150),
            _run(4, getQuote=1300, confirmTransaction=1000, sendTransaction=50, rpcLatency=150),
        ]
    )
    found = {b.type: b.details for b in analyze_bottlenecks(summary.metrics)}
    assert found["Slowest Phases"] == ["1. Confirm: 1000.0ms", "2. Quote API: 400.0ms", "3. Send: 50.0ms"]
    # 1300 > 3 * 400
    assert found["High Variability"] == ["Quote API: 100.0ms - 1300.0ms"]
    assert found["High RPC Latency"] == ["150.0ms average"]


def test_no_bottlenecks_for_empty_metrics():
    from sol_swap_engine.analytics.metrics import analyze_bottlenecks

    assert analyze_bottlenecks({}) == []


def test_recommend_orders_by_priority():
    from sol_swap_engine.analytics.metrics import recommend, summarize

    results = [
        _run(1, rpcLatency=200, getQuote=1600, createSwapTransaction=600, confirmTransaction=30_000, computeUnits=190_000),
        _run(2, success=False),
        _run(3, success=False),
    ]
    summary = summarize(results)
    recs = recommend(summary.metrics, summary)
    assert [r.priority for r in recs] == ["Critical", "High", "High", "Medium", "Medium", "Low"]
    assert recs[0].issue == "High Failure Rate (66.7%)"
    # equal priorities keep discovery order
    assert [r.issue for r in recs[1:3]] == ["High RPC Latency", "Slow Transaction Confirmation"]
    assert [r.issue for r in recs[3:5]] == ["Slow Quote Fetching", "High Serialization Overhead"]


def test_recommend_nothing_when_fast():
    from sol_swap_engine.analytics.metrics import recommend, summarize

    summary = summarize([_run(1, rpcLatency=40, getQuote=300, createSwapTransaction=400)])
    assert recommend(summary.metrics, summary) == []


def test_mock_results_are_seeded():
    from sol_swap_engine.analytics.metrics import generate_mock_results

    a = generate_mock_results(10, rng=random.Random(7))
    b = generate_mock_results(10, rng=random.Random(7))
    assert [r.metrics for r in a] == [r.metrics for r in b]
    assert [r.with_priority_fee for r in a] == [False] * 5 + [True] * 5
    for r in a:
        assert r.metrics["totalSwapTime"] > r.metrics["confirmTransaction"]
        assert 120_000 <= r.metrics["computeUnits"] < 160_000
        if r.success:
            assert r.error is None and r.signature.startswith("5KHx")
        else:
            assert r.error == "Transaction simulation failed"


def test_format_report_sections():
    from sol_swap_engine.analytics.metrics import (
        analyze_bottlenecks,
        format_report,
        generate_mock_results,
        recommend,
        summarize,
    )

    summary = summarize(generate_mock_results(6, rng=random.Random(1)))
    text = format_report(summary, analyze_bottlenecks(summary.metrics), recommend(summary.metrics, summary))
    assert "JUPITER SWAP PERFORMANCE BASELINE REPORT" in text
    assert "Swap Flow Performance Metrics:" in text
    assert "Bottleneck Analysis:" in text
    assert "Optimization Recommendations:" in text


def test_format_report_empty():
    from sol_swap_engine.analytics.metrics import format_report, summarize

    text = format_report(summarize([]), [], [])
    assert "No significant bottlenecks detected" in text
    assert "Performance appears optimal" in text


def test_timestamp_slug():
    from sol_swap_engine.analytics.metrics import timestamp_slug

    now = datetime(2024, 5, 6, 7, 8, 9, 123000, tzinfo=timezone.utc)
    assert timestamp_slug(now) == "2024-05-06T07-08-09-123000-00-00"


def test_write_report(tmp_path):
    from sol_swap_engine.analytics.metrics import (
        analyze_bottlenecks,
        generate_mock_results,
        recommend,
        summarize,
        write_report,
    )

    summary = summarize(generate_mock_results(4, rng=random.Random(3)))
    now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    path = write_report(
        tmp_path, summary, analyze_bottlenecks(summary.metrics), recommend(summary.metrics, summary), now=now
    )
    assert path.name == "jupiter-swap-baseline-report-2024-01-02T03-04-05-00-00.json"
    data = json.loads(path.read_text())
    assert data["metadata"]["timestamp"] == now.isoformat()
    assert data["summary"]["total_runs"] == 4
    assert set(data) == {"metadata", "summary", "bottlenecks", "recommendations"}
    for stats in data["summary"]["metrics"].values():
        assert stats["min"] <= stats["median"] <= stats["max"]


@pytest.mark.parametrize("runs", [1, 3])
def test_mock_priority_split_small_runs(runs):
    from sol_swap_engine.analytics.metrics import generate_mock_results

    results = generate_mock_results(runs, rng=random.Random(0))
    assert len(results) == runs
    assert results[-1].with_priority_fee is True
