from __future__ import annotations

import json
from datetime import datetime, timezone

from solders.keypair import Keypair

from conftest import FakeNetwork, FakeQuotes


def _factory(keypair, quote_json, swap_tx_b64, network=None):
    from sol_swap_engine.execution.swap import CoreSwap

    created = []

    def make():
        s = CoreSwap(
            network=network or FakeNetwork(),
            quotes=FakeQuotes(quote_json, swap_tx_b64),
            keypair=keypair,
            fee_recipient=Keypair().pubkey(),
            fee_bps=30,
        )
        created.append(s)
        return s

    return make, created


def test_run_all_splits_priority_fees(keypair, quote_json, swap_tx_b64):
    from sol_swap_engine.analytics.profiler import PerformanceProfiler

    make, created = _factory(keypair, quote_json, swap_tx_b64)
    sleeps = []
    prof = PerformanceProfiler(swap_factory=make, runs=3, pause_sec=2.0, sleep=sleeps.append)
    summary = prof.run_all()

    assert [r.with_priority_fee for r in prof.results] == [False, False, True]
    assert [s.quotes.swap_calls[0]["compute_unit_price_micro_lamports"] for s in created] == [0, 0, 5000]
    # no pause after the last run
    assert sleeps == [2.0, 2.0]
    assert summary.successful_runs == 3
    assert summary.metrics["rpcLatency"].avg == 42.0
    assert summary.metrics["computeUnits"].avg == 123_456
    first = prof.results[0]
    assert first.success and first.signature
    assert first.metrics["totalSwapTime"] >= first.metrics["getQuote"]


def test_failed_run_keeps_partial_timings(keypair, quote_json, swap_tx_b64):
    from sol_swap_engine.analytics.profiler import PerformanceProfiler
    from sol_swap_engine.errors import ConfirmationError

    net = FakeNetwork(confirm_exc=ConfirmationError("Transaction confirmation failed: Transaction confirmation timeout"))
    make, _ = _factory(keypair, quote_json, swap_tx_b64, network=net)
    prof = PerformanceProfiler(swap_factory=make, runs=1, sleep=lambda s: None)
    r = prof.run_single(1, with_priority_fee=True)

    assert r.success is False
    assert "confirmation timeout" in r.error
    assert "getQuote" in r.metrics
    assert "totalSwapTime" not in r.metrics


def test_factory_error_is_recorded():
    from sol_swap_engine.analytics.profiler import PerformanceProfiler

    def broken():
        raise ValueError("Missing environment variables: PRIVATE_KEY")

    prof = PerformanceProfiler(swap_factory=broken, runs=2, sleep=lambda s: None)
    summary = prof.run_all()
    assert summary.failed_runs == 2
    assert summary.failure_rate == "100.0%"


def test_write(tmp_path, keypair, quote_json, swap_tx_b64):
    from sol_swap_engine.analytics.profiler import PerformanceProfiler

    make, _ = _factory(keypair, quote_json, swap_tx_b64)
    prof = PerformanceProfiler(swap_factory=make, runs=2, sleep=lambda s: None)
    prof.run_all()
    path = prof.write(tmp_path, now=datetime(2024, 1, 1, tzinfo=timezone.utc))

    assert path.name == "performance-report-2024-01-01T00-00-00-00-00.json"
    data = json.loads(path.read_text())
    assert data["summary"]["total_runs"] == 2
    assert len(data["detailedResults"]) == 2
    assert data["detailedResults"][1]["with_priority_fee"] is True


def test_total_time_covers_only_the_swap(keypair, quote_json, swap_tx_b64):
    import time

    from sol_swap_engine.analytics.profiler import PerformanceProfiler

    class SlowLatency(FakeNetwork):
        def measure_rpc_latency(self):
            time.sleep(0.3)
            return 300.0

    make, _ = _factory(keypair, quote_json, swap_tx_b64, network=SlowLatency())
    r = PerformanceProfiler(swap_factory=make, runs=1, sleep=lambda s: None).run_single(1, False)

    assert r.success
    assert r.metrics["rpcLatency"] == 300.0
    assert r.metrics["totalSwapTime"] < 300.0
