from __future__ import annotations

import json
import math
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from loguru import logger

from sol_swap_engine.analytics.metrics import ReportSummary, RunResult, timestamp_slug, summarize
from sol_swap_engine.execution.swap import CoreSwap

PROFILE_PRIORITY_FEE_MICRO_LAMPORTS = 5_000


@dataclass
class PerformanceProfiler:
    """Runs real swaps back to back and collects per-phase timings.

    The first half of the runs sends no priority fee, the second half pays
    a fixed 5000 µlamports/CU so the two confirmation profiles can be compared.
    """

    swap_factory: Callable[[], CoreSwap]
    runs: int = 5
    pause_sec: float = 2.0
    sleep: Callable[[float], None] = time.sleep
    results: list[RunResult] = field(default_factory=list)

    def run_single(self, test_number: int, with_priority_fee: bool) -> RunResult:
        logger.info(
            "Starting performance test {}/{} ({})",
            test_number,
            self.runs,
            "with priority fee" if with_priority_fee else "no priority fee",
        )
        result = RunResult(
            test_number=test_number,
            with_priority_fee=with_priority_fee,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        swapper = None
        try:
            swapper = self.swap_factory()
            result.metrics["rpcLatency"] = swapper.network.measure_rpc_latency()
            logger.info("RPC latency: {:.2f}ms", result.metrics["rpcLatency"])

            fee = PROFILE_PRIORITY_FEE_MICRO_LAMPORTS if with_priority_fee else 0
            start = time.perf_counter()
            swap = swapper.perform_swap(priority_fee=fee)
            result.metrics.update(swap.timings)
            result.metrics["totalSwapTime"] = (time.perf_counter() - start) * 1000
            if swap.compute_units is not None:
                result.metrics["computeUnits"] = swap.compute_units
            result.success = True
            result.signature = swap.signature
            result.input_amount = swap.input_amount_sol
            result.output_amount = swap.output_amount_usdc
            logger.info(
                "Test {} completed in {:.2f}ms", test_number, result.metrics["totalSwapTime"]
            )
        except Exception as e:
            if swapper is not None:
                result.metrics.update(swapper.timings)
            result.error = str(e)
            logger.error("Test {} failed: {}", test_number, e)
        self.results.append(result)
        return result

    def run_all(self) -> ReportSummary:
        logger.info("Starting Jupiter swap performance profiling ({} runs)", self.runs)
        half = math.ceil(self.runs / 2)
        for i in range(1, self.runs + 1):
            self.run_single(i, with_priority_fee=i > half)
            if i < self.runs:
                self.sleep(self.pause_sec)
        return summarize(self.results)

    def write(self, directory: str | Path, now: datetime | None = None) -> Path:
        now = now or datetime.now(timezone.utc)
        path = Path(directory) / f"performance-report-{timestamp_slug(now)}.json"
        data = {
            "timestamp": now.isoformat(),
            "summary": asdict(summarize(self.results)),
            "detailedResults": [asdict(r) for r in self.results],
        }
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False))
        logger.info("Detailed results saved to: {}", path)
        return path
