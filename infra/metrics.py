"""Process-local counters and latency samples.

Counters are keyed by `(name, label)`; plain counters use an empty label and
reason counters use the reason as label. Latency samples keep the most recent
`max_samples` values per series.
"""

from __future__ import annotations

import time
from collections import Counter, deque
from contextlib import contextmanager
from typing import Any, Deque, Dict, Iterator, Optional, Sequence, Tuple

VERDICT_GROUP = "verdicts_by_outcome"
VERDICT_OUTCOMES = ("passed", "reverted", "slippage")


def _quantile(samples: Sequence[float], q: float) -> Optional[float]:
    if not samples:
        return None
    ordered = sorted(samples)
    idx = int(round(q * (len(ordered) - 1)))
    return float(ordered[max(0, min(len(ordered) - 1, idx))])


class Metrics:
    def __init__(self, max_samples: int = 2000) -> None:
        self.max_samples = int(max_samples)
        self._counts: Counter = Counter()
        self._samples: Dict[str, Deque[float]] = {}

    def reset(self) -> None:
        self._counts = Counter()
        self._samples = {}

    def inc(self, name: str, n: int = 1) -> None:
        if name:
            self._counts[(str(name), "")] += int(n)

    def inc_reason(self, group: str, reason: str, n: int = 1) -> None:
        if group and reason:
            self._counts[(str(group), str(reason))] += int(n)

    def observe_ms(self, name: str, value_ms: float) -> None:
        if not name or value_ms != value_ms:  # NaN
            return
        series = self._samples.get(name)
        if series is None:
            series = self._samples[name] = deque(maxlen=self.max_samples)
        series.append(float(value_ms))

    @contextmanager
    def timed(self, name: str) -> Iterator[None]:
        """Record the wall time of the block, including when it raises."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.observe_ms(name, (time.perf_counter() - t0) * 1000.0)

    def counter(self, name: str) -> int:
        return int(self._counts.get((name, ""), 0))

    def reason(self, group: str, reason: str) -> int:
        return int(self._counts.get((group, reason), 0))

    def verdict_summary(self) -> Dict[str, Any]:
        by_outcome = {outcome: self.reason(VERDICT_GROUP, outcome) for outcome in VERDICT_OUTCOMES}
        total = sum(by_outcome.values())
        by_outcome["total"] = total
        by_outcome["pass_rate"] = (by_outcome["passed"] / total) if total else None
        return by_outcome

    def snapshot(self) -> Dict[str, Any]:
        counters: Dict[str, int] = {}
        reasons: Dict[str, Dict[str, int]] = {}
        key: Tuple[str, str]
        for key, n in self._counts.items():
            name, label = key
            if label:
                reasons.setdefault(name, {})[label] = n
            else:
                counters[name] = n
        return {
            "counters": counters,
            "reason_counters": reasons,
            "latency_ms": {
                name: {"count": len(s), "p50": _quantile(s, 0.5), "p95": _quantile(s, 0.95)}
                for name, s in self._samples.items()
            },
            "verdicts": self.verdict_summary(),
        }


METRICS = Metrics()
