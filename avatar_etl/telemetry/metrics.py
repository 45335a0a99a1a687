from __future__ import annotations

import threading
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Iterable, Tuple


def _percentile(sorted_values: List[float], p: float) -> float:
    if not sorted_values:
        return float("nan")
    k = (len(sorted_values) - 1) * (p / 100.0)
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_values[int(k)]
    d0 = sorted_values[f] * (c - k)
    d1 = sorted_values[c] * (k - f)
    return d0 + d1


def pct_summary(values: Iterable[float]) -> Dict[str, float]:
    vals = sorted(v for v in values if v is not None)
    if not vals:
        return {"count": 0, "min": float("nan"), "p50": float("nan"),
                "p95": float("nan"), "max": float("nan")}
    return {
        "count": len(vals),
        "min": vals[0],
        "p50": _percentile(vals, 50),
        "p95": _percentile(vals, 95),
        "max": vals[-1],
    }


@dataclass
class Metrics:
    lock: threading.Lock = field(default_factory=threading.Lock)

    endpoints_total: int = 0
    endpoints_failed: int = 0
    pages_fetched: int = 0
    pages_malformed: int = 0

    identities_harvested: int = 0
    identities_unique: int = 0

    resolved: int = 0
    unresolved: int = 0
    downloads_ok: int = 0
    downloads_failed: int = 0
    tasks_failed: int = 0
    bytes_downloaded: int = 0

    # stage -> list of durations
    stage_durations: Dict[str, List[float]] = field(
        default_factory=lambda: defaultdict(list))

    # error classification
    errors_by_type: Counter[str] = field(default_factory=Counter)

    def inc(self, attr: str, value: int = 1) -> None:
        with self.lock:
            setattr(self, attr, getattr(self, attr) + value)

    def add_bytes(self, n: int) -> None:
        with self.lock:
            self.bytes_downloaded += n

    def observe_stage(self, stage: str, duration: float) -> None:
        with self.lock:
            self.stage_durations[stage].append(duration)

    def record_error(self, exc: BaseException) -> None:
        with self.lock:
            self.errors_by_type[type(exc).__name__] += 1

    def summary(self) -> Tuple[str, Dict]:
        with self.lock:
            stage_stats = {
                stage: pct_summary(durations)
                for stage, durations in self.stage_durations.items()
            }
            res = {
                "endpoints_total": self.endpoints_total,
                "endpoints_failed": self.endpoints_failed,
                "pages_fetched": self.pages_fetched,
                "pages_malformed": self.pages_malformed,
                "identities_harvested": self.identities_harvested,
                "identities_unique": self.identities_unique,
                "resolved": self.resolved,
                "unresolved": self.unresolved,
                "downloads_ok": self.downloads_ok,
                "downloads_failed": self.downloads_failed,
                "tasks_failed": self.tasks_failed,
                "bytes_downloaded": self.bytes_downloaded,
                "stage_stats": stage_stats,
                "errors_by_type": dict(self.errors_by_type),
            }

        lines = []
        lines.append("===== HARVEST SUMMARY =====")
        lines.append(f"Endpoints  : total={res['endpoints_total']}  "
                     f"failed={res['endpoints_failed']}")
        lines.append(f"Pages      : fetched={res['pages_fetched']}  "
                     f"malformed={res['pages_malformed']}")
        lines.append(f"Identities : harvested={res['identities_harvested']}  "
                     f"unique={res['identities_unique']}")
        lines.append(f"Resolution : ok={res['resolved']}  unresolved={res['unresolved']}  "
                     f"tasks_failed={res['tasks_failed']}")
        lines.append(f"Downloads  : ok={res['downloads_ok']}  "
                     f"failed={res['downloads_failed']}  "
                     f"{res['bytes_downloaded'] / 1024:.1f} KiB")
        if stage_stats:
            lines.append("")
            lines.append("Per-stage timings (seconds):")
            for stage, stats in stage_stats.items():
                lines.append(
                    f"  {stage:10s} "
                    f"count={stats['count']:6d}  "
                    f"min={stats['min']:.4f}  p50={stats['p50']:.4f}  "
                    f"p95={stats['p95']:.4f}  max={stats['max']:.4f}"
                )
        if res["errors_by_type"]:
            lines.append("")
            lines.append("Errors by type:")
            for k, v in sorted(res["errors_by_type"].items(), key=lambda kv: kv[1], reverse=True):
                lines.append(f"  {k}: {v}")

        return "\n".join(lines), res
