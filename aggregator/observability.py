"""
aggregator.observability — Per-batch fetch metrics and alert evaluation.

Threshold Rationale
-------------------
FAILURE_RATE_WARNING  (10 %)   — Records that end up as placeholders.  Above
    10 % the upstream is flapping or our limits are too aggressive.
FAILURE_RATE_CRITICAL (25 %)   — A quarter of the dataset missing is unusable
    for the merge step.
BAN_ALERT_THRESHOLD   (1)      — A single soft ban means the upstream has
    flagged this client; limits need lowering before the next run.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from aggregator.errors import BannedError, FetchError, RateLimitExceeded

FAILURE_RATE_WARNING = 10.0
FAILURE_RATE_CRITICAL = 25.0
BAN_ALERT_THRESHOLD = 1


def start_fetch_run(upstream: str) -> dict:
    """Begin a new batch against ``upstream``.  Returns a metrics dict to populate."""
    return {
        "run_id": str(uuid.uuid4()),
        "run_start": datetime.now(timezone.utc),
        "run_end": None,
        "duration_seconds": None,
        "upstream": upstream,
        "fetch_success": 0,
        "fetch_failed": 0,
        "fetch_throttled": 0,
        "fetch_banned": 0,
        "fetch_skipped": 0,
        "throttles_seen": 0,
        "soft_bans_seen": 0,
        "failure_rate_pct": None,
        "status": "running",
    }


def record_outcome(metrics: dict, error: Optional[FetchError] = None) -> dict:
    """Count one fetch: success when ``error`` is None, otherwise by error type."""
    if error is None:
        metrics["fetch_success"] += 1
    elif isinstance(error, BannedError):
        metrics["fetch_banned"] += 1
    elif isinstance(error, RateLimitExceeded):
        metrics["fetch_throttled"] += 1
    else:
        metrics["fetch_failed"] += 1
    return metrics


def record_throttle(metrics: dict, banned: bool = False) -> dict:
    """Count one throttle or soft-ban answer, whether or not the fetch later recovered."""
    if banned:
        metrics["soft_bans_seen"] += 1
    else:
        metrics["throttles_seen"] += 1
    return metrics


def finish_fetch_run(metrics: dict) -> dict:
    """Finalise metrics: compute duration, failure rate, mark completed."""
    metrics["run_end"] = datetime.now(timezone.utc)
    elapsed = (metrics["run_end"] - metrics["run_start"]).total_seconds()
    metrics["duration_seconds"] = round(elapsed, 2)

    failures = metrics["fetch_failed"] + metrics["fetch_throttled"] + metrics["fetch_banned"]
    total_fetches = metrics["fetch_success"] + failures
    if total_fetches > 0:
        metrics["failure_rate_pct"] = round(failures / total_fetches * 100, 2)
    else:
        metrics["failure_rate_pct"] = 0.0

    if metrics["status"] == "running":
        metrics["status"] = "completed"

    return metrics


def _make_alert(run_id, severity, category, condition, message, metric_value, threshold):
    """Build a single alert dict."""
    return {
        "alert_id": str(uuid.uuid4()),
        "run_id": run_id,
        "created_at": datetime.now(timezone.utc),
        "severity": severity,
        "category": category,
        "condition_name": condition,
        "message": message,
        "metric_value": metric_value,
        "threshold": threshold,
    }


def evaluate_alerts(metrics: dict) -> list[dict]:
    """
    Evaluate alert conditions against a finished metrics dict.
    Returns zero or more alert dicts.
    """
    alerts: list[dict] = []
    run_id = metrics["run_id"]
    upstream = metrics["upstream"]
    failure_rate = metrics.get("failure_rate_pct", 0.0) or 0.0

    # 1. Records lost to fetch errors
    if failure_rate >= FAILURE_RATE_CRITICAL:
        alerts.append(_make_alert(
            run_id, "CRITICAL", "failure_rate", "failure_rate_critical",
            f"{upstream}: failure rate {failure_rate:.1f}% exceeds critical "
            f"threshold ({FAILURE_RATE_CRITICAL}%)",
            failure_rate, FAILURE_RATE_CRITICAL,
        ))
    elif failure_rate >= FAILURE_RATE_WARNING:
        alerts.append(_make_alert(
            run_id, "WARNING", "failure_rate", "failure_rate_warning",
            f"{upstream}: failure rate {failure_rate:.1f}% exceeds warning "
            f"threshold ({FAILURE_RATE_WARNING}%)",
            failure_rate, FAILURE_RATE_WARNING,
        ))

    # 2. Soft bans, including ones slept through
    banned = max(metrics["soft_bans_seen"], metrics["fetch_banned"])
    if banned >= BAN_ALERT_THRESHOLD:
        alerts.append(_make_alert(
            run_id, "CRITICAL", "soft_ban", "upstream_soft_ban",
            f"{upstream}: {banned} soft-ban response(s) during the run "
            f"({metrics['fetch_banned']} record(s) lost)",
            float(banned), float(BAN_ALERT_THRESHOLD),
        ))

    return alerts
