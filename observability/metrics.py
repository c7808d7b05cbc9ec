# observability/metrics.py
# Prometheus metrics for kernel cycles, resets, task execution, budget overruns, policy skips and playbooks.

from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

# --- Cycle metrics ---
cycles_total = Counter(
    "alive_cycles_total",
    "Kernel cycles by outcome",
    ["status"]  # status = success|fail|error
)
cycle_seconds = Histogram(
    "alive_cycle_seconds",
    "Wall time of one kernel cycle (capture through remember)",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5, 30, float("inf")),
)
resets_total = Counter(
    "alive_resets_total",
    "Resets triggered, by reason token",
    ["reason"]
)

# --- Task metrics ---
task_results_total = Counter(
    "alive_task_results_total",
    "Executed tasks by type and result",
    ["task_type", "result"]  # result = ok|error
)
task_seconds = Histogram(
    "alive_task_seconds",
    "Handler time per task (all iterations)",
    ["task_type"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 10, float("inf")),
)
budget_exceeded_total = Counter(
    "alive_budget_exceeded_total",
    "Tasks that ran past their time budget (advisory)",
    ["task_type"]
)
policy_skips_total = Counter(
    "alive_policy_skips_total",
    "Tasks skipped by the learned step policy",
    ["task"]
)

# --- Learning layer ---
playbook_matches_total = Counter(
    "alive_playbook_matches_total",
    "Active playbook matches",
    ["playbook"]
)
playbook_drafts_total = Counter(
    "alive_playbook_drafts_total",
    "Playbook drafts written",
    []
)


# --- Helpers (never raise into the caller) ---

def inc_cycle(status: str, elapsed_ms: float) -> None:
    try:
        cycles_total.labels(status=status).inc()
        cycle_seconds.observe(max(0.0, float(elapsed_ms)) / 1000.0)
    except Exception:
        pass


def inc_reset(reason: str) -> None:
    try:
        resets_total.labels(reason=reason).inc()
    except Exception:
        pass


def observe_task(task_type: str, result: str, elapsed_ms: float) -> None:
    try:
        task_results_total.labels(task_type=task_type, result=result).inc()
        task_seconds.labels(task_type=task_type).observe(max(0.0, float(elapsed_ms)) / 1000.0)
    except Exception:
        pass


def inc_budget_exceeded(task_type: str) -> None:
    try:
        budget_exceeded_total.labels(task_type=task_type).inc()
    except Exception:
        pass


def inc_policy_skip(task: str) -> None:
    try:
        policy_skips_total.labels(task=task).inc()
    except Exception:
        pass


def inc_playbook_match(playbook_id: str) -> None:
    try:
        playbook_matches_total.labels(playbook=playbook_id).inc()
    except Exception:
        pass


def inc_playbook_draft() -> None:
    try:
        playbook_drafts_total.inc()
    except Exception:
        pass


def serve_metrics(port: int = 9100):
    """Expose /metrics on http://localhost:<port>/metrics"""
    start_http_server(port)


__all__ = [
    "cycles_total", "cycle_seconds", "resets_total", "task_results_total", "task_seconds",
    "budget_exceeded_total", "policy_skips_total", "playbook_matches_total", "playbook_drafts_total",
    "inc_cycle", "inc_reset", "observe_task", "inc_budget_exceeded", "inc_policy_skip",
    "inc_playbook_match", "inc_playbook_draft", "serve_metrics",
]
