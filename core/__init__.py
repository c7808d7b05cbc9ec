# core/__init__.py
# ALIVE kernel package initializer

__all__ = [
    "assess", "budget", "classify", "config", "events", "executor",
    "handlers", "kernel", "model", "reset", "triage", "utils",
]
