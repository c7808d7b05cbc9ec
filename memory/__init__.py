# memory/__init__.py
# ALIVE memory tiers package initializer

__all__ = ["config", "longterm", "models", "session", "stream", "working"]
