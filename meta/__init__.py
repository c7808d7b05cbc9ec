# meta/__init__.py
# ALIVE meta-loop (learning layer) package initializer

__all__ = [
    "audit", "config", "metaloop", "normalize", "playbooks", "runlog", "schema", "store", "values",
]
