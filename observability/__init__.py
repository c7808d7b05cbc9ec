__all__ = ["metrics"]
