from . import batches, speaking

__all__ = ["batches", "speaking"]
