from .cache import DistributedBackend

__all__ = ["DistributedBackend"]
