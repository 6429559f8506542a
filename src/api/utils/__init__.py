from .executors import run_sync, run_tracked

__all__ = ["run_sync", "run_tracked"]
