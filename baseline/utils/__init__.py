"""Small helpers shared across Baseline."""

from .process import ProcessResult, ProcessTimeout, run_process

__all__ = ["ProcessResult", "ProcessTimeout", "run_process"]
