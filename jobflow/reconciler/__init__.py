"""
Reconciler module.
Closes out jobs stranded in the running state.
"""

from jobflow.reconciler.main import Reconciler, run

__all__ = ["Reconciler", "run"]
