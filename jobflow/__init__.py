"""
jobflow

A demand-driven job dispatch pipeline: one producer claims waiting jobs from
PostgreSQL in response to consumer demand, a pool of consumers executes them
under a fixed time budget, and terminal statuses are reported back to the store.
"""

__version__ = "1.0.0"
