"""
Batch job execution control.
"""

from remote_sandbox.jobs.executions import JobExecutions

__all__ = ["JobExecutions"]
