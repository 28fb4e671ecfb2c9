"""Reconciliation of CCEClusterConfig records."""

from .context import Context, Result
from .handler import Handler
from .queue import WorkQueue
from .runner import Controller

__all__ = ["Context", "Controller", "Handler", "Result", "WorkQueue"]
