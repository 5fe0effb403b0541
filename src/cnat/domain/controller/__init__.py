"""Reconcile control loop for ``At`` resources."""

from __future__ import annotations

from .deadline import Deadline
from .dispatcher import Dispatcher
from .manager import Controller, keys_for_event
from .queue import ExponentialBackoff, RateLimitingQueue
from .reconciler import AtReconciler
from .result import ReconcileResult, Reconciler
from .status import StatusWriter
from .tasks import new_task_for, owner_reference_for, task_key_for

__all__ = [
    "AtReconciler",
    "Controller",
    "Deadline",
    "Dispatcher",
    "ExponentialBackoff",
    "RateLimitingQueue",
    "ReconcileResult",
    "Reconciler",
    "StatusWriter",
    "keys_for_event",
    "new_task_for",
    "owner_reference_for",
    "task_key_for",
]
