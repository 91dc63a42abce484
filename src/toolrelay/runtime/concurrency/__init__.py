"""Concurrency primitives: cancellation tokens and settled fan-out."""

from .cancel import CancelToken
from .wait import Settled, SettledStatus, gather_settled

__all__ = ["CancelToken", "Settled", "SettledStatus", "gather_settled"]
