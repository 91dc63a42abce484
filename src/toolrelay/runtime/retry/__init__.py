"""Retry wrapper with classification-driven backoff."""

from .backoff import Backoff, ConstantBackoff, ExponentialBackoff
from .policy import NO_RETRY, RetryEvent, RetryPolicy, with_retry

__all__ = ["Backoff", "ConstantBackoff", "ExponentialBackoff", "RetryPolicy", "RetryEvent", "NO_RETRY", "with_retry"]
