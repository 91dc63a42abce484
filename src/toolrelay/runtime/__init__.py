"""Runtime: cancellation, timeout/retry wrappers, routing and execution, observability."""
