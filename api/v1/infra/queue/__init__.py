"""
Queue engine for asynchronous back office work.

This package provides:
- Durable queue items for notifications (cashback, store alerts, time clock)
- Jobs with observable progress for long-running asset generation
- Atomic batch claiming with claim tokens and abandoned-claim recovery
- Count-bounded retries and cooperative job cancellation
"""
