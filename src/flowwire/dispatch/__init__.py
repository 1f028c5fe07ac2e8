"""
Request dispatch.

Components:
- queue_models.py: QueuedRequest, QueueStatus
- request_queue.py: priority queue with bounded concurrency and retry/backoff
"""
