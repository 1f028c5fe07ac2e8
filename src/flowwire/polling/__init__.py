"""
Task polling.

Components:
- poll_models.py: PollTask, PollState and the default result predicates
- poller.py: one polling loop per task id, with completion/failure/timeout callbacks
"""
