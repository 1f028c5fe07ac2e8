"""
Persistent connection.

Components:
- channel.py: websockets-backed Channel and the default channel factory
- persistent_connection.py: session runner, reconnection and event fan-out
"""
