# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (API keys, CSRF tokens). Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "FLOWWIRE_APP_NAME": "App display name (default: flowwire).",
    "FLOWWIRE_LOG_LEVEL": "Console logging level (default: INFO).",
    "FLOWWIRE_LOG_DIR": "Directory for flowwire.log (default: .local/flowwire).",
    # HTTP transport
    "FLOWWIRE_API_BASE_URL": "Base URL prepended to relative endpoints (default: http://localhost/api).",
    "FLOWWIRE_API_KEY": "Optional key sent as X-API-Key.",
    "FLOWWIRE_CSRF_TOKEN": "Initial X-CSRF-Token; refreshed from responses carrying 'csrf'.",
    "FLOWWIRE_HTTP_TIMEOUT_SECONDS": "Per-request timeout (default: 30).",
    # Request queue
    "FLOWWIRE_QUEUE_MAX_CONCURRENT": "Max requests in flight (default: 5).",
    "FLOWWIRE_QUEUE_RETRY_ATTEMPTS": "Invocations before giving up (default: 3).",
    "FLOWWIRE_QUEUE_RETRY_DELAY_SECONDS": "Base backoff; doubles per attempt (default: 1.0).",
    # Poller
    "FLOWWIRE_POLL_INTERVAL_SECONDS": "Seconds between status checks (default: 2.0).",
    "FLOWWIRE_POLL_MAX_ATTEMPTS": "Checks before a poll times out (default: 300).",
    # Persistent connection
    "FLOWWIRE_WS_URL": "Socket endpoint used by `flowwire listen` (ws:// or wss://).",
    "FLOWWIRE_WS_MAX_RECONNECT_ATTEMPTS": "Consecutive reconnects before giving up (default: 5).",
    "FLOWWIRE_WS_RECONNECT_DELAY_SECONDS": "Base reconnect delay; doubles per attempt (default: 1.0).",
}
