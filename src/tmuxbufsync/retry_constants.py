#!/usr/bin/env python3
"""Constants for remote store call timeouts and retries.

These constants control the exponential backoff applied to remote store
commands before a TransportError is surfaced to the sync engine.
"""

# Default number of attempts per remote store call (first try included).
RETRY_ATTEMPTS: int = 3

# Initial delay between attempts in seconds.
INITIAL_WAIT: float = 0.5

# Maximum delay between attempts in seconds.
MAX_WAIT: float = 4.0

# Multiplier for exponential backoff (delay = initial * multiplier^attempt).
WAIT_MULTIPLIER: float = 2.0

# Default timeout for a single tmux or atuin command in seconds.
COMMAND_TIMEOUT: float = 10.0
