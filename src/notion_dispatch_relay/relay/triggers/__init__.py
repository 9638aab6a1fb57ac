"""Delayed-trigger debounce state.

- `record`: the persisted `TriggerRecord` and key derivation
- `store`: soft-read / hard-write accessor over the key-value store
- `policy`: pure due-ness and rescheduling decisions
- `coordinator`: the Idle -> Pending -> Firing state machine
"""

__all__: list[str] = []
