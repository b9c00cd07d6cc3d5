"""
Core package for bqread contracts (table references, options, errors, IPC framing).

## Contracts
- Tables — TableReference and ReadOptions (pydantic models).
- Errors — the exception taxonomy shared by every pipeline stage.
- IPC — Arrow encapsulated-message prefix and metadata peeking.
- Constants/Typing — defaults and NewTypes for service-assigned names.

## Notes
- Zero-IO policy: stdlib + pydantic only; no network or file IO.
- bqread.io builds the session lifecycle and decode pipeline on top of these contracts.
"""
