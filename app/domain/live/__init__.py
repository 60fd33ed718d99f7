"""
Live streaming domain logic.

Includes:
- stream: Stream lifecycle and the live listing feed.
"""
