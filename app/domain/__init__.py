"""
Domain layer containing core business logic and domain services.

Submodules:
- payments: Ledger, access decisions, payment recording and session tokens.
- challenge: Payment challenge middleware and the facilitator client.
- live: Stream lifecycle.
- utils: Domain-specific utilities (ID generation, amounts).
"""
