"""micropay: voice-driven USDC micropayments.

This package turns spoken or typed payment instructions into structured
payment intents, resolves recipients to on-chain addresses, and executes
idempotent transfers against the Circle developer-transfer API.
"""
