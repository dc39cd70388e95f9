"""
Infrastructure Layer - External Dependencies

Implements the Domain repository protocols and the Application ports.

Modules:
    - persistence.redis: Job store, billing ledger, leases, API keys, identity
    - notifications: Redis pub/sub push channel
    - storage: Local blob storage
    - generation: HTTP generation backend
"""
