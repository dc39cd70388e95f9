"""
Persistence Infrastructure Module

Exports:
    - redis: Redis stores and connection helpers
"""
