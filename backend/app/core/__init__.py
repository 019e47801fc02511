"""
Core package — cross-cutting concerns.

Modules:
    config      — environment variables & settings
    logging     — structured JSON logging
    errors      — exception hierarchy & handlers
    middleware  — request ids and timing
    locks       — per-key lock registry
    health      — health check aggregation
    database    — async SQLAlchemy engine for snapshots
"""
