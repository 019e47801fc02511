"""
alerts — Emergency alert lifecycle and multi-channel dispatch.

Sub-modules:
    channels/       — Per-channel delivery adapters (social, SMS, email, radio, PA, sirens)
    alert_service   — Orchestration: reading → trigger → alert, startup and snapshots
    dispatcher      — Concurrent fan-out with per-channel timeouts
    store           — AlertStore: lifecycle state machine and delivery history
    scheduler       — Background expiry of due alerts
    repository      — SQLAlchemy snapshot persistence
    models          — Data structures shared across the system
"""
