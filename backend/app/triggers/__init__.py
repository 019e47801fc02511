"""
triggers — Threshold conditions over sensor readings.

Sub-modules:
    models   — TriggerCondition, SensorReading, FireEvent, comparators
    catalog  — recognised parameters per trigger type
    store    — TriggerStore (validation, fire history, per-id locking)
    engine   — TriggerEngine (comparison + cool-down → FireEvents)
    seed     — sample conditions for a fresh deployment
"""
