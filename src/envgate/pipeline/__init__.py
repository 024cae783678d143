"""Pipeline module - trigger classification, fan-out and stage gating."""
