"""RedDays — local persistence and statistics for menstrual cycle tracking.

A single local user's tracked days live in SQLite; two per-user aggregates
(cycle history and a statistics snapshot) are derived from them on demand,
and app settings are kept as a JSON blob in a key-value table.

Subpackages:
    models/       — Pydantic models for records, aggregates and settings
    repositories/ — CRUD contract, repositories and the shared derivation
    services/     — SQLite connection, schema migrations, key-value store

Core modules:
    config        — Environment settings (pydantic-settings)
    stats_config  — Load/validate stats_config.yaml
    errors        — Exception hierarchy
    main          — open_data_layer() bootstrap
"""

__version__ = "0.1.0"
