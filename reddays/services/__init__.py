"""Storage plumbing: SQLite connection, schema migrations, key-value store."""
