"""SQLite persistence: connection manager, schema, repositories and SqliteDataStore."""
