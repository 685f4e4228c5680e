"""Customer-support inbox backend."""
