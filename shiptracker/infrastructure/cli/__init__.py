"""Terminal UI adapters built on rich."""
