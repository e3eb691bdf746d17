"""Domain models: identifiers, statistics, fetch results and errors."""
