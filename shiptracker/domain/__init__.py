"""Domain Layer: models, events and interfaces with no infrastructure dependencies."""
