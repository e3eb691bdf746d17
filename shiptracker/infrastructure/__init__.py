"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the GitHub REST API, the
terminal, configuration files) by implementing the interfaces defined in the
domain layer.
"""
