"""Core Application Layer: Orchestrates use cases and application logic.

Connects the domain layer with the infrastructure layer through interfaces.
Contains the stats, leaderboard, CSV import and session services and the
command handler.
"""
