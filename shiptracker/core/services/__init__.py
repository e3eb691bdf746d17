"""Application services (stats aggregation, leaderboard, CSV import, session)."""
