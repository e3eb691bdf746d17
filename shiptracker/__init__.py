"""Ship Tracker: GitHub commit activity leaderboard."""
