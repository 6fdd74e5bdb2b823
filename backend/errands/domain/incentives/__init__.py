"""Points, ratings and the leaderboard."""
