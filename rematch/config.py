"""
Central configuration for the Rematch team balancer.

All shared constants and configuration values should be defined here
to avoid duplication and ensure consistency across modules.
"""

from pathlib import Path

# --- Project Paths ---
PROJECT_ROOT = Path(__file__).parent.parent
DATA_FOLDER = PROJECT_ROOT / "data"
OUTPUT_FOLDER = DATA_FOLDER / "processed"
EXPORTS_FOLDER = DATA_FOLDER / "raw"

# Input file patterns (exports of the hosted backend)
RATINGS_PATTERN = "player_ratings_*.csv"
PLAYERS_PATTERN = "players_*.csv"
BALANCE_OUTPUT_PREFIX = "balance"

# --- Balancer Configuration ---
# Pools up to this size are searched exhaustively: C(12, 6) = 924 partitions
EXACT_SEARCH_MAX_POOL = 12
TEAM_NAMES = ("team1", "team2")

# --- Rating Configuration ---
MIN_VOTE_SCORE = 1
MAX_VOTE_SCORE = 10
SCORE_DECIMALS = 2
UNKNOWN_PLAYER_NAME = "Unknown"

# (minimum score, emoji, title), checked top-down
RANK_TIERS = (
    (8.5, "👑", "Kral"),
    (7.0, "🎖️", "Vezir"),
    (5.0, "⚔️", "Komutan"),
    (2.5, "🪓", "Oduncu"),
    (0.0, "🗑️", "Çöp"),
)

# Columns expected in each export
PLAYER_COLUMNS = ("user_id", "display_name", "custom_name", "plays_rematch")
VOTE_COLUMNS = ("voter_id", "target_id", "score")
RATING_COLUMNS = ("player_id", "avg_score")

# --- Input Validation ---
MAX_INPUT_SIZE = 500_000  # Maximum export text size in bytes (~500KB)
