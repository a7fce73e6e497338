"""
Rating Store Ingestion

Modules:
- ratings: Read player, vote and rating exports into candidates
"""


def __getattr__(name):
    """Lazy imports to avoid RuntimeWarning when running modules directly."""
    if name in ("load_player_ratings", "build_player_ratings", "load_candidates"):
        from rematch.ingestion import ratings
        return getattr(ratings, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
