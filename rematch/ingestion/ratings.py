"""
Rating Store Exports

This module reads CSV exports of the hosted backend's tables and views and
turns them into balancer candidates:
- players: one row per Discord-authenticated user
- votes: peer ratings (1-10), one per voter/target pair
- player_ratings: per-player average score and voter count

Programmatic usage:
    from rematch.ingestion.ratings import load_player_ratings, load_candidates
    candidates = load_candidates(load_player_ratings(path))
"""

import io
from pathlib import Path

import pandas as pd

from rematch.balance.engine import Candidate
from rematch.config import (
    MAX_INPUT_SIZE,
    MAX_VOTE_SCORE,
    MIN_VOTE_SCORE,
    PLAYER_COLUMNS,
    RANK_TIERS,
    RATING_COLUMNS,
    SCORE_DECIMALS,
    UNKNOWN_PLAYER_NAME,
    VOTE_COLUMNS,
)
from rematch.utils import setup_logging, validate_input_size

# --- Module Logger ---
logger = setup_logging(__name__)


class IngestionError(Exception):
    """Custom exception for ingestion errors"""
    pass


class ValidationError(IngestionError):
    """Validation-specific errors"""
    pass


def _require_columns(df: pd.DataFrame, columns, label: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValidationError(f"{label} export is missing columns: {', '.join(missing)}")


def _as_bool(value) -> bool:
    """Interpret booleans exported as text ("true"/"false") or numbers."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "t", "1", "yes")
    if pd.isna(value):
        return False
    return bool(value)


def _clean_text(value) -> str | None:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def display_name(row) -> str:
    """Custom name if set, otherwise the Discord name, otherwise a placeholder."""
    return (
        _clean_text(row.get("custom_name"))
        or _clean_text(row.get("display_name"))
        or UNKNOWN_PLAYER_NAME
    )


def rank_title(score: float) -> tuple[str, str]:
    """Return the (emoji, title) tier for an average score."""
    for threshold, emoji, title in RANK_TIERS:
        if score >= threshold:
            return emoji, title
    # Scores below every threshold fall into the last tier
    _, emoji, title = RANK_TIERS[-1]
    return emoji, title


def read_export(path, required_columns, label: str, text: str | None = None) -> pd.DataFrame:
    """
    Read a CSV export from a file, or from its text when `text` is given.

    Args:
        path: Path to a CSV file (str or os.PathLike); ignored when text is given
        required_columns: Columns that must be present
        label: Human-readable export name for error messages
        text: CSV content already in memory

    Raises:
        ValidationError: If the export is too large, malformed or incomplete
    """
    if text is None:
        if path is None:
            raise ValueError(f"No path or text given for {label} export")
        text = Path(path).read_text(encoding="utf-8")

    try:
        validate_input_size(text, MAX_INPUT_SIZE)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    try:
        df = pd.read_csv(io.StringIO(text), dtype={"user_id": str, "player_id": str,
                                                   "voter_id": str, "target_id": str})
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ValidationError(f"Could not parse {label} export: {e}") from e

    _require_columns(df, required_columns, label)
    return df


def aggregate_votes(votes_df: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregate peer votes into per-player averages.

    A later vote from the same voter for the same target replaces the earlier
    one, matching the backend's upsert on (voter_id, target_id).

    Returns:
        DataFrame with columns: player_id, avg_score, voter_count
    """
    _require_columns(votes_df, VOTE_COLUMNS, "votes")

    if votes_df.empty:
        return pd.DataFrame({"player_id": pd.Series(dtype=str),
                             "avg_score": pd.Series(dtype=float),
                             "voter_count": pd.Series(dtype=int)})

    votes = votes_df.copy()
    votes["score"] = pd.to_numeric(votes["score"], errors="coerce")

    invalid = votes["score"].isna() | (votes["score"] % 1 != 0)
    invalid |= (votes["score"] < MIN_VOTE_SCORE) | (votes["score"] > MAX_VOTE_SCORE)
    if invalid.any():
        bad = votes.loc[invalid, "score"].tolist()
        raise ValidationError(
            f"Vote scores must be whole numbers between {MIN_VOTE_SCORE} and "
            f"{MAX_VOTE_SCORE}, got: {bad[:5]}"
        )

    if (votes["voter_id"] == votes["target_id"]).any():
        raise ValidationError("Players cannot rate themselves")

    before = len(votes)
    votes = votes.drop_duplicates(subset=["voter_id", "target_id"], keep="last")
    if len(votes) < before:
        logger.debug(f"Collapsed {before - len(votes)} superseded votes")

    aggregated = (
        votes.groupby("target_id")["score"]
        .agg(avg_score="mean", voter_count="count")
        .reset_index()
        .rename(columns={"target_id": "player_id"})
    )
    aggregated["player_id"] = aggregated["player_id"].astype(str)
    aggregated["avg_score"] = aggregated["avg_score"].round(SCORE_DECIMALS)
    return aggregated


def build_player_ratings(players_df: pd.DataFrame, votes_df: pd.DataFrame) -> pd.DataFrame:
    """
    Build the player_ratings view from raw players and votes.

    Unrated players get an average of 0 and a voter count of 0.

    Returns:
        DataFrame with columns: player_id, display_name, avatar_url,
        avg_score, voter_count, sorted by avg_score descending
    """
    _require_columns(players_df, PLAYER_COLUMNS, "players")
    aggregated = aggregate_votes(votes_df)

    players = players_df.copy()
    players["player_id"] = players["user_id"].astype(str)
    players["display_name"] = [display_name(row) for row in players.to_dict("records")]
    if "avatar_url" not in players.columns:
        players["avatar_url"] = None

    ratings = players[["player_id", "display_name", "avatar_url"]].merge(
        aggregated, on="player_id", how="left"
    )
    ratings["avg_score"] = ratings["avg_score"].fillna(0.0)
    ratings["voter_count"] = ratings["voter_count"].fillna(0).astype(int)

    ratings = ratings.sort_values("avg_score", ascending=False, kind="stable").reset_index(drop=True)
    logger.info(f"Built ratings for {len(ratings)} players from {len(votes_df)} votes")
    return ratings


def load_player_ratings(path=None, text: str | None = None) -> pd.DataFrame:
    """
    Load a player_ratings export from a file path, or from its CSV text.

    The backend may serialise avg_score as text; it is coerced to float.

    Raises:
        ValidationError: If required columns are missing or scores are not numeric
    """
    ratings = read_export(path, RATING_COLUMNS, "player_ratings", text=text)

    scores = pd.to_numeric(ratings["avg_score"], errors="coerce")
    if scores.isna().any():
        bad_ids = ratings.loc[scores.isna(), "player_id"].tolist()
        raise ValidationError(f"Non-numeric avg_score for players: {bad_ids[:5]}")
    ratings["avg_score"] = scores.astype(float)

    if "display_name" not in ratings.columns:
        ratings["display_name"] = UNKNOWN_PLAYER_NAME
    ratings["display_name"] = ratings["display_name"].map(_clean_text).fillna(UNKNOWN_PLAYER_NAME)

    return ratings.sort_values("avg_score", ascending=False, kind="stable").reset_index(drop=True)


def filter_active(ratings_df: pd.DataFrame, players_df: pd.DataFrame) -> pd.DataFrame:
    """Keep only players flagged as playing rematch."""
    _require_columns(players_df, PLAYER_COLUMNS, "players")

    active_mask = players_df["plays_rematch"].map(_as_bool)
    active_ids = set(players_df.loc[active_mask, "user_id"].astype(str))
    filtered = ratings_df[ratings_df["player_id"].astype(str).isin(active_ids)]

    logger.info(f"Active players: {len(filtered)} of {len(ratings_df)}")
    return filtered.reset_index(drop=True)


def load_candidates(ratings_df: pd.DataFrame) -> list[Candidate]:
    """Turn player_ratings rows into balancer candidates, preserving row order."""
    return [
        Candidate(
            player_id=str(row["player_id"]),
            score=float(row["avg_score"]),
            name=row.get("display_name") or UNKNOWN_PLAYER_NAME,
        )
        for row in ratings_df.to_dict("records")
    ]
