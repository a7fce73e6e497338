"""
Balance Session for Rematch

This module holds the state behind one "Balance Teams" screen: which players
are online, who has been placed on which team, and the pool still waiting.
It checks each balance request before handing the pool to the engine and
merges the returned groups into the existing rosters.

Usage:
    python -m rematch.balance.roster
    OR
    from rematch.balance.roster import BalanceSession
"""

from datetime import date

import pandas as pd

from rematch.balance.engine import (
    BalanceError,
    EmptyPoolError,
    OverfilledTeamsError,
    PartitionMismatchError,
    UnknownPlayerError,
    balance,
    team_score,
)
from rematch.config import (
    BALANCE_OUTPUT_PREFIX,
    EXPORTS_FOLDER,
    OUTPUT_FOLDER,
    PLAYER_COLUMNS,
    PLAYERS_PATTERN,
    RATINGS_PATTERN,
    SCORE_DECIMALS,
    TEAM_NAMES,
)
from rematch.ingestion.ratings import (
    IngestionError,
    filter_active,
    load_candidates,
    load_player_ratings,
    rank_title,
    read_export,
)
from rematch.utils import atomic_write_csv, cleanup_old_files, find_latest_file, setup_logging

# --- Module Logger ---
logger = setup_logging(__name__)


class BalanceSession:
    """
    Online/team assignment state for a single balancing screen.

    Players keep the order they were loaded in; teams keep the order
    players were added.
    """

    def __init__(self, players, online_ids=None):
        self._players = {}
        for player in players:
            if player.player_id in self._players:
                raise BalanceError(f"Duplicate player id: {player.player_id}")
            self._players[player.player_id] = player

        if online_ids is None:
            self._online = set(self._players)
        else:
            online = set(online_ids)
            unknown = online - set(self._players)
            if unknown:
                raise UnknownPlayerError(f"Unknown player ids: {sorted(unknown)}")
            self._online = online

        self.teams = {name: [] for name in TEAM_NAMES}

    # --- Lookups ---
    def _get(self, player_id):
        try:
            return self._players[player_id]
        except KeyError:
            raise UnknownPlayerError(f"Unknown player id: {player_id}") from None

    def _check_team(self, team):
        if team not in self.teams:
            raise ValueError(f"Invalid team: '{team}'. Allowed values: {', '.join(TEAM_NAMES)}")

    def team_of(self, player_id):
        """Name of the team the player sits in, or None."""
        for name, members in self.teams.items():
            if any(p.player_id == player_id for p in members):
                return name
        return None

    @property
    def players(self):
        return list(self._players.values())

    @property
    def online_players(self):
        return [p for p in self._players.values() if p.player_id in self._online]

    @property
    def available(self):
        """Online players not yet placed on either team."""
        assigned = {p.player_id for members in self.teams.values() for p in members}
        return [p for p in self.online_players if p.player_id not in assigned]

    def is_online(self, player_id):
        self._get(player_id)
        return player_id in self._online

    # --- Mutations ---
    def toggle_online(self, player_id):
        """Flip a player's online state; going offline also drops them from their team."""
        self._get(player_id)
        if player_id in self._online:
            self.remove_from_team(player_id)
            self._online.discard(player_id)
        else:
            self._online.add(player_id)
        return player_id in self._online

    def move_to_team(self, player_id, team):
        """Place an online player on a team, taking them off the other one first."""
        self._check_team(team)
        player = self._get(player_id)
        if player_id not in self._online:
            raise BalanceError(f"Player {player_id} is offline")

        current = self.team_of(player_id)
        if current == team:
            return
        if current is not None:
            self.remove_from_team(player_id)
        self.teams[team].append(player)

    def remove_from_team(self, player_id):
        """Send a player back to the available pool."""
        self._get(player_id)
        for name in TEAM_NAMES:
            self.teams[name] = [p for p in self.teams[name] if p.player_id != player_id]

    def reset_teams(self):
        self.teams = {name: [] for name in TEAM_NAMES}

    def reset_all(self):
        """Empty both teams and mark everyone offline."""
        self.reset_teams()
        self._online.clear()

    # --- Totals ---
    def team_total(self, team):
        self._check_team(team)
        return team_score(self.teams[team])

    def team_stats(self, team):
        """Total, average and size of a team."""
        self._check_team(team)
        members = self.teams[team]
        if not members:
            return {'total': 0.0, 'average': 0.0, 'player_count': 0}

        total = team_score(members)
        return {
            'total': round(total, SCORE_DECIMALS),
            'average': round(total / len(members), SCORE_DECIMALS),
            'player_count': len(members),
        }

    @property
    def difference(self):
        team1, team2 = TEAM_NAMES
        return abs(self.team_total(team1) - self.team_total(team2))

    # --- Balancing ---
    def plan(self):
        """
        Work out how many players each team still needs.

        Returns:
            Tuple of (pool, need1, need2)

        Raises:
            EmptyPoolError: If every online player is already placed
            OverfilledTeamsError: If a team already exceeds its target size
            PartitionMismatchError: If the needs do not add up to the pool
        """
        team1, team2 = TEAM_NAMES
        pool = self.available
        if not pool:
            raise EmptyPoolError("No players to balance! All players are already assigned.")

        total_players = len(self.online_players)
        team_size = total_players // 2
        need1 = team_size - len(self.teams[team1])
        need2 = total_players - team_size - len(self.teams[team2])

        if need1 < 0 or need2 < 0:
            raise OverfilledTeamsError("Teams are overfilled! Remove some players first.")

        if need1 + need2 != len(pool):
            raise PartitionMismatchError(
                f"Math error: need {need1 + need2} players but have {len(pool)} available"
            )

        return pool, need1, need2

    def balance_teams(self):
        """
        Balance the available pool into the two teams.

        Returns:
            Summary dict, or None when there was nothing to balance

        Raises:
            OverfilledTeamsError, PartitionMismatchError: Rosters are left untouched
        """
        team1, team2 = TEAM_NAMES
        try:
            pool, need1, need2 = self.plan()
        except EmptyPoolError as e:
            logger.info(str(e))
            return None

        group1, group2 = balance(
            pool, need1, need2, self.team_total(team1), self.team_total(team2)
        )

        self.teams[team1] = self.teams[team1] + group1
        self.teams[team2] = self.teams[team2] + group2

        summary = self.summary()
        logger.info(
            f"Balanced {len(pool)} players: {summary['team1_total']:.2f} vs "
            f"{summary['team2_total']:.2f} (difference {summary['difference']:.2f})"
        )
        return summary

    def summary(self):
        team1, team2 = TEAM_NAMES
        return {
            'team1_total': round(self.team_total(team1), SCORE_DECIMALS),
            'team2_total': round(self.team_total(team2), SCORE_DECIMALS),
            'difference': round(self.difference, SCORE_DECIMALS),
            'team1_count': len(self.teams[team1]),
            'team2_count': len(self.teams[team2]),
        }

    def to_frame(self) -> pd.DataFrame:
        """Current assignment, one row per online player; unplaced players have team None."""
        rows = []
        for player in self.online_players:
            emoji, title = rank_title(player.score)
            rows.append({
                'team': self.team_of(player.player_id),
                'player_id': player.player_id,
                'name': player.name,
                'score': player.score,
                'rank_title': f"{emoji} {title}",
            })
        return pd.DataFrame(rows, columns=['team', 'player_id', 'name', 'score', 'rank_title'])


def load_session(ratings_csv, players_csv=None):
    """Build a session with every active player online."""
    ratings = load_player_ratings(ratings_csv)
    if players_csv is not None:
        players = read_export(players_csv, PLAYER_COLUMNS, "players")
        ratings = filter_active(ratings, players)
    return BalanceSession(load_candidates(ratings))


def main():
    """Balance every active player from the newest rating export."""
    ratings_csv = find_latest_file(RATINGS_PATTERN, EXPORTS_FOLDER)
    if ratings_csv is None:
        logger.error(f"No files matching {RATINGS_PATTERN} found in {EXPORTS_FOLDER}")
        return None

    players_csv = find_latest_file(PLAYERS_PATTERN, EXPORTS_FOLDER)
    logger.info(f"Loading ratings from {ratings_csv}")
    session = load_session(ratings_csv, players_csv)

    summary = session.balance_teams()
    if summary is None:
        return None

    assignment = session.to_frame()
    for team in TEAM_NAMES:
        logger.info(f"{team} ({session.team_stats(team)['total']:.2f}):")
        logger.info("\n" + assignment[assignment['team'] == team].to_string(index=False))

    output_csv = OUTPUT_FOLDER / f"{BALANCE_OUTPUT_PREFIX}_{date.today():%Y%m%d}.csv"
    atomic_write_csv(assignment, output_csv, index=False)
    cleanup_old_files(f"{BALANCE_OUTPUT_PREFIX}_*.csv", keep_file=output_csv, folder=OUTPUT_FOLDER)
    logger.info(f"Exported balance to: {output_csv}")

    return summary


if __name__ == "__main__":
    try:
        main()
    except (BalanceError, IngestionError) as e:
        logger.error(str(e))
