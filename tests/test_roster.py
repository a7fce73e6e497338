"""
Tests for the balance session (online state, team moves, pre-balance checks).
"""

import pandas as pd
import pytest

from rematch.balance.engine import (
    BalanceError,
    Candidate,
    OverfilledTeamsError,
    PartitionMismatchError,
    UnknownPlayerError,
)
from rematch.balance.roster import BalanceSession, load_session, main


@pytest.fixture
def players():
    scores = {"ali": 8.0, "bora": 6.0, "can": 4.0, "deniz": 2.0}
    return [Candidate(player_id=pid, score=s, name=pid.title()) for pid, s in scores.items()]


@pytest.fixture
def session(players):
    return BalanceSession(players)


def ids(group):
    return [p.player_id for p in group]


class TestOnlineState:
    """Tests for online toggling."""

    def test_everyone_online_by_default(self, session):
        assert ids(session.available) == ["ali", "bora", "can", "deniz"]

    def test_saved_online_ids(self, players):
        session = BalanceSession(players, online_ids=["bora", "deniz"])
        assert ids(session.online_players) == ["bora", "deniz"]

    def test_unknown_saved_ids_rejected(self, players):
        with pytest.raises(UnknownPlayerError):
            BalanceSession(players, online_ids=["ghost"])

    def test_duplicate_ids_rejected(self, players):
        with pytest.raises(BalanceError):
            BalanceSession(players + [players[0]])

    def test_going_offline_leaves_team(self, session):
        session.move_to_team("ali", "team1")
        assert session.toggle_online("ali") is False

        assert session.team_of("ali") is None
        assert "ali" not in ids(session.available)

    def test_toggle_back_online(self, session):
        session.toggle_online("can")
        assert session.toggle_online("can") is True
        assert session.is_online("can")

    def test_unknown_player(self, session):
        with pytest.raises(UnknownPlayerError):
            session.toggle_online("ghost")


class TestTeamMoves:
    """Tests for moving players between the pool and teams."""

    def test_move_and_remove(self, session):
        session.move_to_team("ali", "team1")
        assert ids(session.teams["team1"]) == ["ali"]
        assert "ali" not in ids(session.available)

        session.remove_from_team("ali")
        assert session.teams["team1"] == []
        assert "ali" in ids(session.available)

    def test_move_between_teams(self, session):
        session.move_to_team("ali", "team1")
        session.move_to_team("ali", "team2")

        assert session.teams["team1"] == []
        assert ids(session.teams["team2"]) == ["ali"]

    def test_move_to_same_team_is_noop(self, session):
        session.move_to_team("ali", "team1")
        session.move_to_team("ali", "team1")
        assert ids(session.teams["team1"]) == ["ali"]

    def test_offline_player_cannot_be_placed(self, session):
        session.toggle_online("ali")
        with pytest.raises(BalanceError):
            session.move_to_team("ali", "team1")

    def test_invalid_team(self, session):
        with pytest.raises(ValueError):
            session.move_to_team("ali", "team3")

    def test_reset_teams_keeps_online(self, session):
        session.move_to_team("ali", "team1")
        session.reset_teams()
        assert len(session.available) == 4

    def test_reset_all_marks_everyone_offline(self, session):
        session.move_to_team("ali", "team1")
        session.reset_all()
        assert session.available == []
        assert session.online_players == []


class TestTotals:
    """Tests for team totals and stats."""

    def test_empty_team_stats(self, session):
        assert session.team_stats("team1") == {'total': 0.0, 'average': 0.0, 'player_count': 0}

    def test_stats_and_difference(self, session):
        session.move_to_team("ali", "team1")
        session.move_to_team("can", "team1")
        session.move_to_team("deniz", "team2")

        assert session.team_stats("team1") == {'total': 12.0, 'average': 6.0, 'player_count': 2}
        assert session.difference == 10.0


class TestBalanceTeams:
    """Tests for plan and balance_teams."""

    def test_plan_sizes(self, session):
        session.move_to_team("ali", "team1")
        pool, need1, need2 = session.plan()

        assert ids(pool) == ["bora", "can", "deniz"]
        assert (need1, need2) == (1, 2)

    def test_odd_count_gives_extra_to_team2(self, players):
        extra = players + [Candidate(player_id="ece", score=5.0)]
        session = BalanceSession(extra)
        _, need1, need2 = session.plan()
        assert (need1, need2) == (2, 3)

    def test_balances_from_scratch(self, session):
        summary = session.balance_teams()

        assert summary == {
            'team1_total': 10.0,
            'team2_total': 10.0,
            'difference': 0.0,
            'team1_count': 2,
            'team2_count': 2,
        }
        assert session.available == []

    def test_keeps_preassigned_players(self, session):
        session.move_to_team("ali", "team2")
        session.balance_teams()

        assert ids(session.teams["team2"])[0] == "ali"
        assert session.team_stats("team1")['player_count'] == 2
        assert session.team_stats("team2")['player_count'] == 2
        assert session.difference == 0.0

    def test_fills_remaining_side(self, session):
        session.move_to_team("ali", "team1")
        session.move_to_team("bora", "team1")
        session.balance_teams()

        assert ids(session.teams["team1"]) == ["ali", "bora"]
        assert sorted(ids(session.teams["team2"])) == ["can", "deniz"]

    def test_empty_pool_is_noop(self, session):
        session.move_to_team("ali", "team1")
        session.move_to_team("bora", "team1")
        session.move_to_team("can", "team2")
        session.move_to_team("deniz", "team2")

        assert session.balance_teams() is None
        assert ids(session.teams["team1"]) == ["ali", "bora"]

    def test_overfilled_aborts_without_changes(self, session):
        session.move_to_team("ali", "team1")
        session.move_to_team("bora", "team1")
        session.move_to_team("can", "team1")

        with pytest.raises(OverfilledTeamsError):
            session.balance_teams()

        assert ids(session.teams["team1"]) == ["ali", "bora", "can"]
        assert session.teams["team2"] == []
        assert ids(session.available) == ["deniz"]

    def test_mismatch_aborts_without_changes(self, session):
        # An offline player left on a roster breaks the head count
        ghost = Candidate(player_id="ghost", score=5.0)
        session.teams["team2"].append(ghost)

        with pytest.raises(PartitionMismatchError, match="need 3 players but have 4 available"):
            session.balance_teams()

        assert session.teams["team1"] == []
        assert session.teams["team2"] == [ghost]
        assert len(session.available) == 4

    def test_to_frame(self, session):
        session.balance_teams()
        frame = session.to_frame()

        assert list(frame.columns) == ['team', 'player_id', 'name', 'score', 'rank_title']
        assert len(frame) == 4
        assert set(frame['team']) == {"team1", "team2"}
        assert frame.loc[frame['player_id'] == "ali", 'rank_title'].item() == "🎖️ Vezir"


class TestLoadSession:
    """Tests for building a session from exports."""

    def test_filters_inactive_players(self, tmp_path):
        ratings_csv = tmp_path / "player_ratings_20260101.csv"
        pd.DataFrame({
            'player_id': ["a", "b", "c"],
            'display_name': ["A", "B", "C"],
            'avg_score': [7.5, 5.0, 9.0],
            'voter_count': [3, 2, 4],
        }).to_csv(ratings_csv, index=False)

        players_csv = tmp_path / "players_20260101.csv"
        pd.DataFrame({
            'user_id': ["a", "b", "c"],
            'display_name': ["A", "B", "C"],
            'custom_name': [None, None, None],
            'plays_rematch': [True, False, True],
        }).to_csv(players_csv, index=False)

        session = load_session(ratings_csv, players_csv)

        assert ids(session.players) == ["c", "a"]

    def test_accepts_str_paths(self, tmp_path):
        ratings_csv = tmp_path / "player_ratings_20260101.csv"
        ratings_csv.write_text("player_id,avg_score\na,3\nb,7\n", encoding="utf-8")

        session = load_session(str(ratings_csv))

        assert ids(session.players) == ["b", "a"]


class TestMain:
    """Tests for the batch entry point."""

    def test_writes_balance_csv(self, tmp_path, monkeypatch):
        exports = tmp_path / "raw"
        output = tmp_path / "processed"
        exports.mkdir()
        monkeypatch.setattr("rematch.balance.roster.EXPORTS_FOLDER", exports)
        monkeypatch.setattr("rematch.balance.roster.OUTPUT_FOLDER", output)

        (exports / "player_ratings_20260101.csv").write_text(
            "player_id,avg_score\na,1\n", encoding="utf-8"
        )
        (exports / "player_ratings_20260102.csv").write_text(
            "player_id,avg_score\na,8\nb,6\nc,4\nd,2\n", encoding="utf-8"
        )
        (output).mkdir()
        (output / "balance_19990101.csv").write_text("stale", encoding="utf-8")

        summary = main()

        assert summary['difference'] == 0.0
        written = list(output.glob("balance_*.csv"))
        assert len(written) == 1
        frame = pd.read_csv(written[0])
        assert len(frame) == 4
        assert frame.groupby('team')['score'].sum().tolist() == [10.0, 10.0]

    def test_no_exports(self, tmp_path, monkeypatch):
        monkeypatch.setattr("rematch.balance.roster.EXPORTS_FOLDER", tmp_path)
        assert main() is None
