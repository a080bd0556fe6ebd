"""
SQLite schema for league entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL,
        is_admin INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_users_username ON users(username);
    """


def rounds_schema() -> str:
    """Playoff weeks. At most one round has is_current = 1."""
    return """
    CREATE TABLE IF NOT EXISTS rounds (
        id TEXT PRIMARY KEY,
        round_number INTEGER NOT NULL,
        name TEXT NOT NULL,
        is_current INTEGER NOT NULL DEFAULT 0,
        is_locked INTEGER NOT NULL DEFAULT 0,
        predictor_locked INTEGER NOT NULL DEFAULT 0
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_rounds_number ON rounds(round_number);
    CREATE UNIQUE INDEX IF NOT EXISTS ix_rounds_current ON rounds(is_current) WHERE is_current = 1;
    """


def games_schema() -> str:
    """Predictor matchups. Final scores stay NULL until entered."""
    return """
    CREATE TABLE IF NOT EXISTS games (
        id TEXT PRIMARY KEY,
        round_id TEXT NOT NULL,
        kickoff_at TEXT,
        away_team TEXT NOT NULL,
        home_team TEXT NOT NULL,
        away_score_final INTEGER,
        home_score_final INTEGER,
        is_final INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (round_id) REFERENCES rounds(id)
    );
    CREATE INDEX IF NOT EXISTS ix_games_round ON games(round_id);
    """


def players_schema() -> str:
    """eliminated_round_number: last round the player's team played (NULL = still alive)."""
    return """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        team TEXT NOT NULL,
        position TEXT NOT NULL,
        eliminated_round_number INTEGER
    );
    """


def rosters_schema() -> str:
    """One roster per user per round; roster_players holds the nine slots."""
    return """
    CREATE TABLE IF NOT EXISTS rosters (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        round_id TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (round_id) REFERENCES rounds(id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_rosters_user_round ON rosters(user_id, round_id);
    CREATE INDEX IF NOT EXISTS ix_rosters_round ON rosters(round_id);

    CREATE TABLE IF NOT EXISTS roster_players (
        roster_id TEXT NOT NULL,
        slot TEXT NOT NULL,
        player_id TEXT,
        PRIMARY KEY (roster_id, slot),
        FOREIGN KEY (roster_id) REFERENCES rosters(id)
    );
    CREATE INDEX IF NOT EXISTS ix_roster_players_player ON roster_players(player_id);
    """


def player_stats_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS player_stats (
        player_id TEXT NOT NULL,
        round_id TEXT NOT NULL,
        fantasy_points REAL NOT NULL,
        PRIMARY KEY (player_id, round_id),
        FOREIGN KEY (round_id) REFERENCES rounds(id)
    );
    CREATE INDEX IF NOT EXISTS ix_player_stats_round ON player_stats(round_id);
    """


def predictor_entries_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS predictor_entries (
        game_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        away_score_pred INTEGER NOT NULL,
        home_score_pred INTEGER NOT NULL,
        updated_at TEXT,
        PRIMARY KEY (game_id, user_id),
        FOREIGN KEY (game_id) REFERENCES games(id),
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    CREATE INDEX IF NOT EXISTS ix_predictor_entries_user ON predictor_entries(user_id);
    """


def derived_schema() -> str:
    """Settlement outputs. Written only by the settlement service, always wholesale."""
    return """
    CREATE TABLE IF NOT EXISTS roster_spot_scores (
        user_id TEXT NOT NULL,
        round_id TEXT NOT NULL,
        slot TEXT NOT NULL,
        base_points REAL NOT NULL,
        multiplied_points REAL NOT NULL,
        PRIMARY KEY (user_id, round_id, slot)
    );
    CREATE INDEX IF NOT EXISTS ix_roster_spot_scores_round ON roster_spot_scores(round_id);

    CREATE TABLE IF NOT EXISTS predictor_points (
        game_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        base_points REAL NOT NULL,
        weighted_points REAL NOT NULL,
        PRIMARY KEY (game_id, user_id)
    );
    CREATE INDEX IF NOT EXISTS ix_predictor_points_user ON predictor_points(user_id);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution."""
    return "\n".join([
        users_schema(),
        rounds_schema(),
        games_schema(),
        players_schema(),
        rosters_schema(),
        player_stats_schema(),
        predictor_entries_schema(),
        derived_schema(),
    ])
