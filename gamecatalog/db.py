"""SQLite schema, catalogue view and the multi-step maintenance operations."""

from __future__ import annotations

import os
import sqlite3
from typing import Iterable

DEFAULT_DATABASE = "game.db"

_TABLES = """
CREATE TABLE IF NOT EXISTS publishers (
    id INTEGER PRIMARY KEY,
    title VARCHAR(100) NOT NULL,
    country VARCHAR(30) NOT NULL,
    founding_date TIMESTAMP NOT NULL,
    website_url VARCHAR(255),
    image_url VARCHAR(512)
);

CREATE TABLE IF NOT EXISTS genres (
    id INTEGER PRIMARY KEY,
    name VARCHAR(100) NOT NULL,
    description VARCHAR(512)
);

CREATE TABLE IF NOT EXISTS platforms (
    id INTEGER PRIMARY KEY,
    name VARCHAR(100) NOT NULL,
    description VARCHAR(512)
);

CREATE TABLE IF NOT EXISTS games (
    id INTEGER PRIMARY KEY,
    title VARCHAR(100) NOT NULL,
    release_date TIMESTAMP NOT NULL,
    cover_image_url VARCHAR(512),
    description VARCHAR(512),
    publisher_id INTEGER REFERENCES publishers(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS game_genres (
    id INTEGER PRIMARY KEY,
    game_id INTEGER REFERENCES games(id) ON DELETE SET NULL,
    genre_id INTEGER REFERENCES genres(id) ON DELETE SET NULL,
    UNIQUE (game_id, genre_id)
);

CREATE TABLE IF NOT EXISTS game_platforms (
    id INTEGER PRIMARY KEY,
    game_id INTEGER REFERENCES games(id) ON DELETE SET NULL,
    platform_id INTEGER REFERENCES platforms(id) ON DELETE SET NULL,
    UNIQUE (game_id, platform_id)
);

CREATE TABLE IF NOT EXISTS screenshots (
    id INTEGER PRIMARY KEY,
    game_id INTEGER REFERENCES games(id) ON DELETE SET NULL,
    url VARCHAR(512)
);
"""

_VIEW = """
DROP VIEW IF EXISTS game_full_info;
CREATE VIEW game_full_info AS
SELECT
    g.id AS game_id,
    g.title,
    g.release_date,
    g.cover_image_url,
    g.description,
    g.publisher_id,
    json_object(
        'id', pub.id,
        'title', pub.title,
        'country', pub.country,
        'founding_date', strftime('%Y-%m-%dT%H:%M:%SZ', pub.founding_date),
        'website_url', pub.website_url,
        'image_url', pub.image_url
    ) AS publisher,
    (SELECT CASE WHEN COUNT(ge.id) = 0 THEN NULL ELSE json_group_array(json_object(
            'id', ge.id, 'name', ge.name, 'description', ge.description)) END
       FROM game_genres gg JOIN genres ge ON ge.id = gg.genre_id
      WHERE gg.game_id = g.id) AS genres,
    (SELECT CASE WHEN COUNT(pl.id) = 0 THEN NULL ELSE json_group_array(json_object(
            'id', pl.id, 'name', pl.name, 'description', pl.description)) END
       FROM game_platforms gp JOIN platforms pl ON pl.id = gp.platform_id
      WHERE gp.game_id = g.id) AS platforms,
    (SELECT CASE WHEN COUNT(sc.id) = 0 THEN NULL ELSE json_group_array(json_object(
            'id', sc.id, 'game_id', sc.game_id, 'url', sc.url)) END
       FROM screenshots sc
      WHERE sc.game_id = g.id) AS screenshots
FROM games g
JOIN publishers pub ON g.publisher_id = pub.id;
"""


def create_tables(conn: sqlite3.Connection) -> None:
    """Create all tables and (re)create the ``game_full_info`` view."""
    conn.executescript(_TABLES)
    conn.executescript(_VIEW)


def init_db(path: str | os.PathLike | None = None) -> sqlite3.Connection:
    """Open the database, enable foreign keys and ensure the schema exists."""
    if path is None:
        path = os.environ.get("DATABASE_PATH", DEFAULT_DATABASE)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    create_tables(conn)
    return conn


def _replace_links(
    conn: sqlite3.Connection, table: str, column: str, game_id: int, ids: Iterable[int]
) -> None:
    with conn:
        conn.execute(f"DELETE FROM {table} WHERE game_id = ?", (game_id,))
        conn.executemany(
            f"INSERT OR IGNORE INTO {table} (game_id, {column}) VALUES (?, ?)",
            [(game_id, linked_id) for linked_id in ids],
        )


def replace_game_genres(conn: sqlite3.Connection, game_id: int, genre_ids: Iterable[int]) -> None:
    """Make ``genre_ids`` the complete set of genres of a game, atomically."""
    _replace_links(conn, "game_genres", "genre_id", game_id, genre_ids)


def replace_game_platforms(
    conn: sqlite3.Connection, game_id: int, platform_ids: Iterable[int]
) -> None:
    """Make ``platform_ids`` the complete set of platforms of a game, atomically."""
    _replace_links(conn, "game_platforms", "platform_id", game_id, platform_ids)


def delete_game(conn: sqlite3.Connection, game_id: int) -> None:
    """Delete a game together with its links and screenshots."""
    with conn:
        conn.execute("DELETE FROM game_platforms WHERE game_id = ?", (game_id,))
        conn.execute("DELETE FROM game_genres WHERE game_id = ?", (game_id,))
        conn.execute("DELETE FROM screenshots WHERE game_id = ?", (game_id,))
        conn.execute("DELETE FROM games WHERE id = ?", (game_id,))