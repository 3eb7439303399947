import json
import sqlite3

import pytest

from gamecatalog.db import (
    create_tables,
    delete_game,
    init_db,
    replace_game_genres,
    replace_game_platforms,
)


@pytest.fixture
def conn():
    connection = init_db(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def game_id(conn):
    with conn:
        conn.execute(
            "INSERT INTO publishers (id, title, country, founding_date, website_url, image_url) "
            "VALUES (1, 'Pub', 'NL', '2001-02-03T04:05:06+00:00', 'https://pub.example.com', '/p.png')"
        )
        conn.executemany(
            "INSERT INTO genres (id, name, description) VALUES (?, ?, ?)",
            [(1, "RPG", None), (2, "Puzzle", "brainy"), (3, "Racing", None)],
        )
        conn.executemany(
            "INSERT INTO platforms (id, name, description) VALUES (?, ?, ?)",
            [(1, "PC", None), (2, "Console", None)],
        )
        cursor = conn.execute(
            "INSERT INTO games (title, release_date, cover_image_url, description, publisher_id) "
            "VALUES ('Quest', '2020-01-01T00:00:00+00:00', '/c.png', 'fun', 1)"
        )
    return cursor.lastrowid


def linked(conn, table, column, game):
    rows = conn.execute(f"SELECT {column} FROM {table} WHERE game_id = ?", (game,))
    return sorted(row[0] for row in rows)


def test_tables_and_view_exist(conn):
    names = {
        row["name"]
        for row in conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'view')")
    }
    assert {
        "publishers",
        "genres",
        "platforms",
        "games",
        "game_genres",
        "game_platforms",
        "screenshots",
        "game_full_info",
    } <= names


def test_view_column_order(conn):
    columns = [row[1] for row in conn.execute("PRAGMA table_info(game_full_info)")]
    assert columns == [
        "game_id",
        "title",
        "release_date",
        "cover_image_url",
        "description",
        "publisher_id",
        "publisher",
        "genres",
        "platforms",
        "screenshots",
    ]


def test_create_tables_is_idempotent(conn, game_id):
    create_tables(conn)
    count = conn.execute("SELECT COUNT(*) FROM games").fetchone()[0]
    assert count == 1


def test_foreign_keys_enabled(conn):
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1


def test_replace_genres_replaces_set(conn, game_id):
    replace_game_genres(conn, game_id, [1, 2])
    assert linked(conn, "game_genres", "genre_id", game_id) == [1, 2]
    replace_game_genres(conn, game_id, [3, 3, 2])
    assert linked(conn, "game_genres", "genre_id", game_id) == [2, 3]


def test_replace_genres_with_empty_clears(conn, game_id):
    replace_game_genres(conn, game_id, [1])
    replace_game_genres(conn, game_id, [])
    assert linked(conn, "game_genres", "genre_id", game_id) == []


def test_replace_genres_unknown_id_rolls_back(conn, game_id):
    replace_game_genres(conn, game_id, [1])
    with pytest.raises(sqlite3.IntegrityError):
        replace_game_genres(conn, game_id, [2, 99])
    assert linked(conn, "game_genres", "genre_id", game_id) == [1]


def test_replace_platforms(conn, game_id):
    replace_game_platforms(conn, game_id, [2, 1, 1])
    assert linked(conn, "game_platforms", "platform_id", game_id) == [1, 2]


def test_view_aggregates_relations(conn, game_id):
    replace_game_genres(conn, game_id, [1, 2])
    replace_game_platforms(conn, game_id, [1])
    with conn:
        conn.execute("INSERT INTO screenshots (game_id, url) VALUES (?, '/s1.png')", (game_id,))
    row = conn.execute("SELECT * FROM game_full_info WHERE game_id = ?", (game_id,)).fetchone()

    assert row["title"] == "Quest"
    publisher = json.loads(row["publisher"])
    assert publisher["id"] == 1
    assert publisher["title"] == "Pub"
    assert publisher["founding_date"] == "2001-02-03T04:05:06Z"
    genres = json.loads(row["genres"])
    assert sorted(g["id"] for g in genres) == [1, 2]
    assert {"id": 2, "name": "Puzzle", "description": "brainy"} in genres
    assert [p["id"] for p in json.loads(row["platforms"])] == [1]
    screenshots = json.loads(row["screenshots"])
    assert [(s["game_id"], s["url"]) for s in screenshots] == [(game_id, "/s1.png")]


def test_view_relations_null_when_absent(conn, game_id):
    row = conn.execute("SELECT * FROM game_full_info WHERE game_id = ?", (game_id,)).fetchone()
    assert row["genres"] is None
    assert row["platforms"] is None
    assert row["screenshots"] is None


def test_delete_game_removes_everything(conn, game_id):
    replace_game_genres(conn, game_id, [1])
    replace_game_platforms(conn, game_id, [2])
    with conn:
        conn.execute("INSERT INTO screenshots (game_id, url) VALUES (?, '/s.png')", (game_id,))
    delete_game(conn, game_id)
    assert conn.execute("SELECT COUNT(*) FROM games").fetchone()[0] == 0
    assert linked(conn, "game_genres", "genre_id", game_id) == []
    assert linked(conn, "game_platforms", "platform_id", game_id) == []
    assert conn.execute("SELECT COUNT(*) FROM screenshots").fetchone()[0] == 0
    assert conn.execute("SELECT COUNT(*) FROM genres").fetchone()[0] == 3