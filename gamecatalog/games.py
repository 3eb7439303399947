"""Games and their full catalogue view."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from gamecatalog import db
from gamecatalog.catalog import (
    Genre,
    Platform,
    Publisher,
    Screenshot,
    _format_timestamp,
    _from_db_timestamp,
    _order_clause,
    _parse_paging,
    _to_db_timestamp,
)
from gamecatalog.response import PageResponse, success_pagination_response
from gamecatalog.storage import get_s3_endpoint

GAME_SORT_COLUMNS = frozenset(
    {"game_id", "title", "release_date", "cover_image_url", "description", "publisher_id"}
)

_VIEW_COLUMNS = (
    "game_id, title, release_date, cover_image_url, description, publisher_id,"
    " publisher, genres, platforms, screenshots"
)


class GameNotFound(LookupError):
    """Raised when no game has the requested id."""

    def __init__(self, game_id: int):
        super().__init__(f"game {game_id} not found")
        self.game_id = game_id


@dataclass(kw_only=True)
class Game:
    id: int = 0
    title: str
    release_date: datetime
    cover_image_url: str | None = None
    description: str | None = None
    publisher_id: int

    def save(self, conn: sqlite3.Connection) -> None:
        """Insert the game and record its new id."""
        with conn:
            cursor = conn.execute(
                "INSERT INTO games (title, release_date, cover_image_url, description, publisher_id)"
                " VALUES (?, ?, ?, ?, ?)",
                (
                    self.title,
                    _to_db_timestamp(self.release_date),
                    self.cover_image_url,
                    self.description,
                    self.publisher_id,
                ),
            )
        self.id = cursor.lastrowid

    def update(self, conn: sqlite3.Connection) -> None:
        """Write the game's fields over the stored row with the same id."""
        with conn:
            conn.execute(
                "UPDATE games SET title = ?, release_date = ?, cover_image_url = ?,"
                " description = ?, publisher_id = ? WHERE id = ?",
                (
                    self.title,
                    _to_db_timestamp(self.release_date),
                    self.cover_image_url,
                    self.description,
                    self.publisher_id,
                    self.id,
                ),
            )

    def delete(self, conn: sqlite3.Connection) -> None:
        """Delete the game with its genre, platform and screenshot links."""
        db.delete_game(conn, self.id)

    def update_genres(self, conn: sqlite3.Connection, genre_ids: Iterable[int]) -> None:
        """Replace the game's genres with ``genre_ids``."""
        db.replace_game_genres(conn, self.id, genre_ids)

    def update_platforms(self, conn: sqlite3.Connection, platform_ids: Iterable[int]) -> None:
        """Replace the game's platforms with ``platform_ids``."""
        db.replace_game_platforms(conn, self.id, platform_ids)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "release_date": _format_timestamp(self.release_date),
            "cover_image_url": self.cover_image_url,
            "description": self.description,
            "publisher_id": self.publisher_id,
        }


@dataclass(kw_only=True)
class GameCreate(Game):
    genre_ids: list[int] = field(default_factory=list)
    platform_ids: list[int] = field(default_factory=list)
    screenshot_ids: list[int] | None = None

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "genre_ids": list(self.genre_ids),
            "platform_ids": list(self.platform_ids),
            "screenshot_ids": None if self.screenshot_ids is None else list(self.screenshot_ids),
        }


@dataclass(kw_only=True)
class GameDetail(Game):
    publisher: Publisher
    genres: list[Genre] = field(default_factory=list)
    platforms: list[Platform] = field(default_factory=list)
    screenshots: list[Screenshot] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "publisher": self.publisher.to_dict(),
            "genres": [genre.to_dict() for genre in self.genres],
            "platforms": [platform.to_dict() for platform in self.platforms],
            "screenshots": [shot.to_dict() for shot in self.screenshots],
        }


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filters(q: str, release_date_from: str, release_date_to: str) -> tuple[str, list]:
    sql = ""
    params: list = []
    if q:
        sql += " AND title LIKE ? ESCAPE '\\'"
        params.append(f"%{_escape_like(q)}%")
    if release_date_from:
        sql += " AND release_date >= ?"
        params.append(_to_db_timestamp(release_date_from))
    if release_date_to:
        sql += " AND release_date <= ?"
        params.append(_to_db_timestamp(release_date_to))
    return sql, params


def _json_list(text) -> list:
    if not text or text == "null":
        return []
    return json.loads(text)


def _publisher_from_json(text) -> Publisher:
    data = json.loads(text) if text else {}
    return Publisher(
        id=data.get("id") or 0,
        title=data.get("title") or "",
        country=data.get("country") or "",
        founding_date=_from_db_timestamp(data.get("founding_date")),
        website_url=data.get("website_url") or "",
        image_url=data.get("image_url") or "",
    )


def _detail_from_row(row, endpoint: str) -> GameDetail:
    (
        game_id,
        title,
        release_date,
        cover,
        description,
        publisher_id,
        publisher_json,
        genres_json,
        platforms_json,
        screenshots_json,
    ) = tuple(row)
    return GameDetail(
        id=game_id,
        title=title,
        release_date=_from_db_timestamp(release_date),
        cover_image_url=endpoint + (cover or ""),
        description=description,
        publisher_id=publisher_id,
        publisher=_publisher_from_json(publisher_json),
        genres=[
            Genre(id=g["id"], name=g["name"], description=g.get("description"))
            for g in _json_list(genres_json)
        ],
        platforms=[
            Platform(id=p["id"], name=p["name"], description=p.get("description"))
            for p in _json_list(platforms_json)
        ],
        screenshots=[
            Screenshot(id=s["id"], url=s.get("url") or "", game_id=s["game_id"])
            for s in _json_list(screenshots_json)
        ],
    )


def count_games(
    conn: sqlite3.Connection, q: str, release_date_from: str, release_date_to: str
) -> int:
    """Count games matching the title search and release-date bounds."""
    where, params = _filters(q, release_date_from, release_date_to)
    row = conn.execute(f"SELECT COUNT(*) FROM game_full_info WHERE 1=1{where}", params).fetchone()
    return row[0]


def get_all_games(
    conn: sqlite3.Connection,
    page,
    limit,
    order: str,
    q: str,
    sort: str,
    release_date_from: str,
    release_date_to: str,
) -> PageResponse:
    """Return one page of games with publisher, genres, platforms and screenshots."""
    page_no, page_size, offset = _parse_paging(page, limit)
    order_sql = _order_clause(sort, order, GAME_SORT_COLUMNS)
    total = count_games(conn, q, release_date_from, release_date_to)

    where, params = _filters(q, release_date_from, release_date_to)
    sql = f"SELECT {_VIEW_COLUMNS} FROM game_full_info WHERE 1=1{where}{order_sql} LIMIT ? OFFSET ?"
    params.extend([page_size, offset])

    # An exact multiple of the page size reports a single last page.
    last_page = total // page_size + 1 if total % page_size else 1

    endpoint = get_s3_endpoint()
    games = [_detail_from_row(row, endpoint) for row in conn.execute(sql, params)]
    return success_pagination_response(games, total, last_page, page_no)


def get_game_by_id(conn: sqlite3.Connection, game_id: int) -> GameDetail:
    """Return the full record of one game, or raise ``GameNotFound``."""
    row = conn.execute(
        f"SELECT {_VIEW_COLUMNS} FROM game_full_info WHERE game_id = ?", (game_id,)
    ).fetchone()
    if row is None:
        raise GameNotFound(game_id)
    return _detail_from_row(row, get_s3_endpoint())