"""Genres, platforms, publishers and screenshots of the game catalogue."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from gamecatalog.response import PageResponse, success_pagination_response
from gamecatalog.storage import get_s3_endpoint

PUBLISHER_SORT_COLUMNS = frozenset(
    {"id", "title", "country", "founding_date", "website_url", "image_url"}
)

_ORDERS = ("", "asc", "desc")


def _parse_timestamp(value: str | datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if isinstance(value, datetime):
        moment = value
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"invalid timestamp: {value!r}") from None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _to_db_timestamp(value: str | datetime) -> str:
    return _parse_timestamp(value).replace(tzinfo=None).isoformat(sep=" ")


def _from_db_timestamp(value: str | datetime | None) -> datetime:
    if value is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    return _parse_timestamp(value)


def _format_timestamp(value: datetime) -> str:
    text = _parse_timestamp(value).isoformat()
    return text[:-6] + "Z" if text.endswith("+00:00") else text


def _parse_paging(page, limit) -> tuple[int, int, int]:
    """Return page number, page size and row offset."""
    try:
        page_no = int(page)
        page_size = int(limit)
    except (TypeError, ValueError):
        raise ValueError("page and limit must be integers") from None
    if page_size < 1:
        raise ValueError("limit must be a positive integer")
    if page_no < 1:
        raise ValueError("page must be a positive integer")
    return page_no, page_size, (page_no - 1) * page_size


def _order_clause(sort: str, order: str, columns: Iterable[str]) -> str:
    if not sort:
        return ""
    if sort not in columns:
        raise ValueError(f"cannot sort by {sort!r}")
    direction = (order or "").strip().lower()
    if direction not in _ORDERS:
        raise ValueError(f"invalid sort order {order!r}")
    return f" ORDER BY {sort} {direction.upper()}".rstrip()


@dataclass(kw_only=True)
class Genre:
    id: int = 0
    name: str
    description: str | None = None

    def save(self, conn: sqlite3.Connection) -> None:
        """Insert the genre and record its new id."""
        with conn:
            cursor = conn.execute(
                "INSERT INTO genres (name, description) VALUES (?, ?)",
                (self.name, self.description),
            )
        self.id = cursor.lastrowid

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}


@dataclass(kw_only=True)
class Platform:
    id: int = 0
    name: str
    description: str | None = None

    def save(self, conn: sqlite3.Connection) -> None:
        """Insert the platform and record its new id."""
        with conn:
            cursor = conn.execute(
                "INSERT INTO platforms (name, description) VALUES (?, ?)",
                (self.name, self.description),
            )
        self.id = cursor.lastrowid

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}


@dataclass(kw_only=True)
class Publisher:
    id: int = 0
    title: str
    country: str
    founding_date: datetime
    website_url: str = ""
    image_url: str = ""

    def save(self, conn: sqlite3.Connection) -> None:
        """Insert the publisher and record its new id."""
        with conn:
            cursor = conn.execute(
                "INSERT INTO publishers (title, country, founding_date, website_url, image_url)"
                " VALUES (?, ?, ?, ?, ?)",
                (
                    self.title,
                    self.country,
                    _to_db_timestamp(self.founding_date),
                    self.website_url,
                    self.image_url,
                ),
            )
        self.id = cursor.lastrowid

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "country": self.country,
            "founding_date": _format_timestamp(self.founding_date),
            "website_url": self.website_url,
            "image_url": self.image_url,
        }


@dataclass(kw_only=True)
class Screenshot:
    id: int = 0
    url: str
    game_id: int

    def save(self, conn: sqlite3.Connection) -> None:
        """Insert the screenshot and record its new id."""
        with conn:
            cursor = conn.execute(
                "INSERT INTO screenshots (url, game_id) VALUES (?, ?)",
                (self.url, self.game_id),
            )
        self.id = cursor.lastrowid

    def to_dict(self) -> dict:
        return {"id": self.id, "url": self.url, "game_id": self.game_id}


def get_all_genres(conn: sqlite3.Connection) -> list[Genre]:
    """Return every genre."""
    rows = conn.execute("SELECT id, name, description FROM genres")
    return [Genre(id=row[0], name=row[1], description=row[2]) for row in rows]


def get_all_platforms(conn: sqlite3.Connection) -> list[Platform]:
    """Return every platform."""
    rows = conn.execute("SELECT id, name, description FROM platforms")
    return [Platform(id=row[0], name=row[1], description=row[2]) for row in rows]


def count_publishers(conn: sqlite3.Connection, q: str) -> int:
    """Count publishers whose title contains ``q`` (case-sensitive)."""
    row = conn.execute(
        "SELECT COUNT(*) FROM publishers WHERE ? = '' OR instr(title, ?) > 0",
        (q, q),
    ).fetchone()
    return row[0]


def get_all_publishers(
    conn: sqlite3.Connection, page, limit, order: str, q: str, sort: str
) -> PageResponse:
    """Return one page of publishers, image paths prefixed with the storage endpoint."""
    page_no, page_size, offset = _parse_paging(page, limit)
    order_sql = _order_clause(sort, order, PUBLISHER_SORT_COLUMNS)
    total = count_publishers(conn, q)

    sql = (
        "SELECT id, title, country, founding_date, website_url, image_url"
        " FROM publishers WHERE 1=1"
    )
    params: list = []
    if q:
        sql += " AND instr(title, ?) > 0"
        params.append(q)
    sql += order_sql + " LIMIT ? OFFSET ?"
    params.extend([page_size, offset])

    last_page = -(-total // page_size)
    endpoint = get_s3_endpoint()
    publishers = [
        Publisher(
            id=row[0],
            title=row[1],
            country=row[2],
            founding_date=_from_db_timestamp(row[3]),
            website_url=row[4] or "",
            image_url=endpoint + (row[5] or ""),
        )
        for row in conn.execute(sql, params)
    ]
    return success_pagination_response(publishers, total, last_page, page_no)