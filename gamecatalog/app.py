"""HTTP API of the game catalogue: games, publishers, genres and platforms."""

from __future__ import annotations

import argparse
import contextlib
import logging
import re
import sqlite3
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from gamecatalog.catalog import (
    Genre,
    Platform,
    Publisher,
    Screenshot,
    get_all_genres,
    get_all_platforms,
    get_all_publishers,
)
from gamecatalog.db import init_db
from gamecatalog.games import GameCreate, GameNotFound, get_all_games, get_game_by_id
from gamecatalog.storage import StorageError, init_s3

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8083

CORS_ALLOW_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
CORS_ALLOW_HEADERS = ("Origin", "Content-Type", "Authorization")
CORS_EXPOSE_HEADERS = ("Content-Length",)
CORS_MAX_AGE = 12 * 60 * 60

_ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_NO_FILE = "http: no such file"


class _InvalidBody(ValueError):
    """Raised when a JSON request body does not match the expected shape."""


def _parse_int64(text: str) -> int:
    if not _INT_PATTERN.fullmatch(text or ""):
        raise ValueError(f"invalid integer {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"integer out of range {text!r}")
    return value


def _parse_rfc3339(text: str) -> datetime:
    value = (text or "").strip()
    if "T" not in value and "t" not in value:
        raise ValueError(f"invalid timestamp {text!r}")
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"invalid timestamp {text!r}") from None
    if moment.tzinfo is None:
        raise ValueError(f"timestamp without offset {text!r}")
    return moment.astimezone(timezone.utc)


def _form_time(text: str) -> datetime:
    try:
        return _parse_rfc3339(text)
    except ValueError:
        return _ZERO_TIME


def _optional_text(text: str) -> str | None:
    return text or None


def _json_object():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise _InvalidBody("request body must be a JSON object")
    return payload


def _json_str(payload: dict, name: str, *, required: bool) -> str | None:
    value = payload.get(name)
    if value is None:
        if required:
            raise _InvalidBody(f"{name} is required")
        return None
    if not isinstance(value, str):
        raise _InvalidBody(f"{name} must be a string")
    if required and not value:
        raise _InvalidBody(f"{name} is required")
    return value


def _json_int(payload: dict, name: str) -> int:
    value = payload.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise _InvalidBody(f"{name} must be an integer")
    if value == 0:
        raise _InvalidBody(f"{name} is required")
    return value


def _json_int_list(payload: dict, name: str, *, required: bool) -> list[int] | None:
    value = payload.get(name)
    if value is None:
        if required:
            raise _InvalidBody(f"{name} is required")
        return None
    if not isinstance(value, list) or any(
        isinstance(item, bool) or not isinstance(item, int) for item in value
    ):
        raise _InvalidBody(f"{name} must be a list of integers")
    return value


def _json_time(payload: dict, name: str) -> datetime:
    value = payload.get(name)
    if not isinstance(value, str):
        raise _InvalidBody(f"{name} must be a timestamp")
    try:
        moment = _parse_rfc3339(value)
    except ValueError as exc:
        raise _InvalidBody(str(exc)) from None
    if moment == _ZERO_TIME:
        raise _InvalidBody(f"{name} is required")
    return moment


def _game_from_json(payload: dict) -> GameCreate:
    return GameCreate(
        title=_json_str(payload, "title", required=True),
        release_date=_json_time(payload, "release_date"),
        cover_image_url=_json_str(payload, "cover_image_url", required=False),
        description=_json_str(payload, "description", required=False),
        publisher_id=_json_int(payload, "publisher_id"),
        genre_ids=_json_int_list(payload, "genre_ids", required=True),
        platform_ids=_json_int_list(payload, "platform_ids", required=True),
        screenshot_ids=_json_int_list(payload, "screenshot_ids", required=False),
    )


def _reply(status: int, message: str, **extra):
    return jsonify({"message": message, **extra}), status


def _is_multipart() -> bool:
    return request.mimetype == "multipart/form-data"


def create_app(conn: sqlite3.Connection, storage) -> Flask:
    """Build the web application over a database connection and object storage."""
    app = Flask(__name__)
    app.json.sort_keys = False

    @app.before_request
    def _cors_preflight():
        if request.method == "OPTIONS" and request.headers.get("Origin"):
            response = app.response_class(status=204)
            response.headers["Access-Control-Allow-Methods"] = ",".join(CORS_ALLOW_METHODS)
            response.headers["Access-Control-Allow-Headers"] = ",".join(CORS_ALLOW_HEADERS)
            response.headers["Access-Control-Max-Age"] = str(CORS_MAX_AGE)
            return response
        return None

    @app.after_request
    def _cors_headers(response):
        if request.headers.get("Origin"):
            response.headers["Access-Control-Allow-Origin"] = "*"
            response.headers["Access-Control-Allow-Credentials"] = "true"
            if request.method != "OPTIONS":
                response.headers["Access-Control-Expose-Headers"] = ",".join(
                    CORS_EXPOSE_HEADERS
                )
        return response

    @app.get("/")
    def root():
        return _reply(200, "Server is running!")

    # games

    @app.get("/api/games")
    def list_games():
        args = request.args
        page = args.get("page", "1")
        limit = args.get("limit", "10")
        q = args.get("q", "")
        order = args.get("order", "asc")
        sort = args.get("sort", "")
        date_from = args.get("releaseDateFrom", "")
        date_to = args.get("releaseDateTo", "")
        logger.info("page=%s limit=%s q=%s order=%s sort=%s", page, limit, q, order, sort)
        try:
            games = get_all_games(conn, page, limit, order, q, sort, date_from, date_to)
        except (ValueError, sqlite3.Error) as exc:
            logger.warning("listing games failed: %s", exc)
            return _reply(400, "Could not fetch!")
        return jsonify(games.to_dict()), 200

    @app.get("/api/games/<game_id>")
    def show_game(game_id):
        try:
            game_no = _parse_int64(game_id)
        except ValueError:
            return _reply(400, "Could not fetch!")
        try:
            game = get_game_by_id(conn, game_no)
        except (GameNotFound, sqlite3.Error) as exc:
            logger.warning("fetching game failed: %s", exc)
            return _reply(404, "Could not Found!")
        return jsonify(game.to_dict()), 200

    @app.post("/api/games")
    def create_game():
        if not _is_multipart():
            return _reply(400, "invalid form")
        form = request.form
        try:
            publisher_id = _parse_int64(form.get("publisher_id", ""))
        except ValueError:
            publisher_id = 0

        def ids(field: str) -> list[int]:
            parsed = []
            for text in form.getlist(field):
                with contextlib.suppress(ValueError):
                    parsed.append(_parse_int64(text))
            return parsed

        game = GameCreate(
            title=form.get("title", ""),
            release_date=_form_time(form.get("release_date", "")),
            description=_optional_text(form.get("description", "")),
            publisher_id=publisher_id,
            genre_ids=ids("genre_ids[]"),
            platform_ids=ids("platform_ids[]"),
        )

        cover = request.files.get("cover_image_url")
        if cover is None:
            return _reply(500, "UploadFileToS3 error", err=_NO_FILE)
        try:
            game.cover_image_url = storage.upload_file(
                cover.filename or "", cover.stream, "test", "games/"
            )
        except StorageError as exc:
            return _reply(500, "failed to upload to S3", err=str(exc))

        try:
            game.save(conn)
        except sqlite3.Error as exc:
            return _reply(500, "Could not create game", err=str(exc))

        with contextlib.suppress(sqlite3.Error):
            game.update_genres(conn, game.genre_ids)
        with contextlib.suppress(sqlite3.Error):
            game.update_platforms(conn, game.platform_ids)

        screenshot_ids: list[int] = []
        for upload in request.files.getlist("screenshot[]"):
            try:
                url = storage.upload_file(
                    upload.filename or "", upload.stream, "test", "screenshots/"
                )
            except StorageError as exc:
                return _reply(500, "failed to upload screenshot to S3", error=str(exc))
            shot = Screenshot(url=url, game_id=game.id)
            try:
                shot.save(conn)
            except sqlite3.Error as exc:
                return _reply(500, "could not save screenshot record", error=str(exc))
            screenshot_ids.append(shot.id)
        game.screenshot_ids = screenshot_ids

        return _reply(200, "Game created!", game=game.to_dict())

    @app.put("/api/games/<game_id>")
    def update_game(game_id):
        try:
            game_no = _parse_int64(game_id)
        except ValueError:
            return _reply(400, "Could not parse game id")
        try:
            get_game_by_id(conn, game_no)
        except (GameNotFound, sqlite3.Error) as exc:
            logger.warning("fetching game failed: %s", exc)
            return _reply(500, "Could not fetch game")

        try:
            updated = _game_from_json(_json_object())
        except _InvalidBody as exc:
            logger.warning("invalid game body: %s", exc)
            return _reply(400, "Could not parse!")
        updated.id = game_no

        try:
            updated.update(conn)
        except sqlite3.Error as exc:
            return _reply(500, "Could not update", err=str(exc))
        try:
            updated.update_genres(conn, updated.genre_ids)
        except sqlite3.Error:
            return _reply(500, "Could not update genre of game")
        try:
            updated.update_platforms(conn, updated.platform_ids)
        except sqlite3.Error:
            return _reply(500, "Could not update platform of game")

        return _reply(200, "Game updated!", game=updated.to_dict())

    @app.delete("/api/games/<game_id>")
    def delete_game(game_id):
        try:
            game_no = _parse_int64(game_id)
        except ValueError:
            return _reply(400, "Could not parse game id")
        try:
            game = get_game_by_id(conn, game_no)
        except (GameNotFound, sqlite3.Error) as exc:
            logger.warning("fetching game failed: %s", exc)
            return _reply(500, "Could not fetch game")

        delete_error = None
        try:
            game.delete(conn)
        except sqlite3.Error as exc:
            delete_error = exc

        for shot in game.screenshots:
            try:
                storage.delete_file(shot.url.lstrip("/"))
            except StorageError as exc:
                logger.warning("deleting screenshot failed: %s", exc)
                return _reply(500, "Could not delete screenshot")

        if delete_error is not None:
            logger.warning("deleting game failed: %s", delete_error)
            return _reply(500, "Could not delete game")

        return _reply(200, "Game deleted!", game=game.to_dict())

    def _link_handler(game_id: str, field: str, apply, failure: str):
        try:
            game_no = _parse_int64(game_id)
        except ValueError:
            return _reply(400, "Could not parse game id")
        try:
            linked = _json_int_list(_json_object(), field, required=True)
        except _InvalidBody:
            return _reply(400, "Invalid request body")
        try:
            game = get_game_by_id(conn, game_no)
        except (GameNotFound, sqlite3.Error) as exc:
            logger.warning("fetching game failed: %s", exc)
            return _reply(500, "Could not fetch game")
        try:
            apply(game, linked)
        except sqlite3.Error as exc:
            logger.warning("%s: %s", failure, exc)
            return _reply(500, failure)
        return _reply(200, "added!")

    @app.post("/api/games/<game_id>/genres")
    def add_game_genres(game_id):
        return _link_handler(
            game_id,
            "genre_id",
            lambda game, ids: game.update_genres(conn, ids),
            "Could not add genre to game",
        )

    @app.post("/api/games/<game_id>/platforms")
    def add_game_platforms(game_id):
        return _link_handler(
            game_id,
            "platform_id",
            lambda game, ids: game.update_platforms(conn, ids),
            "Could not add platform to game",
        )

    # publishers

    @app.get("/api/publishers")
    def list_publishers():
        args = request.args
        try:
            publishers = get_all_publishers(
                conn,
                args.get("page", "1"),
                args.get("limit", "10"),
                args.get("order", "asc"),
                args.get("q", ""),
                args.get("sort", ""),
            )
        except (ValueError, sqlite3.Error) as exc:
            return _reply(400, "Could not fetch!", err=str(exc))
        return jsonify(publishers.to_dict()), 200

    @app.post("/api/publishers")
    def create_publisher():
        if not _is_multipart():
            return _reply(400, "invalid form")
        form = request.form
        publisher = Publisher(
            title=form.get("title", ""),
            country=form.get("country", ""),
            founding_date=_form_time(form.get("release_date", "")),
            website_url=form.get("website_url", ""),
        )

        image = request.files.get("image_url")
        if image is None:
            return _reply(500, "UploadFileToS3 error", err=_NO_FILE)
        try:
            publisher.image_url = storage.upload_file(
                image.filename or "", image.stream, "test", "publishers/"
            )
        except StorageError as exc:
            return _reply(500, "failed to upload to S3", err=str(exc))

        try:
            publisher.save(conn)
        except sqlite3.Error as exc:
            return _reply(500, "Could not create publisher", err=str(exc))

        return _reply(200, "Publisher created!", publisher=publisher.to_dict())

    # genres and platforms

    @app.get("/api/genres")
    def list_genres():
        try:
            genres = get_all_genres(conn)
        except sqlite3.Error:
            return _reply(400, "Could not fetch!")
        return jsonify([genre.to_dict() for genre in genres]), 200

    @app.post("/api/genres")
    def create_genre():
        try:
            payload = _json_object()
            genre = Genre(
                name=_json_str(payload, "name", required=True),
                description=_json_str(payload, "description", required=False),
            )
        except _InvalidBody:
            return _reply(400, "Could not parse!")
        try:
            genre.save(conn)
        except sqlite3.Error as exc:
            return _reply(500, "Could not create", err=str(exc))
        return _reply(200, "Genre created!", genre=genre.to_dict())

    @app.get("/api/platforms")
    def list_platforms():
        try:
            platforms = get_all_platforms(conn)
        except sqlite3.Error:
            return _reply(400, "Could not fetch!")
        return jsonify([platform.to_dict() for platform in platforms]), 200

    @app.post("/api/platforms")
    def create_platform():
        try:
            payload = _json_object()
            platform = Platform(
                name=_json_str(payload, "name", required=True),
                description=_json_str(payload, "description", required=False),
            )
        except _InvalidBody:
            return _reply(400, "Could not parse!")
        try:
            platform.save(conn)
        except sqlite3.Error as exc:
            return _reply(500, "Could not create", err=str(exc))
        return _reply(200, "platform created!", platform=platform.to_dict())

    return app


def main(argv=None) -> int:
    """Open the database and storage, then serve the API."""
    parser = argparse.ArgumentParser(description="Serve the game catalogue API.")
    parser.add_argument("--host", default="0.0.0.0", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    parser.add_argument("--database", default=None, help="path of the SQLite database")
    args = parser.parse_args(argv)

    print("Starting server...")
    conn = init_db(args.database)
    storage = init_s3()
    app = create_app(conn, storage)
    try:
        app.run(host=args.host, port=args.port)
    except OSError as exc:
        print("Failed to start server:", exc)
        return 1
    finally:
        conn.close()
    return 0