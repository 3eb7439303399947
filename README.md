# gamecatalog

A small HTTP API for keeping a catalogue of video games. It stores games
together with their publisher, genres, platforms and screenshots in a SQLite
database, and keeps uploaded cover images, publisher images and screenshots
in an S3-compatible object store.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Running the server

```
gamecatalog
```

Options:

| Option       | Default     | Meaning                         |
|--------------|-------------|---------------------------------|
| `--host`     | `0.0.0.0`   | Address to listen on            |
| `--port`     | `8083`      | Port to listen on               |
| `--database` | see below   | Path of the SQLite database     |

The server is Flask's built-in development server. A `GET /` returns
`{"message": "Server is running!"}` once it is up.

### Configuration

Settings are read from the environment; a `.env` file found from the working
directory is loaded when present.

| Variable                | Meaning                                                  |
|-------------------------|----------------------------------------------------------|
| `DATABASE_PATH`         | SQLite database used when `--database` is not given (default `game.db`) |
| `S3_ENDPOINT`           | Object store endpoint; also prefixed to stored image paths in responses (default `http://localhost:9000`) |
| `S3_REGION`             | Object store region (default `us-east-1`)                |
| `S3_BUCKET`             | Bucket that receives uploads                             |
| `AWS_ACCESS_KEY_ID`     | Access key for the object store                          |
| `AWS_SECRET_ACCESS_KEY` | Secret key for the object store                          |

The tables and the `game_full_info` view are created when the database is
opened. Requests to the object store are path-style and signed with AWS
Signature Version 4.

## Endpoints

All application routes live under `/api`. Responses carry CORS headers for
any origin.

| Method | Path                        | Purpose                                         |
|--------|-----------------------------|-------------------------------------------------|
| GET    | `/api/games`                | Paginated list of games                         |
| POST   | `/api/games`                | Create a game from a multipart form             |
| GET    | `/api/games/<id>`           | One game with publisher, genres, platforms, screenshots |
| PUT    | `/api/games/<id>`           | Update a game from a JSON body                  |
| DELETE | `/api/games/<id>`           | Delete a game, its links and its screenshots    |
| POST   | `/api/games/<id>/genres`    | Replace a game's genres (`{"genre_id": [..]}`)  |
| POST   | `/api/games/<id>/platforms` | Replace a game's platforms (`{"platform_id": [..]}`) |
| GET    | `/api/publishers`           | Paginated list of publishers                    |
| POST   | `/api/publishers`           | Create a publisher from a multipart form        |
| GET    | `/api/genres`               | All genres                                      |
| POST   | `/api/genres`               | Create a genre (`{"name": .., "description": ..}`) |
| GET    | `/api/platforms`            | All platforms                                   |
| POST   | `/api/platforms`            | Create a platform (`{"name": .., "description": ..}`) |

### Listing and pagination

`GET /api/games` accepts `page` (default 1), `limit` (default 10), `q`
(title search, case-insensitive for ASCII), `sort`, `order` (`asc` or
`desc`, default `asc`), `releaseDateFrom` and `releaseDateTo`. Games can be
sorted by `game_id`, `title`, `release_date`, `cover_image_url`,
`description` or `publisher_id`.

`GET /api/publishers` accepts `page`, `limit`, `q` (case-sensitive title
search), `sort` and `order`. Publishers can be sorted by `id`, `title`,
`country`, `founding_date`, `website_url` or `image_url`.

An unknown sort column, an invalid order, or a page or limit that is not a
positive integer gives a 400 response. For games, a total that is an exact
multiple of the limit reports `last_page` as 1; publishers report the
rounded-up page count.

Paginated responses look like this:

```json
{
  "message": "nice",
  "data": {
    "items": [],
    "pagination": {"total": 0, "last_page": 1, "current_page": 1}
  }
}
```

### Creating a game

`POST /api/games` takes a multipart form with `title`, `publisher_id`,
`release_date` (RFC 3339), an optional `description`, repeated
`genre_ids[]` and `platform_ids[]` fields, a required `cover_image_url` file
and any number of `screenshot[]` files. Uploaded files are stored under
`games/` and `screenshots/` with a random ten-character part in the key.

### Updating a game

`PUT /api/games/<id>` takes a JSON object with `title`, `release_date`
(RFC 3339 with an offset), `publisher_id` and the lists `genre_ids` and
`platform_ids`, all required; `cover_image_url`, `description` and
`screenshot_ids` are optional.

### Creating a publisher

`POST /api/publishers` takes a multipart form with `title`, `country`,
`website_url`, the founding date in the field `release_date` (RFC 3339), and
a required `image_url` file stored under `publishers/`.

## Using it as a library

`gamecatalog.app.create_app(conn, storage)` builds the Flask application
around an open database connection (see `gamecatalog.db.init_db`) and a
`gamecatalog.storage.S3Storage` (see `gamecatalog.storage.init_s3`), so it
can be embedded or tested without starting the command. The data functions
in `gamecatalog.catalog` and `gamecatalog.games` take the connection as
their first argument.

## What it does not do

- There is no authentication or authorisation; every route is open.
- Stored images are not served by the API: responses give the object path
  prefixed with `S3_ENDPOINT`.
- Deleting a game removes its screenshots from the object store but not its
  cover image.
- Genres, platforms and publishers can be created and listed but not changed
  or deleted through the API.