[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gamecatalog"
version = "0.1.0"
description = "HTTP API for a video game catalogue with publishers, genres, platforms and screenshots, stored in SQLite and an S3-compatible object store"
requires-python = ">=3.10"
keywords = ["games", "catalog", "rest", "api", "flask", "sqlite", "s3"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]
dependencies = [
    "flask",
    "httpx",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
gamecatalog = "gamecatalog.app:main"

[tool.hatch.build.targets.wheel]
packages = ["gamecatalog"]

[tool.pytest.ini_options]
addopts = "-ra"
