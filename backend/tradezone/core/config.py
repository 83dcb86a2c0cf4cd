from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import List

from dotenv import load_dotenv


# Ensure .env is loaded for local development
load_dotenv()


DEFAULT_PLATFORM_START_DATE = "2025-09-09"


class Settings:
    # PostgreSQL (record store)
    POSTGRES_HOST: str | None
    POSTGRES_USER: str | None
    POSTGRES_PASSWORD: str | None
    POSTGRES_DBNAME: str | None
    POSTGRES_PORT: int

    # Auth
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_MINUTES: int

    # Dashboard
    PLATFORM_START_DATE: str

    # CORS
    CORS_ORIGINS: List[str]

    # Logging
    LOG_LEVEL: str
    LOG_DIR: str | None

    def __init__(self) -> None:
        self.POSTGRES_HOST = os.environ.get("POSTGRES_HOST")
        self.POSTGRES_USER = os.environ.get("POSTGRES_USER")
        self.POSTGRES_PASSWORD = os.environ.get("POSTGRES_PASSWORD")
        self.POSTGRES_DBNAME = os.environ.get("POSTGRES_DBNAME")
        self.POSTGRES_PORT = int(os.environ.get("POSTGRES_PORT", "5432"))

        self.JWT_SECRET = os.environ.get("JWT_SECRET", "change-me")
        self.JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_MINUTES = int(os.environ.get("JWT_EXPIRE_MINUTES", "1440"))

        # First day the platform recorded data; lower bound for ALL and the progress grid
        self.PLATFORM_START_DATE = os.environ.get("PLATFORM_START_DATE", DEFAULT_PLATFORM_START_DATE)

        self.CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

        # Options: DEBUG, INFO, WARNING, ERROR, CRITICAL
        self.LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
        self.LOG_DIR = os.environ.get("LOG_DIR")

    @property
    def repo_root(self) -> Path:
        # This file: backend/tradezone/core/config.py -> repo root is parents[3]
        return Path(__file__).resolve().parents[3]

    @property
    def log_dir(self) -> Path:
        if self.LOG_DIR:
            return Path(self.LOG_DIR)
        return self.repo_root / "logs"

    @property
    def platform_start_date(self) -> date:
        try:
            return date.fromisoformat(self.PLATFORM_START_DATE.strip())
        except ValueError:
            return date.fromisoformat(DEFAULT_PLATFORM_START_DATE)

    # --- Helpers for services ---
    def postgres_dsn(self) -> str:
        """Build the PostgreSQL DSN used by the record store.

        Keeps DSN assembly in one place instead of hand-building it in every service.
        """
        host = self.POSTGRES_HOST or "localhost"
        port = self.POSTGRES_PORT
        db = self.POSTGRES_DBNAME or "tradezone"
        user = self.POSTGRES_USER or "postgres"
        password = self.POSTGRES_PASSWORD or ""
        return f"host={host} port={port} dbname={db} user={user} password={password}"


def get_settings() -> Settings:
    return Settings()
