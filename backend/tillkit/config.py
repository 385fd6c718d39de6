# backend/tillkit/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tillkit.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tillkit.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Printer channel (seconds / bytes)
    PRINTER_CONNECT_TIMEOUT = float(os.environ.get("TILLKIT_PRINTER_CONNECT_TIMEOUT", "10"))
    PRINTER_WRITE_TIMEOUT = float(os.environ.get("TILLKIT_PRINTER_WRITE_TIMEOUT", "15"))
    PRINTER_CHUNK_SIZE = int(os.environ.get("TILLKIT_PRINTER_CHUNK_SIZE", "20"))
    PRINTER_BAUDRATE = int(os.environ.get("TILLKIT_PRINTER_BAUDRATE", "9600"))

    # Key for the remembered printer row; one per till
    TERMINAL_ID = os.environ.get("TILLKIT_TERMINAL_ID", "default")

    # Used when a shop has never saved a receipt style
    DEFAULT_PAPER_WIDTH = int(os.environ.get("TILLKIT_DEFAULT_PAPER_WIDTH", "35"))
