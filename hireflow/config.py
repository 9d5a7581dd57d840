import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_TRUE_VALUES = {"1", "true", "True", "yes", "YES", "on"}

# Default to a local SQLite DB for dev so the backend can start out-of-the-box.
# Use an absolute path so it works regardless of current working directory.
_default_sqlite_path = (Path(__file__).resolve().parent.parent / "dev.db").as_posix()


def _env_bool(name: str, default: str = "0") -> bool:
    return (os.getenv(name, default) or default).strip() in _TRUE_VALUES


def _env_list(name: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in (os.getenv(name) or "").split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = f"sqlite:///{_default_sqlite_path}"

    # Auth / JWT
    # NOTE: keep a default for local dev so the server can boot even if JWT_SECRET isn't set.
    jwt_secret: str = "dev_secret_change_me"

    # Used to compose the link in the credential restore email.
    frontend_url: str = "http://localhost:5173"
    frontend_origins: tuple[str, ...] = ()

    # Outgoing mail (restore links). Left empty, delivery is skipped with a warning.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_from: str = ""
    smtp_tls: bool = True

    log_level: str = "INFO"
    server_host: str = "127.0.0.1"
    server_port: int = 8000


def load_settings() -> Settings:
    """
    Build settings from the process environment.

    Override=True so changes in .env take effect on process reload. For automated
    tests, set DISABLE_DOTENV=1 to keep .env from overriding the test DATABASE_URL.
    """
    if os.getenv("DISABLE_DOTENV") != "1":
        load_dotenv(override=True)

    defaults = Settings()
    return Settings(
        database_url=(os.getenv("DATABASE_URL") or "").strip() or defaults.database_url,
        jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
        frontend_url=(os.getenv("FRONTEND_URL") or defaults.frontend_url).rstrip("/"),
        frontend_origins=_env_list("FRONTEND_ORIGINS"),
        smtp_host=(os.getenv("SMTP_HOST") or "").strip(),
        smtp_port=int((os.getenv("SMTP_PORT") or "587").strip()),
        smtp_user=(os.getenv("SMTP_USER") or "").strip(),
        smtp_pass=(os.getenv("SMTP_PASS") or "").strip(),
        smtp_from=(os.getenv("SMTP_FROM") or os.getenv("SMTP_USER") or "").strip(),
        smtp_tls=_env_bool("SMTP_TLS", "1"),
        log_level=(os.getenv("LOG_LEVEL") or defaults.log_level).strip().upper(),
        server_host=(os.getenv("SERVER_HOST") or defaults.server_host).strip(),
        server_port=int((os.getenv("SERVER_PORT") or str(defaults.server_port)).strip()),
    )
