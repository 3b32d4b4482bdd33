"""Runtime settings, read from environment variables."""

import os
from dataclasses import dataclass

DEFAULT_DB_PATH = "lynx.db"
DEFAULT_SYNC_INTERVAL = 6 * 60 * 60  # 6 hours
DEFAULT_FETCH_TIMEOUT = 30.0
DEFAULT_ENRICHMENT_WORKERS = 8
DEFAULT_SINGLEFILE_BIN = "single-file"
DEFAULT_ARCHIVE_DIR = "archives"
DEFAULT_SUMMARY_MODEL = "claude-sonnet-4-5-20250929"


@dataclass
class Settings:
    db_path: str = DEFAULT_DB_PATH
    sync_interval: int = DEFAULT_SYNC_INTERVAL
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    enrichment_workers: int = DEFAULT_ENRICHMENT_WORKERS
    singlefile_bin: str = DEFAULT_SINGLEFILE_BIN
    archive_dir: str = DEFAULT_ARCHIVE_DIR
    summary_model: str = DEFAULT_SUMMARY_MODEL

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from LYNX_* environment variables."""
        env = os.environ
        return cls(
            db_path=env.get("LYNX_DB_PATH", DEFAULT_DB_PATH),
            sync_interval=int(env.get("LYNX_SYNC_INTERVAL", DEFAULT_SYNC_INTERVAL)),
            fetch_timeout=float(env.get("LYNX_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT)),
            enrichment_workers=int(
                env.get("LYNX_ENRICHMENT_WORKERS", DEFAULT_ENRICHMENT_WORKERS)
            ),
            singlefile_bin=env.get("LYNX_SINGLEFILE_BIN", DEFAULT_SINGLEFILE_BIN),
            archive_dir=env.get("LYNX_ARCHIVE_DIR", DEFAULT_ARCHIVE_DIR),
            summary_model=env.get("LYNX_SUMMARY_MODEL", DEFAULT_SUMMARY_MODEL),
        )
