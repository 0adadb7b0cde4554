"""Dated, append-only transcript of network calls and persistence writes."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from pathlib import Path

from .logging import setup_logger

TRANSCRIPT_DATE_FORMAT = "%m-%d-%Y"
TIMESTAMP_FORMAT = "%A, %B %d %Y, %I:%M:%S %p"
SEPARATOR = "-" * 27
BLOCK_FORMAT = f"{SEPARATOR}\ntimestamp: %(asctime)s\n%(message)s\n{SEPARATOR}"

_TRANSCRIPT_NAME = re.compile(r"^(\d{2}-\d{2}-\d{4})\.txt$")

logger = logging.getLogger(__name__)


def transcript_path(log_dir: Path, day: date | None = None) -> Path:
    """Return the transcript file used for ``day`` (today by default)."""

    day = day or date.today()
    return log_dir / f"{day.strftime(TRANSCRIPT_DATE_FORMAT)}.txt"


def prune_transcripts(log_dir: Path, retention_days: int = 3, today: date | None = None) -> list[Path]:
    """Delete transcripts dated ``retention_days`` or more days before ``today``.

    Files that do not follow the ``MM-DD-YYYY.txt`` naming scheme are left alone.

    Returns:
        Paths that were removed.
    """

    today = today or date.today()
    cutoff = today - timedelta(days=retention_days)
    removed: list[Path] = []

    if not log_dir.is_dir():
        return removed

    for candidate in sorted(log_dir.iterdir()):
        match = _TRANSCRIPT_NAME.match(candidate.name)
        if match is None or not candidate.is_file():
            continue
        stamp = datetime.strptime(match.group(1), TRANSCRIPT_DATE_FORMAT).date()
        if stamp <= cutoff:
            candidate.unlink()
            removed.append(candidate)
            logger.debug("Pruned transcript %s", candidate)

    return removed


class RunTranscript:
    """Append network and persistence events to the day's transcript file.

    Entries go through a dedicated logger whose ``FileHandler`` owns the dated
    file. When ``echo`` is enabled every entry is also emitted on the
    ``feasibility_etl.transcript`` logger so it reaches the console. Call
    :meth:`close` (or use the transcript as a context manager) to release the
    file.
    """

    def __init__(self, path: Path, *, echo: bool = False) -> None:
        self.path = path
        self.echo = echo
        self._echo_logger = setup_logger("feasibility_etl.transcript", context={"stage": "transcript"})

        self._handler = logging.FileHandler(path, encoding="utf-8", delay=True)
        self._handler.setFormatter(logging.Formatter(BLOCK_FORMAT, datefmt=TIMESTAMP_FORMAT))
        self._file_logger = logging.getLogger(f"feasibility_etl.transcript.file.{id(self):x}")
        self._file_logger.setLevel(logging.INFO)
        self._file_logger.propagate = False
        for stale in list(self._file_logger.handlers):
            self._file_logger.removeHandler(stale)
        self._file_logger.addHandler(self._handler)

    @classmethod
    def for_today(cls, log_dir: Path, *, echo: bool = False) -> RunTranscript:
        log_dir.mkdir(parents=True, exist_ok=True)
        return cls(transcript_path(log_dir), echo=echo)

    def __enter__(self) -> RunTranscript:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._file_logger.removeHandler(self._handler)
        self._handler.close()

    def record_network(self, url: str, status: int | None) -> None:
        """Record one HTTP call; ``status`` is ``None`` when no response arrived."""

        status_text = "no response" if status is None else str(status)
        self._file_logger.info("URL: %s\nstatus: %s", url, status_text)
        if self.echo:
            level = logging.INFO if status is not None and 200 <= status < 300 else logging.WARNING
            self._echo_logger.log(level, "%s    %s", url, status_text)

    def record_write(self, target: str, key: str, error: str | None = None) -> None:
        """Record one persistence write against ``target`` for row ``key``."""

        if error is None:
            self._file_logger.info("query: INSERT INTO %s (%s)\nsuccess: true", target, key)
        else:
            self._file_logger.info(
                "query: INSERT INTO %s (%s)\nsuccess: false\nerror: %s", target, key, error
            )
        if self.echo:
            if error is None:
                self._echo_logger.info("INSERT INTO %s (%s) succeeded", target, key)
            else:
                self._echo_logger.warning("INSERT INTO %s (%s) failed: %s", target, key, error)
