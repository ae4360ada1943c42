from __future__ import annotations
import logging, datetime, pathlib, os

__all__ = [
    "setup_logging",
]

DEFAULT_FMT = "%(asctime)s  %(levelname)-8s  %(name)s ▶  %(message)s"


def setup_logging(level: int | str = logging.WARNING, *,
                  log_dir: str | os.PathLike | None = None,
                  run_id: str | None = None) -> pathlib.Path | None:
    """Hook a console handler (and a file handler when *log_dir* is given) on the root logger.

    Returns the path of the log file, or ``None`` when logging only to the
    console. Subsequent calls become NO-OPs so library code can call this
    safely without re-initialising handlers.
    """
    if logging.getLogger().handlers:      # already configured → skip
        return None

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_file = None
    if log_dir is not None:
        ts = run_id or datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        log_dir = pathlib.Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"curtain_{ts}.log"
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=DEFAULT_FMT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )
    return log_file
