# /file_mirror.py
"""
File Mirror
- Recursively mirrors a source folder into a destination folder.
- Destructive overwrite: existing destination folders are deleted and recreated,
  existing destination files are deleted before the copy. Nothing is merged.
- Excludes entries by exact basename at any depth (defaults: .vscode, node_modules).
- Optional gitignore-style ignore rules on top of the basename excludes.
- Every entry is handled on its own: a failure is logged and the rest of the
  tree is still mirrored.
- Failures are appended to file-move.log next to this program:
    [2025-01-31T12:00:00.000Z] ERROR: Error processing "<path>": <reason>
- Styled console output:
  - Copied green
  - Created light brown
  - Skipped orange
  - errors red
- Remembers last folders across runs via ~/.file_mirror/config.json

Usage
  pip install pathspec colorama
  python file_mirror.py
  python file_mirror.py --source "/src" --destination "/dst" --exclude dist --exclude .git
"""

from __future__ import annotations

import argparse
import datetime as dt
import enum
import json
import logging
import os
import shutil
import stat
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Protocol

from pathspec import PathSpec

try:
    from colorama import init as colorama_init  # type: ignore
except Exception:  # pragma: no cover
    colorama_init = None

LOGGER_NAME = "file_mirror"

APP_DIR = Path.home() / ".file_mirror"
CONFIG_PATH = APP_DIR / "config.json"

ERROR_LOG_NAME = "file-move.log"

DEFAULT_EXCLUDE_NAMES = (".vscode", "node_modules")


# -------------------------
# Console styling
# -------------------------

class Ansi:
    RESET = "\x1b[0m"
    RED = "\x1b[31m"
    GREEN = "\x1b[32m"
    ORANGE = "\x1b[38;5;208m"
    WHITE = "\x1b[97m"
    LIGHT_BROWN = "\x1b[33m"


ACTION_COLORS = {
    "Copied": Ansi.GREEN,
    "Created": Ansi.LIGHT_BROWN,
    "Skipped": Ansi.ORANGE,
}


def _supports_color(stream) -> bool:
    try:
        return hasattr(stream, "isatty") and stream.isatty()
    except Exception:
        return False


class ColorizingFormatter(logging.Formatter):
    def __init__(self, use_color: bool, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.use_color:
            return base

        if record.levelno >= logging.ERROR:
            return f"{Ansi.RED}{base}{Ansi.RESET}"

        action = getattr(record, "action", None)
        is_dir = getattr(record, "is_dir", None)
        path_text = getattr(record, "path_text", None)

        if action and action in base:
            action_color = ACTION_COLORS.get(action, "")
            base = base.replace(action, f"{action_color}{action}{Ansi.RESET}", 1)

        if path_text and path_text in base:
            pcolor = Ansi.LIGHT_BROWN if is_dir else Ansi.WHITE
            base = base.replace(path_text, f"{pcolor}{path_text}{Ansi.RESET}")

        return base


def _today_log_name(prefix: str = "file_mirror") -> str:
    return f"{prefix}_{dt.date.today().isoformat()}.log"


def setup_logger(log_dir: Optional[Path] = None) -> logging.Logger:
    """Console logger, plus a plain per-day log file when ``log_dir`` is given."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    if logger.handlers:
        return logger

    if colorama_init:
        colorama_init()

    fmt = "%(asctime)s | %(levelname)s | %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.INFO)
    ch.setFormatter(ColorizingFormatter(use_color=_supports_color(sys.stdout), fmt=fmt, datefmt=datefmt))
    logger.addHandler(ch)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / _today_log_name()
        fh = logging.FileHandler(log_path, encoding="utf-8")
        fh.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        fh.setLevel(logging.INFO)
        logger.addHandler(fh)
        logger.info("Logging to: %s", log_path)

    return logger


def log_action(
    logger: logging.Logger,
    action: str,
    message: str,
    path: Optional[Path] = None,
    is_dir: Optional[bool] = None,
    level: int = logging.INFO,
) -> None:
    extra = {"action": action}
    if path is not None:
        extra["path_text"] = str(path)
        extra["is_dir"] = bool(is_dir)
    logger.log(level, message, extra=extra)


# -------------------------
# Error log
# -------------------------

def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def iso_timestamp(when: Optional[dt.datetime] = None) -> str:
    """UTC ISO-8601 with milliseconds and a ``Z`` suffix, e.g. ``2025-01-31T12:00:00.000Z``."""
    when = (when or _utc_now()).astimezone(dt.timezone.utc)
    return when.strftime("%Y-%m-%dT%H:%M:%S.") + f"{when.microsecond // 1000:03d}Z"


def format_error_line(message: str, when: Optional[dt.datetime] = None) -> str:
    return f"[{iso_timestamp(when)}] ERROR: {message}\n"


def program_dir() -> Path:
    """Directory of the running script (``sys.argv[0]``), else of this module."""
    launched = sys.argv[0] if sys.argv else ""
    if launched and launched not in ("-c", "-m") and os.path.isfile(launched):
        return Path(os.path.realpath(launched)).parent
    return Path(os.path.realpath(__file__)).parent


def default_error_log_path() -> Path:
    return program_dir() / ERROR_LOG_NAME


class ErrorRecorder(Protocol):
    def record(self, message: str) -> None: ...


class ErrorLog:
    """
    Append-only error log. One line per record, file opened per append.
    A failed append goes to the fallback stream instead and is never raised.
    """

    def __init__(self, path: Optional[Path] = None, fallback=None):
        self.path = Path(path) if path is not None else default_error_log_path()
        self.fallback = fallback
        self._guard = threading.Lock()

    def record(self, message: str) -> None:
        line = format_error_line(message)
        with self._guard:
            try:
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                self._write_fallback(line, e)

    def _write_fallback(self, line: str, error: OSError) -> None:
        stream = self.fallback if self.fallback is not None else sys.stderr
        try:
            stream.write(line)
            stream.write(f"(could not append to {self.path}: {error})\n")
        except (OSError, ValueError):
            pass


class MemoryErrorLog:
    def __init__(self):
        self.records: list[str] = []

    def record(self, message: str) -> None:
        self.records.append(message)


# -------------------------
# Config / CLI
# -------------------------

@dataclass(frozen=True)
class AppConfig:
    source_dir: Path
    destination_dir: Path
    exclude_names: tuple[str, ...]
    ignore_patterns: tuple[str, ...] = ()
    error_log_path: Optional[Path] = None
    log_dir: Optional[Path] = None


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Mirror one folder into another, replacing whatever is already there.")
    p.add_argument("--source", type=str, default=None, help="Folder to copy from.")
    p.add_argument("--destination", type=str, default=None, help="Folder to copy into (created if missing).")
    p.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="NAME",
        help="Basename to skip at any depth. Repeatable.",
    )
    p.add_argument(
        "--no-default-excludes",
        action="store_true",
        help=f"Do not start from the saved/default excludes ({', '.join(DEFAULT_EXCLUDE_NAMES)}).",
    )
    p.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="PATTERN",
        help="gitignore-style pattern relative to the source folder. Repeatable.",
    )
    p.add_argument("--error-log", type=str, default=None, help=f"Error log file (default: {ERROR_LOG_NAME} next to the running program).")
    p.add_argument("--log-dir", type=str, default=None, help="Directory for a full per-day run log.")
    return p.parse_args(argv)


def prompt_for_path(label: str, default: Optional[Path] = None) -> Path:
    while True:
        hint = f" [{default}]" if default else ""
        raw = input(f"{label}{hint}: ").strip().strip('"')
        if not raw and default:
            return default
        if raw:
            return Path(raw)
        print("Please enter a non-empty path.")


def load_config_file() -> dict:
    try:
        if CONFIG_PATH.exists():
            data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                return data
    except (OSError, ValueError):
        pass
    return {}


def save_config_file(cfg: AppConfig) -> None:
    APP_DIR.mkdir(parents=True, exist_ok=True)
    payload = {
        "source": str(cfg.source_dir),
        "destination": str(cfg.destination_dir),
        "exclude": list(cfg.exclude_names),
        "ignore": list(cfg.ignore_patterns),
    }
    if cfg.error_log_path is not None:
        payload["error_log"] = str(cfg.error_log_path)
    if cfg.log_dir is not None:
        payload["log_dir"] = str(cfg.log_dir)
    CONFIG_PATH.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def _unique(items: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for item in items:
        if item:
            seen.setdefault(item, None)
    return tuple(seen)


def _saved_names(saved: dict, key: str, default: Iterable[str]) -> list[str]:
    value = saved.get(key)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return value
    return list(default)


def build_effective_config(args: argparse.Namespace) -> AppConfig:
    saved = load_config_file()

    saved_source = Path(saved["source"]) if "source" in saved else None
    saved_destination = Path(saved["destination"]) if "destination" in saved else None
    saved_excludes = _saved_names(saved, "exclude", DEFAULT_EXCLUDE_NAMES)
    saved_ignore = _saved_names(saved, "ignore", ())
    saved_error_log = Path(saved["error_log"]) if "error_log" in saved else None
    saved_log_dir = Path(saved["log_dir"]) if "log_dir" in saved else None

    source = Path(args.source) if args.source else saved_source
    destination = Path(args.destination) if args.destination else saved_destination

    base_excludes = [] if args.no_default_excludes else saved_excludes
    exclude_names = _unique([*base_excludes, *args.exclude])
    ignore_patterns = _unique(args.ignore) if args.ignore else _unique(saved_ignore)

    error_log_path = Path(args.error_log) if args.error_log else saved_error_log
    log_dir = Path(args.log_dir) if args.log_dir else saved_log_dir

    if source is None:
        source = prompt_for_path("Source folder", saved_source)
    if destination is None:
        destination = prompt_for_path("Destination folder", saved_destination)

    return AppConfig(
        source_dir=source,
        destination_dir=destination,
        exclude_names=exclude_names,
        ignore_patterns=ignore_patterns,
        error_log_path=error_log_path,
        log_dir=log_dir,
    )


# -------------------------
# Ignore + filesystem helpers
# -------------------------

class IgnoreMatcher:
    def __init__(self, source_root: Path, patterns: Iterable[str]):
        self.source_root = Path(source_root)
        self.spec = PathSpec.from_lines("gitwildmatch", list(patterns))

    def is_ignored(self, path: Path, is_dir: bool = False) -> bool:
        try:
            rel = path.relative_to(self.source_root)
        except ValueError:
            return False
        rel_posix = rel.as_posix()
        if is_dir and not rel_posix.endswith("/"):
            rel_posix += "/"
        return self.spec.match_file(rel_posix)


def _is_subpath(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
        return True
    except ValueError:
        return False


def _real_path(path: Path) -> Path:
    # os.path.realpath does not raise on symlink loops, Path.resolve does before 3.13
    return Path(os.path.realpath(path))


def remove_existing(path: Path) -> None:
    """Delete whatever sits at ``path``: a whole directory tree, a file, or a link."""
    if not os.path.lexists(path):
        return
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


# -------------------------
# Mirror engine
# -------------------------

class MirrorError(Exception):
    pass


class MirrorOutcome(enum.Enum):
    SKIPPED = "skipped"
    COPIED_FILE = "copied"
    CREATED_DIRECTORY = "created"
    FAILED = "failed"


@dataclass(frozen=True)
class EntryResult:
    outcome: MirrorOutcome
    source: Path
    destination: Path
    error: Optional[str] = None


@dataclass
class MirrorReport:
    source: Path
    destination: Path
    started_at: dt.datetime
    finished_at: Optional[dt.datetime] = None
    aborted: bool = False
    cancelled: bool = False
    entries: list[EntryResult] = field(default_factory=list)

    @property
    def failures(self) -> list[EntryResult]:
        return [e for e in self.entries if e.outcome is MirrorOutcome.FAILED]

    def counts(self) -> dict[MirrorOutcome, int]:
        totals = {outcome: 0 for outcome in MirrorOutcome}
        for entry in self.entries:
            totals[entry.outcome] += 1
        return totals


class MirrorEngine:
    """
    Walks the source tree with an explicit stack of (source, destination) pairs.

    A directory's destination is cleared and recreated before any of its children
    are pushed, and children are popped in listing order before the directory's
    later siblings. Each pair is visited inside its own error boundary.
    """

    def __init__(
        self,
        source_root: Path,
        destination_root: Path,
        exclude_names: Iterable[str] = (),
        error_log: Optional[ErrorRecorder] = None,
        logger: Optional[logging.Logger] = None,
        ignore: Optional[IgnoreMatcher] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        self.source_root = Path(source_root)
        self.destination_root = Path(destination_root)
        self.exclude_names = frozenset(exclude_names)
        self.error_log = error_log if error_log is not None else ErrorLog()
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.ignore = ignore
        self.stop_event = stop_event
        self._nested_destination: Optional[Path] = None
        self._enclosed_source: Optional[Path] = None

    # ---- reporting

    def _report_error(self, message: str, path: Optional[Path] = None, is_dir: bool = False) -> None:
        log_action(self.logger, "Error", message, path=path, is_dir=is_dir, level=logging.ERROR)
        self.error_log.record(message)

    def _skipped(self, source: Path, destination: Path) -> EntryResult:
        log_action(self.logger, "Skipped", f"Skipped: {source}", path=source)
        return EntryResult(MirrorOutcome.SKIPPED, source, destination)

    def _failed(self, source: Path, destination: Path, error: Exception) -> EntryResult:
        message = f'Error processing "{source}": {error}'
        self._report_error(message, path=source)
        return EntryResult(MirrorOutcome.FAILED, source, destination, error=str(error))

    # ---- roots

    def prepare_roots(self) -> bool:
        """Check the source root and create the destination root. False aborts the run."""
        try:
            os.stat(self.source_root)
        except (FileNotFoundError, NotADirectoryError):
            self._report_error(f'Source directory "{self.source_root}" does not exist.', path=self.source_root, is_dir=True)
            return False
        except OSError as e:
            self._report_error(
                f'Could not access source directory "{self.source_root}": {e}',
                path=self.source_root,
                is_dir=True,
            )
            return False

        source_real = _real_path(self.source_root)
        destination_real = _real_path(self.destination_root)
        if source_real == destination_real:
            self._report_error(
                f'Source and destination are the same directory: "{self.source_root}"',
                path=self.source_root,
                is_dir=True,
            )
            return False

        try:
            self.destination_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._report_error(
                f'Could not create destination directory "{self.destination_root}": {e}',
                path=self.destination_root,
                is_dir=True,
            )
            return False

        if _is_subpath(destination_real, source_real):
            self._nested_destination = destination_real
        if _is_subpath(source_real, destination_real):
            self._enclosed_source = source_real
        return True

    def _is_nested_destination(self, source: Path) -> bool:
        nested = self._nested_destination
        return nested is not None and source.name == nested.name and _real_path(source) == nested

    def _check_removable(self, destination: Path) -> None:
        enclosed = self._enclosed_source
        if enclosed is not None and _is_subpath(enclosed, _real_path(destination)):
            raise MirrorError(f'refusing to replace "{destination}" because it contains the source directory')

    # ---- traversal

    def visit(self, source: Path, destination: Path) -> tuple[EntryResult, list[tuple[Path, Path]]]:
        """Mirror one entry. Returns its result and the child pairs still to visit."""
        if source.name in self.exclude_names or self._is_nested_destination(source):
            return self._skipped(source, destination), []

        try:
            is_dir = stat.S_ISDIR(os.stat(source).st_mode)
            if self.ignore is not None and self.ignore.is_ignored(source, is_dir=is_dir):
                return self._skipped(source, destination), []

            self._check_removable(destination)
            remove_existing(destination)

            if is_dir:
                destination.mkdir()
                log_action(self.logger, "Created", f"Created: {destination}", path=destination, is_dir=True)
                children = [(source / name, destination / name) for name in sorted(os.listdir(source))]
                return EntryResult(MirrorOutcome.CREATED_DIRECTORY, source, destination), children

            shutil.copyfile(source, destination)
            log_action(self.logger, "Copied", f"Copied: {source} -> {destination}", path=destination)
            return EntryResult(MirrorOutcome.COPIED_FILE, source, destination), []
        except (OSError, MirrorError) as e:
            return self._failed(source, destination, e), []

    def run(self) -> MirrorReport:
        report = MirrorReport(source=self.source_root, destination=self.destination_root, started_at=_utc_now())
        self.logger.info(
            "MIRROR: start %s | %s -> %s",
            iso_timestamp(report.started_at),
            self.source_root,
            self.destination_root,
        )

        if not self.prepare_roots():
            report.aborted = True
            return self._finish(report)

        try:
            names = sorted(os.listdir(self.source_root))
        except OSError as e:
            self._report_error(f'Error reading source directory "{self.source_root}": {e}', path=self.source_root, is_dir=True)
            return self._finish(report)

        pending = [(self.source_root / name, self.destination_root / name) for name in reversed(names)]
        while pending:
            if self.stop_event is not None and self.stop_event.is_set():
                report.cancelled = True
                self.logger.warning("MIRROR: cancelled with %d entries pending", len(pending))
                break
            source, destination = pending.pop()
            result, children = self.visit(source, destination)
            report.entries.append(result)
            pending.extend(reversed(children))

        return self._finish(report)

    def _finish(self, report: MirrorReport) -> MirrorReport:
        report.finished_at = _utc_now()
        counts = report.counts()
        self.logger.info(
            "MIRROR: done %s | copied=%d created=%d skipped=%d failed=%d",
            iso_timestamp(report.finished_at),
            counts[MirrorOutcome.COPIED_FILE],
            counts[MirrorOutcome.CREATED_DIRECTORY],
            counts[MirrorOutcome.SKIPPED],
            counts[MirrorOutcome.FAILED],
        )
        return report


def mirror(
    source: Path,
    destination: Path,
    exclude_names: Iterable[str] = (),
    *,
    error_log: Optional[ErrorRecorder] = None,
    logger: Optional[logging.Logger] = None,
    ignore_patterns: Optional[Iterable[str]] = None,
    stop_event: Optional[threading.Event] = None,
) -> MirrorReport:
    """
    Mirror ``source`` into ``destination``, skipping every entry whose basename is
    in ``exclude_names``. Existing destination entries are replaced, never merged.

    Per-entry failures are logged and the run continues. Only a missing source
    (or an unusable root) ends the run early, with ``report.aborted`` set and the
    destination left untouched.
    """
    source = Path(source)
    patterns = list(ignore_patterns or ())
    ignore = IgnoreMatcher(source, patterns) if patterns else None
    engine = MirrorEngine(
        source,
        Path(destination),
        exclude_names,
        error_log=error_log,
        logger=logger,
        ignore=ignore,
        stop_event=stop_event,
    )
    return engine.run()


# -------------------------
# Main
# -------------------------

def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    cfg = build_effective_config(args)

    logger = setup_logger(cfg.log_dir.expanduser() if cfg.log_dir else None)
    error_log = ErrorLog(cfg.error_log_path.expanduser() if cfg.error_log_path else None)

    source = cfg.source_dir.expanduser()
    destination = cfg.destination_dir.expanduser()
    logger.info("Source     : %s", source)
    logger.info("Destination: %s", destination)
    logger.info("Excluding  : %s", ", ".join(cfg.exclude_names) or "(nothing)")
    logger.info("Error log  : %s", error_log.path)

    report = mirror(
        source,
        destination,
        cfg.exclude_names,
        error_log=error_log,
        logger=logger,
        ignore_patterns=cfg.ignore_patterns,
    )
    if report.aborted:
        return 2

    try:
        save_config_file(cfg)
        logger.info("Saved config: %s", CONFIG_PATH)
    except OSError as e:
        logger.error("Could not save config: %s", e)

    if report.failures:
        logger.warning("%d entries failed, see %s", len(report.failures), error_log.path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
