from __future__ import annotations

import json
import logging
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import file_mirror


class ConfigTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)
        app_dir = self.tmp / "app"
        patches = [
            mock.patch("file_mirror.APP_DIR", app_dir),
            mock.patch("file_mirror.CONFIG_PATH", app_dir / "config.json"),
        ]
        for patch in patches:
            patch.start()
            self.addCleanup(patch.stop)
        self.config_path = app_dir / "config.json"
        self.addCleanup(self._drop_console_handlers)

    def _drop_console_handlers(self) -> None:
        logger = logging.getLogger(file_mirror.LOGGER_NAME)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def save(self, payload: dict) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(json.dumps(payload), encoding="utf-8")


class BuildConfigTests(ConfigTestCase):
    def test_cli_flags_win_and_default_excludes_apply(self) -> None:
        args = file_mirror.parse_args(["--source", "/a", "--destination", "/b", "--exclude", "dist"])

        cfg = file_mirror.build_effective_config(args)

        self.assertEqual(cfg.source_dir, Path("/a"))
        self.assertEqual(cfg.destination_dir, Path("/b"))
        self.assertEqual(cfg.exclude_names, (".vscode", "node_modules", "dist"))
        self.assertEqual(cfg.ignore_patterns, ())
        self.assertIsNone(cfg.error_log_path)

    def test_no_default_excludes(self) -> None:
        args = file_mirror.parse_args(
            ["--source", "/a", "--destination", "/b", "--no-default-excludes", "--exclude", ".git", "--exclude", ".git"]
        )

        cfg = file_mirror.build_effective_config(args)

        self.assertEqual(cfg.exclude_names, (".git",))

    def test_saved_config_fills_missing_values(self) -> None:
        self.save(
            {
                "source": "/saved/src",
                "destination": "/saved/dst",
                "exclude": ["build"],
                "ignore": ["*.tmp"],
                "error_log": "/logs/errors.log",
            }
        )

        cfg = file_mirror.build_effective_config(file_mirror.parse_args(["--destination", "/other"]))

        self.assertEqual(cfg.source_dir, Path("/saved/src"))
        self.assertEqual(cfg.destination_dir, Path("/other"))
        self.assertEqual(cfg.exclude_names, ("build",))
        self.assertEqual(cfg.ignore_patterns, ("*.tmp",))
        self.assertEqual(cfg.error_log_path, Path("/logs/errors.log"))

    def test_malformed_saved_lists_fall_back_to_defaults(self) -> None:
        self.save({"exclude": "dist", "ignore": ["*.tmp", 3]})

        cfg = file_mirror.build_effective_config(file_mirror.parse_args(["--source", "/a", "--destination", "/b"]))

        self.assertEqual(cfg.exclude_names, (".vscode", "node_modules"))
        self.assertEqual(cfg.ignore_patterns, ())

    def test_broken_config_file_is_ignored(self) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text("{not json", encoding="utf-8")

        self.assertEqual(file_mirror.load_config_file(), {})

    def test_missing_folders_are_prompted_for(self) -> None:
        answers = iter(["", "/typed/src", '"/typed/dst"'])
        with mock.patch("builtins.input", side_effect=lambda _prompt: next(answers)), mock.patch("builtins.print"):
            cfg = file_mirror.build_effective_config(file_mirror.parse_args([]))

        self.assertEqual(cfg.source_dir, Path("/typed/src"))
        self.assertEqual(cfg.destination_dir, Path("/typed/dst"))


class MainTests(ConfigTestCase):
    def test_main_mirrors_and_saves_config(self) -> None:
        src = self.tmp / "src"
        dst = self.tmp / "dst"
        (src / "node_modules").mkdir(parents=True)
        (src / "node_modules" / "x.js").write_text("x", encoding="utf-8")
        (src / "readme.md").write_text("hello", encoding="utf-8")
        error_log = self.tmp / "errors.log"

        code = file_mirror.main(["--source", str(src), "--destination", str(dst), "--error-log", str(error_log)])

        self.assertEqual(code, 0)
        self.assertEqual((dst / "readme.md").read_text(encoding="utf-8"), "hello")
        self.assertFalse((dst / "node_modules").exists())
        self.assertFalse(error_log.exists())
        saved = json.loads(self.config_path.read_text(encoding="utf-8"))
        self.assertEqual(saved["source"], str(src))
        self.assertEqual(saved["destination"], str(dst))
        self.assertEqual(saved["exclude"], [".vscode", "node_modules"])

    def test_main_returns_two_when_source_is_missing(self) -> None:
        dst = self.tmp / "dst"
        error_log = self.tmp / "errors.log"

        code = file_mirror.main(
            ["--source", str(self.tmp / "missing"), "--destination", str(dst), "--error-log", str(error_log)]
        )

        self.assertEqual(code, 2)
        self.assertFalse(dst.exists())
        self.assertFalse(self.config_path.exists())
        self.assertEqual(len(error_log.read_text(encoding="utf-8").splitlines()), 1)


if __name__ == "__main__":
    unittest.main()
