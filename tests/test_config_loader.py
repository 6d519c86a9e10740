import logging
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from feedpub.config import (  # noqa: E402
    DEFAULT_CONFIG,
    DEFAULT_PUSH_COMMAND,
    REQUIRED_PUBLISH_KEYS,
    ConfigLoader,
    get_config_value,
    missing_required_settings,
    parse_flag,
    parse_log_level,
    parse_publish_settings,
    read_yaml,
)


class ConfigLoaderTests(unittest.TestCase):
    def test_precedence_and_sources(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir)
            (data_dir / "config.yaml").write_text(
                "\n".join(
                    [
                        "publish:",
                        "  max_clients: 4",
                        "  registry:",
                        "    max_push_attempts: 5",
                    ]
                ),
                encoding="utf-8",
            )
            run_config = data_dir / "run.yaml"
            run_config.write_text(
                "\n".join(
                    [
                        "publish:",
                        "  build_id: 42",
                        "  max_clients: 8",
                    ]
                ),
                encoding="utf-8",
            )

            loader = ConfigLoader(data_dir=data_dir)
            resolution = loader.resolve(
                config_path=run_config,
                overrides={"publish": {"internal_build": True}},
            )

            publish = resolution.effective["publish"]
            sources = resolution.sources["publish"]
            self.assertEqual(publish["max_clients"], 8)
            self.assertEqual(sources["max_clients"], "file")
            self.assertEqual(publish["registry"]["max_push_attempts"], 5)
            self.assertEqual(sources["registry"]["max_push_attempts"], "global")
            self.assertEqual(publish["registry"]["retry_delay_s"], 3)
            self.assertEqual(sources["registry"]["retry_delay_s"], "default")
            self.assertTrue(publish["internal_build"])
            self.assertEqual(sources["internal_build"], "override")
            self.assertEqual(publish["build_id"], 42)

    def test_data_dir_from_environment(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch.dict(os.environ, {"FEEDPUB_HOME": temp_dir}):
                loader = ConfigLoader()
            self.assertEqual(loader.data_dir, Path(temp_dir))

    def test_resolve_does_not_mutate_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            loader = ConfigLoader(data_dir=Path(temp_dir))
            loader.resolve(overrides={"publish": {"max_clients": 2}})
        self.assertEqual(DEFAULT_CONFIG["publish"]["max_clients"], 16)

    def test_read_yaml_missing_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            self.assertEqual(read_yaml(Path(temp_dir) / "absent.yaml"), {})

    def test_read_yaml_invalid_file_raises(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "broken.yaml"
            path.write_text("publish: [unclosed", encoding="utf-8")
            with self.assertRaises(RuntimeError):
                read_yaml(path)

    def test_config_value_lookup(self) -> None:
        config = {"publish": {"registry": {"timeout_s": 30}}}
        self.assertEqual(get_config_value(config, "publish.registry.timeout_s"), 30)
        with self.assertRaises(KeyError):
            get_config_value(config, "publish.registry.retry_delay_s")


class PublishSettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = parse_publish_settings(DEFAULT_CONFIG)

        self.assertEqual(settings.max_clients, 16)
        self.assertFalse(settings.internal_build)
        self.assertFalse(settings.skip_safety_checks)
        self.assertFalse(settings.check_stable_on_non_isolated)
        self.assertEqual(settings.registry.max_push_attempts, 3)
        self.assertEqual(settings.registry.retry_delay_s, 3.0)
        self.assertEqual(settings.registry.push_command, DEFAULT_PUSH_COMMAND)
        self.assertTrue(settings.storage.pass_if_identical)
        self.assertIsNone(settings.package_assets_dir)
        self.assertIsNone(settings.build_id)

    def test_paths_and_build_id_are_converted(self) -> None:
        settings = parse_publish_settings(
            {"publish": {"build_id": "17", "package_assets_dir": "/tmp/packages", "blob_assets_dir": "/tmp/blobs"}}
        )

        self.assertEqual(settings.build_id, 17)
        self.assertEqual(settings.package_assets_dir, Path("/tmp/packages"))
        self.assertEqual(settings.blob_assets_dir, Path("/tmp/blobs"))

    def test_rejects_non_positive_bounds(self) -> None:
        with self.assertRaises(ValueError):
            parse_publish_settings({"publish": {"registry": {"max_push_attempts": 0}}})
        with self.assertRaises(ValueError):
            parse_publish_settings({"publish": {"max_clients": 0}})

    def test_quoted_flags_keep_their_meaning(self) -> None:
        settings = parse_publish_settings(
            {
                "publish": {
                    "internal_build": "true",
                    "skip_safety_checks": "false",
                    "check_stable_on_non_isolated": "False",
                    "storage": {"pass_if_identical": "no"},
                }
            }
        )

        self.assertTrue(settings.internal_build)
        self.assertFalse(settings.skip_safety_checks)
        self.assertFalse(settings.check_stable_on_non_isolated)
        self.assertFalse(settings.storage.pass_if_identical)

    def test_unrecognized_flag_value_is_rejected(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            parse_publish_settings({"publish": {"skip_safety_checks": "maybe"}})
        self.assertIn("publish.skip_safety_checks", str(ctx.exception))
        with self.assertRaises(ValueError):
            parse_publish_settings({"publish": {"storage": {"pass_if_identical": 2}}})

    def test_parse_flag(self) -> None:
        self.assertTrue(parse_flag(True, "x"))
        self.assertTrue(parse_flag(" YES ", "x"))
        self.assertFalse(parse_flag("0", "x"))
        with self.assertRaises(ValueError):
            parse_flag(None, "x")

    def test_log_level(self) -> None:
        self.assertEqual(parse_publish_settings(DEFAULT_CONFIG).log_level, logging.INFO)
        self.assertEqual(parse_publish_settings({"publish": {"log_level": "debug"}}).log_level, logging.DEBUG)
        self.assertEqual(parse_log_level(logging.WARNING), logging.WARNING)
        with self.assertRaises(ValueError):
            parse_log_level("chatty")

    def test_missing_required_settings(self) -> None:
        self.assertEqual(missing_required_settings(DEFAULT_CONFIG), list(REQUIRED_PUBLISH_KEYS))

        config = {
            "publish": {
                "build_id": 1,
                "package_assets_dir": "/p",
                "blob_assets_dir": "  ",
                "asset_registry": {"base_url": "https://assets.local"},
            }
        }
        self.assertEqual(missing_required_settings(config), ["publish.blob_assets_dir"])


if __name__ == "__main__":
    unittest.main()
