"""Tests for configuration system."""

import unittest
from io import BytesIO

from mcpy.compare import ComparePolicy
from mcpy.config import Config, ConfigError, Settings, ValidationError
from mcpy.config.remotes import LocalConfig, ProxyConfig, S3Config
from mcpy.copy import OverlapPolicy
from tests.fixtures.test_data import TestDataFixtures


class TestConfigSystem(unittest.TestCase):
    """Test cases for the configuration system."""

    def setUp(self):
        """Set up test fixtures."""
        self.sample_config_data = TestDataFixtures.create_mock_toml_config()

    def create_config_file(self, data):
        """Create a temporary TOML configuration file."""
        toml_content = ""
        for section, values in data.items():
            toml_content += f"[{section}]\n"
            for key, value in values.items():
                if isinstance(value, bool):
                    toml_content += f"{key} = {str(value).lower()}\n"
                elif isinstance(value, (int, float)):
                    toml_content += f"{key} = {value}\n"
                else:
                    toml_content += f'{key} = "{value}"\n'
            toml_content += "\n"

        return BytesIO(toml_content.encode())

    def test_config_from_file_success(self):
        """Test successful configuration loading from file."""
        config = Config.from_file(self.create_config_file(self.sample_config_data))

        self.assertIsInstance(config, Config)
        self.assertEqual(sorted(config.remotes), ["aws", "home", "play"])
        self.assertEqual(config.get_warnings(), [])

    def test_settings_are_loaded(self):
        config = Config.from_file(self.create_config_file(self.sample_config_data))

        self.assertEqual(config.settings.workers, 8)
        self.assertEqual(config.settings.retries, 3)
        self.assertEqual(config.settings.mirror_compare, ComparePolicy.SIZE)
        self.assertEqual(config.settings.diff_compare, ComparePolicy.SIZE)
        self.assertEqual(config.settings.overlap, OverlapPolicy.LAST_WINS)

        options = config.settings.copy_options(mirror=True)
        self.assertEqual(options.workers, 8)
        self.assertTrue(options.mirror)
        self.assertEqual(options.overlap, OverlapPolicy.LAST_WINS)

    def test_default_settings(self):
        config = Config()
        self.assertEqual(config.settings.workers, 4)
        self.assertEqual(config.settings.mirror_compare, ComparePolicy.SIZE_AND_MTIME)
        self.assertEqual(config.remotes, {})

    def test_invalid_settings(self):
        with self.assertRaises(ValidationError):
            Config.from_dict({"settings": {"workers": 0}})
        with self.assertRaises(ValidationError):
            Config.from_dict({"settings": {"overlap": "random"}})

    def test_config_from_file_none(self):
        """Test configuration loading with None file."""
        with self.assertRaises(ConfigError):
            Config.from_file(None)

    def test_config_from_file_invalid_toml(self):
        """Test configuration loading with invalid TOML."""
        with self.assertRaises(ConfigError):
            Config.from_file(BytesIO(b"invalid toml content [[["))

    def test_config_missing_type(self):
        """Test configuration with missing type field."""
        config_data = {
            "test": {"url": "example.com"},
            "valid": {"type": "local", "path": "/srv"},
        }
        config = Config.from_file(self.create_config_file(config_data))
        warnings = config.get_warnings()

        self.assertEqual(len(warnings), 1)
        self.assertIn("missing required 'type' field", warnings[0])
        self.assertIn("valid", config.remotes)
        self.assertNotIn("test", config.remotes)

    def test_config_unknown_type(self):
        """Test configuration with unknown type."""
        config_data = {
            "test": {"type": "ftp"},
            "valid": {"type": "local", "path": "/srv"},
        }
        config = Config.from_file(self.create_config_file(config_data))
        warnings = config.get_warnings()

        self.assertEqual(len(warnings), 1)
        self.assertIn("Unknown remote type 'ftp'", warnings[0])
        self.assertNotIn("test", config.remotes)

    def test_invalid_remote_becomes_warning(self):
        config = Config.from_dict({"half": {"type": "s3", "aws_access_key_id": "only-id"}})
        self.assertEqual(config.remotes, {})
        self.assertIn("Invalid configuration for remote 'half'", config.get_warnings()[0])

    def test_every_table_but_settings_is_an_alias(self):
        config = Config.from_dict(self.sample_config_data)
        types = {name: remote.type for name, remote in config.remotes.items()}
        self.assertEqual(types, {"home": "local", "play": "s3", "aws": "s3"})


class TestAliasResolution(unittest.TestCase):
    """Alias expansion and remote matching."""

    def setUp(self):
        self.config = Config.from_dict(TestDataFixtures.create_mock_toml_config())

    def test_expand_endpoint_alias(self):
        self.assertEqual(self.config.expand("play/bucket/key"), "https://play.min.io/bucket/key")
        self.assertEqual(self.config.expand("play"), "https://play.min.io")
        self.assertEqual(self.config.expand("play/bucket/..."), "https://play.min.io/bucket/...")

    def test_expand_scheme_alias(self):
        self.assertEqual(self.config.expand("aws/bucket/key"), "s3://bucket/key")

    def test_expand_local_alias(self):
        self.assertEqual(self.config.expand("home/docs/a.txt"), "/home/me/docs/a.txt")

    def test_unknown_alias_and_urls_unchanged(self):
        self.assertEqual(self.config.expand("nowhere/x"), "nowhere/x")
        self.assertEqual(self.config.expand("s3://bucket/x"), "s3://bucket/x")
        self.assertEqual(self.config.expand("/play/x"), "/play/x")

    def test_remote_for(self):
        self.assertEqual(self.config.remote_for("https://play.min.io/bucket").name, "play")
        self.assertEqual(self.config.remote_for("s3://bucket/key").name, "aws")
        self.assertIsNone(self.config.remote_for("https://play.min.io.evil/bucket"))
        self.assertIsNone(self.config.remote_for("/home/me/docs"))

    def test_resolve(self):
        url, remote = self.config.resolve("play/bucket")
        self.assertEqual(url, "https://play.min.io/bucket")
        self.assertEqual(remote.aws_access_key_id, "access")


class TestRemoteConfigs(unittest.TestCase):
    """Test cases for remote-specific configurations."""

    def test_local_config(self):
        config = LocalConfig.from_dict("test", {"type": "local", "path": "/data"})
        self.assertEqual(config.name, "test")
        self.assertEqual(config.path, "/data")
        config.validate()

    def test_local_config_requires_path(self):
        with self.assertRaises(ValidationError):
            LocalConfig.from_dict("test", {"type": "local"})

    def test_local_config_wrong_type(self):
        config = LocalConfig(name="test", type="wrong")
        with self.assertRaises(ValidationError):
            config.validate()

    def test_s3_config_with_proxy(self):
        data = {
            "type": "s3",
            "url": "http://localhost:9000",
            "proxy": {"host": "proxy.example.com", "port": 1080},
        }
        config = S3Config.from_dict("minio", data)
        config.validate()
        self.assertIsInstance(config.proxy, ProxyConfig)
        self.assertEqual(config.proxy.port, 1080)

    def test_s3_config_bad_url(self):
        config = S3Config.from_dict("bad", {"type": "s3", "url": "ftp://host"})
        with self.assertRaises(ValidationError):
            config.validate()

    def test_proxy_invalid_port(self):
        with self.assertRaises(ValidationError):
            ProxyConfig(host="proxy", port=70000).validate()

    def test_settings_validate(self):
        with self.assertRaises(ValidationError):
            Settings(retries=-1).validate()


if __name__ == "__main__":
    unittest.main()
