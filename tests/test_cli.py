"""Tests for the assethost command line."""

import pytest
import yaml
from click.testing import CliRunner

import assethost.config as config_mod
from assethost.cli import cli
from assethost.lib.fingerprint import fingerprint

from conftest import JS_CONTENT

JS_KEY = f"{fingerprint(JS_CONTENT)}/javascripts/application.js"


@pytest.fixture
def config_file(tmp_path, public_dir, credentials_file):
    """Config using the local backend so publish runs without a network."""
    def _write(**overrides):
        data = {
            "bucket": "bucketname",
            "cname": "assethost.com",
            "public_path": str(public_dir),
            "credentials_path": str(credentials_file),
            "retry": {"attempts": 1, "backoff": 0},
            "store": {"backend": "local", "local_path": str(tmp_path / "bucket")},
        }
        data.update(overrides)
        path = tmp_path / "assethost.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestConfigFileOption:
    def test_sets_override(self, config_file):
        path = config_file()
        result = CliRunner().invoke(cli, ["-f", str(path), "host", "/images/image.png"])
        assert result.exit_code == 0
        assert config_mod._config_path_override == path

    def test_missing_config_file_errors(self):
        result = CliRunner().invoke(cli, ["-f", "/nonexistent/assethost.yaml", "host", "/a.js"])
        assert result.exit_code != 0

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "publish" in result.output
        assert config_mod._config_path_override is None


class TestPublishCommand:
    def test_publish(self, config_file, tmp_path):
        result = CliRunner().invoke(cli, ["-f", str(config_file()), "publish"])
        assert result.exit_code == 0, result.output
        assert "Uploaded 5 keys, 0 already present, 0 failed" in result.output
        assert (tmp_path / "bucket" / JS_KEY).read_bytes() == JS_CONTENT

    def test_second_publish_uploads_nothing(self, config_file):
        path = str(config_file())
        CliRunner().invoke(cli, ["-f", path, "publish"])
        result = CliRunner().invoke(cli, ["-f", path, "publish"])
        assert result.exit_code == 0
        assert "Uploaded 0 keys, 5 already present" in result.output

    def test_verbose(self, config_file):
        result = CliRunner().invoke(cli, ["-f", str(config_file()), "publish", "--verbose"])
        assert "-- Updating uncompressed files" in result.output
        assert "-- Updating compressed files" in result.output
        assert f"+ {JS_KEY}" in result.output
        assert f"+ gz/{JS_KEY}" in result.output

    def test_verbose_marks_existing_keys(self, config_file):
        path = str(config_file())
        CliRunner().invoke(cli, ["-f", path, "publish"])
        result = CliRunner().invoke(cli, ["-f", path, "publish", "-v"])
        assert f"= {JS_KEY}" in result.output

    def test_dry_run(self, config_file, tmp_path):
        result = CliRunner().invoke(cli, ["-f", str(config_file()), "publish", "--dry-run"])
        assert result.exit_code == 0
        assert "Would upload 5 keys" in result.output
        assert not (tmp_path / "bucket").exists()

    def test_force(self, config_file):
        path = str(config_file())
        CliRunner().invoke(cli, ["-f", path, "publish"])
        result = CliRunner().invoke(cli, ["-f", path, "publish", "--force"])
        assert "Uploaded 5 keys" in result.output

    def test_missing_bucket(self, config_file):
        result = CliRunner().invoke(cli, ["-f", str(config_file(bucket=None)), "publish"])
        assert result.exit_code == 2
        assert "bucket" in result.output

    def test_missing_credentials_for_s3(self, config_file, tmp_path):
        path = config_file(credentials_path=str(tmp_path / "bogus.yml"), store={"backend": "s3"})
        result = CliRunner().invoke(cli, ["-f", str(path), "publish"])
        assert result.exit_code == 2
        assert "credentials" in result.output

    def test_invalid_config(self, config_file):
        result = CliRunner().invoke(cli, ["-f", str(config_file(workers=0)), "publish"])
        assert result.exit_code == 2


class TestHostCommand:
    def test_plain(self, config_file):
        result = CliRunner().invoke(cli, ["-f", str(config_file()), "host", "/javascripts/application.js"])
        assert result.output.strip() == "http://assethost.com"

    def test_gzip(self, config_file):
        result = CliRunner().invoke(cli, [
            "-f", str(config_file()), "host", "/javascripts/application.js",
            "--user-agent", "Mozilla/5.0", "--accept-encoding", "gzip, deflate",
        ])
        assert result.output.strip() == "http://assethost.com/gz"

    def test_shard(self, config_file):
        result = CliRunner().invoke(cli, [
            "-f", str(config_file(cname="assets%d.example.com")), "host", "/images/image.png", "--shard", "3",
        ])
        assert result.output.strip() == "http://assets3.example.com"


class TestUrlCommand:
    def test_url(self, config_file):
        result = CliRunner().invoke(cli, ["-f", str(config_file()), "url", "/images/image.png"])
        assert result.output.strip() == "http://assethost.com/d41d8cd98/images/image.png"

    def test_excluded(self, config_file):
        path = config_file(exclude_pattern="^/images/")
        result = CliRunner().invoke(cli, ["-f", str(path), "url", "/images/image.png"])
        assert result.output.strip() == "/images/image.png"
