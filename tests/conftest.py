"""Shared pytest fixtures."""

import os
from collections.abc import Mapping

import pytest
import yaml

import assethost.config as config_mod
from assethost.config import AssetHostConfig
from assethost.lib.exceptions import GatewayError

JS_CONTENT = b"// application\nvar app = {};\n"
CSS_CONTENT = b"body { background-image: url(/images/image.png); }\n"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep ASSETHOST_* variables and the config override out of every test."""
    for name in list(os.environ):
        if name.startswith("ASSETHOST_"):
            monkeypatch.delenv(name, raising=False)
    config_mod._config_path_override = None
    config_mod.clear_config_cache()
    yield
    config_mod._config_path_override = None
    config_mod.clear_config_cache()


@pytest.fixture
def public_dir(tmp_path):
    """A public root with one empty image, one script and one stylesheet."""
    public = tmp_path / "public"
    (public / "images").mkdir(parents=True)
    (public / "javascripts").mkdir()
    (public / "stylesheets").mkdir()

    (public / "images" / "image.png").write_bytes(b"")
    (public / "javascripts" / "application.js").write_bytes(JS_CONTENT)
    (public / "stylesheets" / "style.css").write_bytes(CSS_CONTENT)
    return public


@pytest.fixture
def credentials_file(tmp_path):
    path = tmp_path / "config" / "s3.yml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump({"access_key_id": "access_key", "secret_access_key": "secret"}))
    return path


@pytest.fixture
def make_config(public_dir, credentials_file):
    """Factory for a configured AssetHostConfig pointing at ``public_dir``."""
    def _make(**overrides) -> AssetHostConfig:
        values = {
            "bucket": "bucketname",
            "cname": "assethost.com",
            "key_prefix": "",
            "public_path": public_dir,
            "credentials_path": credentials_file,
            "retry": {"attempts": 2, "backoff": 0, "max_backoff": 0},
        }
        values.update(overrides)
        return AssetHostConfig(**values)

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


class FakeObjectStore:
    """In-memory object store recording every put."""

    def __init__(self, keys=(), fail_keys=(), fail_listing=False):
        self.objects: dict[str, bytes] = {k: b"" for k in keys}
        self.headers: dict[str, dict[str, str]] = {}
        self.acls: dict[str, str] = {}
        self.puts: list[str] = []
        self.listed_prefixes: list[str] = []
        self.fail_keys = set(fail_keys)
        self.fail_listing = fail_listing
        self.closed = False

    async def put(self, key: str, body: bytes, acl: str = "public-read", headers: Mapping[str, str] | None = None) -> None:
        self.puts.append(key)
        if key in self.fail_keys:
            raise GatewayError(key, RuntimeError("boom"))
        self.objects[key] = body
        self.headers[key] = dict(headers or {})
        self.acls[key] = acl

    async def list_keys(self, prefix: str = ""):
        self.listed_prefixes.append(prefix)
        if self.fail_listing:
            raise GatewayError(prefix, RuntimeError("listing down"), operation="list")
        for key in sorted(self.objects):
            if key.startswith(prefix):
                yield key

    async def close(self) -> None:
        self.closed = True


class ConfiguredObjectStore(FakeObjectStore):
    """Loaded through the ``module:ClassName`` backend spec."""

    def __init__(self, config):
        super().__init__()
        self.config = config


@pytest.fixture
def fake_store():
    return FakeObjectStore()


@pytest.fixture
def make_store():
    return FakeObjectStore
