"""Tests for the storage key namespace."""

from assethost.lib.fingerprint import fingerprint
from assethost.lib.keys import AssetReference, ContentKey, KeyNamespace, extension_of

from conftest import JS_CONTENT


class TestExtension:
    def test_simple(self):
        assert extension_of("/javascripts/application.js") == "js"

    def test_ignores_query_and_fragment(self):
        assert extension_of("/stylesheets/site.css?body=1") == "css"
        assert extension_of("/fonts/icons.svg#glyph") == "svg"

    def test_no_extension(self):
        assert extension_of("/images/README") == ""

    def test_asset_reference(self):
        assert AssetReference("/images/logo.PNG").extension == "png"


class TestContentKey:
    def test_plain_key(self):
        key = ContentKey("d41d8cd98", "/images/logo.png")
        assert str(key) == "d41d8cd98/images/logo.png"
        assert not key.is_gzip_variant

    def test_prefixed_key(self):
        key = ContentKey("8ed41cb87", "/javascripts/application.js", key_prefix="prefix/")
        assert str(key) == "prefix/8ed41cb87/javascripts/application.js"
        assert key.asset_id == "prefix/8ed41cb87"

    def test_gzip_key(self):
        key = ContentKey("8ed41cb87", "/javascripts/application.js", gzip_prefix="gz")
        assert str(key) == "gz/8ed41cb87/javascripts/application.js"
        assert key.is_gzip_variant


class TestKeyNamespace:
    def test_handle_for_path(self, config, public_dir):
        namespace = KeyNamespace(config)
        handle = namespace.handle_for(public_dir / "images" / "image.png")
        assert handle.relative_path == "/images/image.png"
        assert handle.extension == "png"

    def test_handle_outside_public_root(self, config, tmp_path):
        namespace = KeyNamespace(config)
        assert namespace.handle_for(tmp_path / "elsewhere.js") is None

    def test_handle_for_source(self, config, public_dir):
        namespace = KeyNamespace(config)
        handle = namespace.handle_for_source("/javascripts/application.js?123")
        assert handle.absolute_path == public_dir / "javascripts" / "application.js"

    def test_key_for_file(self, config, public_dir):
        namespace = KeyNamespace(config)
        handle = namespace.handle_for(public_dir / "javascripts" / "application.js")
        key = namespace.key_for(handle)
        assert str(key) == f"{fingerprint(JS_CONTENT)}/javascripts/application.js"

    def test_key_prefix(self, make_config, public_dir):
        namespace = KeyNamespace(make_config(key_prefix="prefix/"))
        handle = namespace.handle_for(public_dir / "images" / "image.png")
        assert str(namespace.key_for(handle)) == "prefix/d41d8cd98/images/image.png"

    def test_gzip_key_uses_separate_prefix(self, make_config, public_dir):
        namespace = KeyNamespace(make_config(key_prefix="assets/"))
        handle = namespace.handle_for(public_dir / "javascripts" / "application.js")
        plain = str(namespace.key_for(handle))
        gzipped = str(namespace.key_for(handle, gzip=True))
        assert gzipped == f"gz/{plain}"
        assert plain != gzipped

    def test_identical_content_same_digest(self, config, public_dir):
        copy = public_dir / "javascripts" / "copy.js"
        copy.write_bytes(JS_CONTENT)
        namespace = KeyNamespace(config)
        original = namespace.key_for(namespace.handle_for(public_dir / "javascripts" / "application.js"))
        duplicate = namespace.key_for(namespace.handle_for(copy))
        assert original.digest_prefix == duplicate.digest_prefix

    def test_changed_content_changes_key(self, config, public_dir):
        namespace = KeyNamespace(config)
        path = public_dir / "javascripts" / "application.js"
        before = str(namespace.key_for(namespace.handle_for(path)))
        path.write_bytes(b"var changed = true;")
        after = str(namespace.key_for(namespace.handle_for(path)))
        assert before != after

    def test_should_exclude(self, make_config):
        namespace = KeyNamespace(make_config(exclude_pattern=r"^/private/"))
        assert namespace.should_exclude("/private/secret.js")
        assert not namespace.should_exclude("/javascripts/application.js")

    def test_should_exclude_without_pattern(self, config):
        assert not KeyNamespace(config).should_exclude("/anything.js")

    def test_gzip_eligible_defaults(self, config):
        namespace = KeyNamespace(config)
        assert namespace.gzip_eligible("/javascripts/application.js")
        assert namespace.gzip_eligible("/stylesheets/style.css")
        assert not namespace.gzip_eligible("/images/logo.png")

    def test_gzip_eligible_custom_extensions(self, make_config):
        namespace = KeyNamespace(make_config(gzip={"extensions": "js, svg"}))
        assert namespace.gzip_eligible("/images/icon.svg")
        assert not namespace.gzip_eligible("/stylesheets/style.css")
