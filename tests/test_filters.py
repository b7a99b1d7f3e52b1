"""Tests for Jinja2 template filters."""

from __future__ import annotations

import base64

import jinja2
import pytest

from certificate_maker.renderer.filters import data_uri, nl2br, setup_jinja_env


class TestNl2br:
    def test_converts_newlines(self):
        assert nl2br("line1\nline2") == "line1<br>\nline2"

    def test_empty_string(self):
        assert nl2br("") == ""

    def test_none_returns_empty(self):
        assert nl2br(None) == ""


class TestDataUri:
    def test_png(self, tmp_path):
        img = tmp_path / "logo.png"
        img.write_bytes(b"\x89PNGdata")
        uri = data_uri(img)
        assert uri.startswith("data:image/png;base64,")
        assert base64.b64decode(uri.split(",", 1)[1]) == b"\x89PNGdata"

    def test_jpeg_default(self, tmp_path):
        img = tmp_path / "photo.jpg"
        img.write_bytes(b"jpg")
        assert data_uri(str(img)).startswith("data:image/jpeg;base64,")

    def test_svg(self, tmp_path):
        img = tmp_path / "seal.svg"
        img.write_text("<svg/>")
        assert data_uri(img).startswith("data:image/svg+xml;base64,")

    def test_tiff_converted_to_png(self, tmp_path):
        from PIL import Image

        img = tmp_path / "scan.tif"
        Image.new("RGB", (2, 2), "white").save(img)
        assert data_uri(img).startswith("data:image/png;base64,")

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            data_uri(tmp_path / "nope.png")


class TestSetupJinjaEnv:
    def test_env_has_filters(self, tmp_path):
        env = setup_jinja_env(tmp_path)
        assert "nl2br" in env.filters
        assert "data_uri" in env.filters

    def test_undefined_raises(self, tmp_path):
        env = setup_jinja_env(tmp_path)
        with pytest.raises(jinja2.UndefinedError):
            env.from_string("{{ Missing }}").render({})

    def test_no_autoescape(self, tmp_path):
        env = setup_jinja_env(tmp_path)
        assert env.from_string("{{ x }}").render(x="<b>") == "<b>"

    def test_include_from_template_dir(self, tmp_path):
        (tmp_path / "footer.html").write_text("-- {{ Name }}")
        env = setup_jinja_env(tmp_path)
        assert env.from_string("{% include 'footer.html' %}").render(Name="Ada") == "-- Ada"
