"""Tests for the per-record render pipeline (browser mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from certificate_maker.data.models import RecordRow
from certificate_maker.exceptions import (
    ConversionError,
    PersistError,
    RenderError,
    TemplateNotFound,
    UploadError,
)
from certificate_maker.renderer.pipeline import (
    GeneratedArtifact,
    PipelineStep,
    RenderPipeline,
    build_render_context,
)


def _record(index=0, **fields) -> RecordRow:
    return RecordRow(index=index, values=list(fields.values()), fields=dict(fields))


def _pipeline(record, catalog, renderer, **kwargs) -> RenderPipeline:
    kwargs.setdefault("default_template", "greeting")
    return RenderPipeline(record, catalog=catalog, renderer=renderer, **kwargs)


class TestBuildRenderContext:
    def test_fields_and_aliases(self, catalog):
        template = catalog.get("greeting")
        ctx = build_render_context({"Name": "Ada"}, template, timestamp=123)
        assert ctx["Name"] == "Ada"
        assert ctx["h"] == {"Name": "Ada"}
        assert ctx["header"] is ctx["h"]
        assert ctx["s"] == {"path": template.base_path, "timestamp": 123}

    def test_reserved_keys_not_overwritten(self, catalog):
        template = catalog.get("greeting")
        fields = {"h": "x", "header": "y", "s": "z", "Name": "Ada"}
        ctx = build_render_context(fields, template)
        assert ctx["h"] == fields
        assert ctx["header"] == fields
        assert ctx["s"]["path"] == template.base_path
        assert ctx["h"]["s"] == "z"

    def test_timestamp_defaults_to_now_ms(self, catalog):
        ctx = build_render_context({}, catalog.get("greeting"))
        assert ctx["s"]["timestamp"] > 1_000_000_000_000


class TestGeneratedArtifact:
    def test_reference_prefers_url(self, tmp_path):
        artifact = GeneratedArtifact(output_path=tmp_path / "a.pdf", remote_url="https://x")
        assert artifact.reference == "https://x"

    def test_reference_falls_back_to_path(self, tmp_path):
        artifact = GeneratedArtifact(output_path=tmp_path / "a.pdf")
        assert artifact.reference == str(tmp_path / "a.pdf")


class TestRun:
    def test_greeting_scenario(self, catalog, fake_renderer, tmp_path):
        persisted = []
        record = _record(Name="Ada", Template="greeting", File="")
        artifact = _pipeline(
            record, catalog, fake_renderer,
            persist=persisted.append, preserve_intermediary=True,
        ).run()

        html = tmp_path / "intermediaries" / "Ada.html"
        pdf = tmp_path / "results" / "Ada.pdf"
        assert artifact.intermediary_path == html
        assert artifact.output_path == pdf
        assert html.read_text(encoding="utf-8") == "Hello Ada"
        assert pdf.exists()
        assert persisted == [str(pdf)]

        fake_renderer.navigate.assert_called_once_with(html.resolve().as_uri())
        fake_renderer.export_pdf.assert_called_once_with(pdf)

    def test_template_override(self, catalog, template_dir, fake_renderer, tmp_path):
        (template_dir / "fancy.html").write_text("Dear {{ h['Name'] }}")
        pipeline = _pipeline(
            _record(Name="Ada"), catalog, fake_renderer, template_override="fancy",
        )
        pipeline.run()
        assert pipeline.template.name == "fancy"
        assert pipeline.contents == "Dear Ada"

    def test_no_template_at_all(self, catalog, fake_renderer):
        with pytest.raises(TemplateNotFound, match="no template"):
            _pipeline(_record(Name="Ada"), catalog, fake_renderer, default_template="").run()

    def test_pdf_options_from_settings(self, catalog, template_dir, fake_renderer, tmp_path):
        folder = template_dir / "wide"
        folder.mkdir()
        (folder / "cert.html").write_text("x")
        (folder / "settings.yaml").write_text(
            "file_name: '{{Name}}'\nformat: A4\nlandscape: true\n"
        )
        _pipeline(_record(Name="Ada"), catalog, fake_renderer, default_template="wide/cert").run()
        fake_renderer.export_pdf.assert_called_once_with(
            tmp_path / "results" / "wide" / "Ada.pdf", format="A4", landscape=True,
        )

    def test_max_pages_uses_fitted_export(self, catalog, template_dir, fake_renderer):
        folder = template_dir / "fit"
        folder.mkdir()
        (folder / "cert.html").write_text("x")
        (folder / "settings.yaml").write_text("file_name: 'a'\nmax_pages: 1\n")
        _pipeline(_record(Name="Ada"), catalog, fake_renderer, default_template="fit/cert").run()
        fake_renderer.export_fitted_pdf.assert_called_once()
        assert fake_renderer.export_fitted_pdf.call_args.args[1] == 1
        fake_renderer.export_pdf.assert_not_called()

    def test_png_output(self, catalog, template_dir, fake_renderer, tmp_path):
        folder = template_dir / "img"
        folder.mkdir()
        (folder / "badge.html").write_text("x")
        (folder / "settings.yaml").write_text(
            "file_name: '{{Name}}'\noutput: png\nviewport: {width: 400, height: 300}\n"
        )
        artifact = _pipeline(
            _record(Name="Ada"), catalog, fake_renderer, default_template="img/badge",
        ).run()
        assert artifact.output_path == tmp_path / "results" / "img" / "Ada.png"
        fake_renderer.export_screenshot.assert_called_once_with(
            artifact.output_path, viewport={"width": 400, "height": 300},
        )

    def test_filename_entities_decoded_and_sanitized(self, catalog, template_dir, fake_renderer, tmp_path):
        folder = template_dir / "named"
        folder.mkdir()
        (folder / "cert.html").write_text("x")
        (folder / "settings.yaml").write_text("file_name: '{{Name}} &amp; {{Team}}/2024'\n")
        artifact = _pipeline(
            _record(Name="Ada", Team="R:D"), catalog, fake_renderer, default_template="named/cert",
        ).run()
        assert artifact.output_path.name == "Ada & RD2024.pdf"

    def test_uploads_and_persists_url(self, catalog, fake_renderer):
        uploader = MagicMock()
        uploader.upload.return_value = "https://docs.google.com/open?id=1"
        persisted = []
        artifact = _pipeline(
            _record(Name="Ada"), catalog, fake_renderer,
            uploader=uploader, persist=persisted.append,
        ).run()
        uploader.upload.assert_called_once_with(artifact.output_path)
        assert persisted == ["https://docs.google.com/open?id=1"]


class TestFailures:
    def test_undefined_field_is_render_error(self, catalog, template_dir, fake_renderer, tmp_path):
        (template_dir / "needs.html").write_text("{{ Surname }}")
        pipeline = _pipeline(_record(Name="Ada"), catalog, fake_renderer, default_template="needs")
        with pytest.raises(RenderError, match="Surname"):
            pipeline.run()
        assert pipeline.step is PipelineStep.RENDER
        fake_renderer.navigate.assert_not_called()
        assert list((tmp_path / "intermediaries").iterdir()) == []

    def test_evaluation_error_is_render_error(self, catalog, template_dir, fake_renderer):
        (template_dir / "maths.html").write_text("{{ Name / 2 }}")
        pipeline = _pipeline(_record(Name="Ada"), catalog, fake_renderer, default_template="maths")
        with pytest.raises(RenderError, match="TypeError"):
            pipeline.run()
        fake_renderer.navigate.assert_not_called()

    def test_filter_value_error_in_file_name_is_render_error(
        self, catalog, template_dir, fake_renderer,
    ):
        sub = template_dir / "numbered"
        sub.mkdir()
        (sub / "card.html").write_text("Hello")
        (sub / "settings.yaml").write_text("file_name: '{{ Name | int(default=None) + 1 }}'\n")
        with pytest.raises(RenderError, match="failed for record #0"):
            _pipeline(
                _record(Name="Ada"), catalog, fake_renderer, default_template="numbered/card",
            ).run()

    def test_empty_filename_is_render_error(self, catalog, fake_renderer):
        with pytest.raises(RenderError, match="rendered empty"):
            _pipeline(_record(Name="//"), catalog, fake_renderer).run()

    def test_missing_image_is_render_error(self, catalog, template_dir, fake_renderer):
        (template_dir / "logo.html").write_text("{{ (s.path ~ 'missing.png') | data_uri }}")
        with pytest.raises(RenderError, match="could not read"):
            _pipeline(_record(Name="Ada"), catalog, fake_renderer, default_template="logo").run()

    def test_conversion_error_still_cleans_up(self, catalog, fake_renderer, tmp_path):
        fake_renderer.export_pdf.side_effect = ConversionError("boom")
        pipeline = _pipeline(_record(Name="Ada"), catalog, fake_renderer)
        with pytest.raises(ConversionError):
            pipeline.run()
        assert pipeline.step is PipelineStep.MATERIALIZE
        assert not (tmp_path / "intermediaries" / "Ada.html").exists()

    def test_upload_error_keeps_output(self, catalog, fake_renderer, tmp_path):
        uploader = MagicMock()
        uploader.upload.side_effect = UploadError("quota")
        persist = MagicMock()
        pipeline = _pipeline(
            _record(Name="Ada"), catalog, fake_renderer,
            uploader=uploader, persist=persist, preserve_output=False,
        )
        with pytest.raises(UploadError):
            pipeline.run()
        persist.assert_not_called()
        assert (tmp_path / "results" / "Ada.pdf").exists()

    def test_persist_error_propagates(self, catalog, fake_renderer):
        persist = MagicMock(side_effect=PersistError("sheet locked"))
        pipeline = _pipeline(_record(Name="Ada"), catalog, fake_renderer, persist=persist)
        with pytest.raises(PersistError):
            pipeline.run()
        assert pipeline.step is PipelineStep.PERSIST


class TestCleanup:
    def test_drop_intermediary_keep_output(self, catalog, fake_renderer, tmp_path):
        _pipeline(
            _record(Name="Ada"), catalog, fake_renderer,
            preserve_intermediary=False, preserve_output=True,
        ).run()
        assert not (tmp_path / "intermediaries" / "Ada.html").exists()
        assert (tmp_path / "results" / "Ada.pdf").exists()

    def test_uploaded_output_removed_when_not_preserved(self, catalog, fake_renderer, tmp_path):
        uploader = MagicMock()
        uploader.upload.return_value = "https://x"
        _pipeline(
            _record(Name="Ada"), catalog, fake_renderer,
            uploader=uploader, preserve_output=False,
        ).run()
        assert not (tmp_path / "results" / "Ada.pdf").exists()

    def test_local_output_kept_without_upload(self, catalog, fake_renderer, tmp_path):
        _pipeline(_record(Name="Ada"), catalog, fake_renderer, preserve_output=False).run()
        assert (tmp_path / "results" / "Ada.pdf").exists()

    def test_already_removed_files_ignored(self, catalog, fake_renderer, tmp_path):
        pipeline = _pipeline(_record(Name="Ada"), catalog, fake_renderer)
        pipeline.run()
        pipeline.cleanup()
        assert pipeline.step is PipelineStep.DONE
