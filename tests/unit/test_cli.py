"""
Tests for the prescription renderer command line tool.
"""

import json

import pytest
from click.testing import CliRunner

from tests.conftest import make_png, pdf_page_count
from tests.fixtures import prescriptions as records
from tools.prescription_renderer.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


def _write_json(path, data):
    path.write_text(json.dumps(data))
    return path


class TestRenderCommand:

    def test_default_output_next_to_input(self, runner, tmp_path):
        source = _write_json(tmp_path / "rx.json", records.minimal_record())
        result = runner.invoke(cli, ["render", str(source)])

        expected = tmp_path / f"prescription-{records.PRESCRIPTION_ID}.pdf"
        assert result.exit_code == 0, result.output
        assert expected.exists()
        assert "(1 pages)" in result.output
        assert pdf_page_count(expected.read_bytes()) == 1

    def test_wrapped_input_with_assets_dir(self, runner, tmp_path):
        assets = tmp_path / "assets"
        assets.mkdir()
        (assets / "clinicLogo-1.png").write_bytes(make_png())
        source = _write_json(tmp_path / "rx.json", {
            "prescription": records.full_record(),
            "branding": {
                "clinicLogo": "/api/doctors/images/clinicLogo-1.png",
                "signature": "/api/doctors/images/missing.png",
            },
        })
        output = tmp_path / "out" / "rx.pdf"
        output.parent.mkdir()

        result = runner.invoke(cli, ["render", str(source), "-o", str(output), "-a", str(assets)])

        assert result.exit_code == 0, result.output
        assert output.read_bytes().startswith(b"%PDF")
        assert "Warning: signature:" in result.output

    def test_report_prints_layout(self, runner, tmp_path):
        source = _write_json(tmp_path / "rx.json", records.many_medications_record(15))
        result = runner.invoke(cli, ["render", str(source), "-o", str(tmp_path / "rx.pdf"), "--report"])

        assert result.exit_code == 0, result.output
        report = json.loads(result.output)
        assert report["page_count"] >= 2
        rows = [p for p in report["placements"] if p["kind"] == "table_row" and p["section"] == "medications"]
        assert len(rows) == 15

    def test_data_error_exit_code(self, runner, tmp_path):
        record = records.minimal_record()
        del record["diagnosis"]
        source = _write_json(tmp_path / "rx.json", record)
        output = tmp_path / "rx.pdf"

        result = runner.invoke(cli, ["render", str(source), "-o", str(output)])

        assert result.exit_code == 2
        assert "diagnosis" in result.output
        assert not output.exists()

    def test_custom_tokens(self, runner, tmp_path):
        tokens_file = tmp_path / "tokens.json"
        assert runner.invoke(cli, ["tokens", str(tokens_file)]).exit_code == 0

        data = json.loads(tokens_file.read_text())
        data["layout"]["page_width"] = 612
        data["layout"]["page_height"] = 792
        tokens_file.write_text(json.dumps(data))

        source = _write_json(tmp_path / "rx.json", records.minimal_record())
        output = tmp_path / "letter.pdf"
        result = runner.invoke(cli, ["render", str(source), "-o", str(output), "-t", str(tokens_file)])

        assert result.exit_code == 0, result.output
        assert output.exists()


class TestTokensCommand:

    def test_writes_default_tokens(self, runner, tmp_path):
        output = tmp_path / "nested" / "tokens.json"
        result = runner.invoke(cli, ["tokens", str(output)])

        assert result.exit_code == 0
        data = json.loads(output.read_text())
        assert {"colors", "typography", "layout"} <= set(data)
