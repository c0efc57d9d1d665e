"""CLI tests."""

import json

import pytest
import yaml

from disputes import __version__
from disputes.cli import OutputFormat, format_output, main
from disputes.codec import dispute_to_dict, encode_dispute, encode_dispute_list
from disputes.core import canonical_json_bytes


@pytest.fixture
def dispute_file(tmp_path, dispute):
    path = tmp_path / "dispute.json"
    path.write_bytes(encode_dispute(dispute))
    return path


@pytest.fixture
def list_file(tmp_path, make_dispute):
    bad = dispute_to_dict(make_dispute(trader_id=3))
    bad["p2p_network_version"] = 9
    path = tmp_path / "DisputeList.json"
    path.write_bytes(canonical_json_bytes({
        "type": "DisputeList",
        "p2p_network_version": 2,
        "disputes": [
            dispute_to_dict(make_dispute(trader_id=1)),
            bad,
            dispute_to_dict(make_dispute(trader_id=2, is_support_ticket=True)),
        ],
    }))
    return path


class TestDecode:

    def test_decode_json(self, dispute_file, dispute, capsys):
        assert main(["decode", str(dispute_file)]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["id"] == dispute.id
        assert summary["opener"] == "buyer"
        assert summary["closed"] is False
        assert summary["messages"] == 0

    def test_decode_yaml(self, dispute_file, capsys):
        assert main(["--format", "yaml", "decode", str(dispute_file)]) == 0
        assert yaml.safe_load(capsys.readouterr().out)["id"] == "abc123_1"

    def test_decode_failure(self, tmp_path, dispute, capsys):
        data = dispute_to_dict(dispute)
        data["p2p_network_version"] = 42
        path = tmp_path / "future.json"
        path.write_bytes(canonical_json_bytes(data))

        assert main(["decode", str(path)]) == 1
        err = capsys.readouterr().err
        assert "Unsupported p2p_network_version 42" in err

    def test_missing_file(self, tmp_path, capsys):
        assert main(["decode", str(tmp_path / "absent.json")]) == 2
        assert "Cannot read" in capsys.readouterr().err

    def test_quiet_suppresses_error(self, tmp_path, capsys):
        path = tmp_path / "junk.json"
        path.write_bytes(b"junk")
        assert main(["--quiet", "decode", str(path)]) == 1
        assert capsys.readouterr().err == ""


class TestInspect:

    def test_rows_and_skipped(self, list_file, capsys):
        assert main(["inspect", str(list_file)]) == 0
        captured = capsys.readouterr()
        rows = json.loads(captured.out)
        assert [r["id"] for r in rows] == ["abc123_1", "abc123_2"]
        assert [r["support_ticket"] for r in rows] == [False, True]
        assert "Skipped dispute #1 (abc123_3)" in captured.err

    def test_table(self, tmp_path, make_dispute, capsys):
        path = tmp_path / "DisputeList.json"
        path.write_bytes(encode_dispute_list([make_dispute(trader_id=1)]))
        assert main(["--format", "table", "inspect", str(path)]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("id")
        assert "abc123_1" in lines[2]

    def test_bad_envelope(self, dispute_file, capsys):
        assert main(["inspect", str(dispute_file)]) == 1
        assert "DisputeList" in capsys.readouterr().err


class TestConfigCommand:

    def test_show(self, capsys):
        assert main(["config"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["storage"]["file_name"] == "DisputeList.json"

    def test_validate(self, capsys):
        assert main(["config", "--validate"]) == 0
        assert json.loads(capsys.readouterr().out) == {"valid": True, "errors": []}

    def test_config_file(self, tmp_path, capsys):
        path = tmp_path / "disputes.yaml"
        path.write_text("storage:\n  save_delay_ms: 0\n")
        assert main(["--config", str(path), "config"]) == 0
        assert json.loads(capsys.readouterr().out)["storage"]["save_delay_ms"] == 0

    def test_bad_config_file(self, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "absent.yaml"), "config"]) == 1
        assert "not found" in capsys.readouterr().err

    def test_bad_log_level_env(self, monkeypatch, capsys):
        monkeypatch.setenv("DISPUTES_LOG_LEVEL", "verbose")
        assert main(["config"]) == 1
        assert "Invalid log level 'verbose'" in capsys.readouterr().err


class TestCLIBasics:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_format_table_dict(self):
        assert format_output({"a": 1}, OutputFormat.TABLE) == "a: 1"
