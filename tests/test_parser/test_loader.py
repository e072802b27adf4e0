"""Tests for rtxspec.parser.loader."""

from __future__ import annotations

import io
import json
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from rtxspec.exceptions import SpecParseError
from rtxspec.parser.loader import (
    decode_document,
    load_command,
    load_spec,
    read_source,
    validate_spec_document,
)

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"

PFS_YAML = (
    "command:\n"
    "  name: ipsec ike pfs\n"
    "  syntax: ipsec ike pfs <gateway_id> <pfs>\n"
    "  parameters:\n"
    "    gateway_id: {type: int, range: [1, 100]}\n"
    "    pfs: {type: enum, enum_values: ['on', 'off']}\n"
)


def _response(url: str, status: int = 200, **kwargs) -> httpx.Response:
    return httpx.Response(status_code=status, request=httpx.Request("GET", url), **kwargs)


class TestReadSource:
    @pytest.mark.parametrize(
        "name, fmt",
        [("spec.json", "json"), ("spec.yaml", "yaml"), ("spec.YML", "yaml"), ("spec.txt", None)],
    )
    def test_suffix_announces_format(self, tmp_path: Path, name: str, fmt) -> None:
        path = tmp_path / name
        path.write_text(PFS_YAML, encoding="utf-8")
        assert read_source(str(path)) == (PFS_YAML, fmt)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SpecParseError, match="Spec file not found"):
            read_source(str(tmp_path / "ipsec.yaml"))

    def test_blank_file(self, tmp_path: Path) -> None:
        path = tmp_path / "blank.yaml"
        path.write_text("\n  \n", encoding="utf-8")
        with pytest.raises(SpecParseError, match="is empty"):
            read_source(str(path))

    def test_stdin(self) -> None:
        with patch("rtxspec.parser.loader.sys") as mock_sys:
            mock_sys.stdin = io.StringIO(PFS_YAML)
            assert read_source("-") == (PFS_YAML, None)

    def test_blank_stdin(self) -> None:
        with patch("rtxspec.parser.loader.sys") as mock_sys:
            mock_sys.stdin = io.StringIO("   \n\t")
            with pytest.raises(SpecParseError, match="Stdin is empty"):
                read_source("-")

    @pytest.mark.parametrize(
        "content_type, fmt",
        [("application/json", "json"), ("application/x-yaml", "yaml"), ("text/plain", None)],
    )
    def test_url_content_type(self, content_type: str, fmt) -> None:
        url = "https://specs.example.net/ipsec_ike_pfs"
        response = _response(url, text=PFS_YAML, headers={"content-type": content_type})
        with patch("rtxspec.parser.loader.httpx.get", return_value=response):
            assert read_source(url) == (PFS_YAML, fmt)

    def test_url_http_error(self) -> None:
        url = "https://specs.example.net/missing.yaml"
        with patch("rtxspec.parser.loader.httpx.get", return_value=_response(url, 404)):
            with pytest.raises(SpecParseError, match="HTTP 404"):
                read_source(url)

    def test_url_connection_error(self) -> None:
        url = "https://specs.example.net/ipsec.yaml"
        error = httpx.ConnectError("refused", request=httpx.Request("GET", url))
        with patch("rtxspec.parser.loader.httpx.get", side_effect=error):
            with pytest.raises(SpecParseError, match="Cannot fetch spec"):
                read_source(url)


class TestDecodeDocument:
    def test_yaml_reads_json_text(self) -> None:
        assert decode_document('{"command": {"name": "ip route"}}') == {
            "command": {"name": "ip route"}
        }

    def test_announced_json_is_strict(self) -> None:
        with pytest.raises(SpecParseError, match="Invalid JSON in spec.json"):
            decode_document("command:\n  name: x\n", "json", origin="spec.json")

    def test_yaml_syntax_error(self) -> None:
        with pytest.raises(SpecParseError, match="Invalid YAML"):
            decode_document("command: [unclosed\n")

    @pytest.mark.parametrize(
        "text, kind", [("- a\n- b\n", "list"), ("just words", "str"), ("~", "nothing")]
    )
    def test_root_must_be_mapping(self, text: str, kind: str) -> None:
        with pytest.raises(SpecParseError, match=f"must hold a mapping, got {kind}"):
            decode_document(text)


class TestLoadSpec:
    def test_yaml_fixture(self) -> None:
        document = load_spec(str(FIXTURES_DIR / "ipsec_ike_encryption.yaml"))
        assert document["command"]["name"] == "ipsec ike encryption"

    def test_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "route.json"
        path.write_text(json.dumps({"command": {"name": "ip route"}}), encoding="utf-8")
        assert load_spec(str(path))["command"]["name"] == "ip route"

    def test_error_names_the_file(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- ipsec\n", encoding="utf-8")
        with pytest.raises(SpecParseError, match="list.yaml must hold a mapping"):
            load_spec(str(path))

    def test_url(self) -> None:
        url = "https://specs.example.net/pfs.json"
        response = _response(url, json={"command": {"name": "ipsec ike pfs"}})
        with patch("rtxspec.parser.loader.httpx.get", return_value=response):
            assert load_spec(url)["command"]["name"] == "ipsec ike pfs"


class TestValidateSpecDocument:
    def test_returns_command_mapping(self) -> None:
        assert validate_spec_document({"command": {"name": "ipsec ike pfs"}}) == {
            "name": "ipsec ike pfs"
        }

    def test_missing_command(self) -> None:
        with pytest.raises(SpecParseError, match="has no 'command' section"):
            validate_spec_document({"name": "ipsec ike pfs"}, origin="pfs.yaml")

    def test_command_not_mapping(self) -> None:
        with pytest.raises(SpecParseError, match="must be a mapping, got list"):
            validate_spec_document({"command": ["ipsec"]})

    @pytest.mark.parametrize("name", [None, "", "   ", 42])
    def test_unnamed(self, name: object) -> None:
        with pytest.raises(SpecParseError, match="'command.name' is required"):
            validate_spec_document({"command": {"name": name}})


class TestLoadCommand:
    def test_fixture(self) -> None:
        command = load_command(str(FIXTURES_DIR / "ipsec_sa_policy.yaml"))
        assert command.name == "ipsec sa policy"
        assert list(command.parameters) == [
            "policy_id", "gateway_id", "protocol", "encryption", "hash",
        ]

    def test_bare_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bare.yaml"
        path.write_text("name: ipsec ike pfs\n", encoding="utf-8")
        with pytest.raises(SpecParseError, match="has no 'command' section"):
            load_command(str(path))

    def test_invalid_shape(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(
            "command:\n  name: x\n  parameters:\n    a:\n      required: [1]\n",
            encoding="utf-8",
        )
        with pytest.raises(SpecParseError, match="Invalid command spec 'x'"):
            load_command(str(path))
