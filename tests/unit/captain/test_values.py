"""Tests for value merging, --set parsing and value file layering."""

from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from src.captain.errors import ConfigurationError
from src.captain.values import (
    ValueOptions,
    _assign,
    fetch_url,
    load_values_document,
    merge_values,
    parse_set,
    read_source,
    typed_value,
)


class TestMergeValues:
    """Tests for the recursive value merge."""

    @pytest.mark.parametrize(
        "tree",
        [
            {},
            {"a": 1},
            {"a": {"b": {"c": [1, 2]}}, "d": None},
        ],
    )
    def test_empty_layers_are_identity(self, tree: dict) -> None:
        assert merge_values(tree, {}) == tree
        assert merge_values({}, tree) == tree

    def test_override_wins_for_scalars(self) -> None:
        assert merge_values({"a": 1}, {"a": 2}) == {"a": 2}

    def test_nested_mappings_are_merged(self) -> None:
        result = merge_values({"a": {"x": 1, "y": 2}}, {"a": {"y": 3, "z": 4}})

        assert result == {"a": {"x": 1, "y": 3, "z": 4}}

    def test_non_mapping_override_replaces_mapping(self) -> None:
        assert merge_values({"a": {"x": 1}}, {"a": 5}) == {"a": 5}

    def test_mapping_override_replaces_scalar(self) -> None:
        assert merge_values({"a": 5}, {"a": {"x": 1}}) == {"a": {"x": 1}}

    def test_sequences_are_replaced_wholesale(self) -> None:
        result = merge_values({"a": [1, 2, 3]}, {"a": [4]})

        assert result == {"a": [4]}

    def test_keys_of_both_layers_are_kept(self) -> None:
        result = merge_values({"a": 1, "b": {"c": 2}}, {"b": {"d": 3}, "e": 4})

        assert result == {"a": 1, "b": {"c": 2, "d": 3}, "e": 4}

    def test_inputs_are_not_modified(self) -> None:
        base = {"a": {"x": 1}, "b": 1}
        override = {"a": {"y": 2}, "c": 3}

        merge_values(base, override)

        assert base == {"a": {"x": 1}, "b": 1}
        assert override == {"a": {"y": 2}, "c": 3}


class TestTypedValue:
    """Tests for --set scalar typing."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("true", True),
            ("FALSE", False),
            ("null", None),
            ("42", 42),
            ("-7", -7),
            ("0", 0),
            ("007", "007"),
            ("1.5", "1.5"),
            ("nginx", "nginx"),
        ],
    )
    def test_typed_value(self, raw: str, expected: object) -> None:
        assert typed_value(raw) == expected


class TestParseSet:
    """Tests for --set expression parsing."""

    def test_nested_keys_and_multiple_assignments(self) -> None:
        result = parse_set("image.repository=nginx,image.tag=1.25,replicas=3")

        assert result == {
            "image": {"repository": "nginx", "tag": "1.25"},
            "replicas": 3,
        }

    def test_list_index_pads_with_none(self) -> None:
        result = parse_set("hosts[0]=a,hosts[2]=c")

        assert result == {"hosts": ["a", None, "c"]}

    def test_list_of_mappings(self) -> None:
        result = parse_set("servers[0].port=80,servers[0].name=web")

        assert result == {"servers": [{"port": 80, "name": "web"}]}

    def test_brace_list(self) -> None:
        result = parse_set("args={--debug,--port,8080},enabled=true")

        assert result == {"args": ["--debug", "--port", 8080], "enabled": True}

    def test_empty_brace_list(self) -> None:
        assert parse_set("args={}") == {"args": []}

    def test_value_may_contain_equals(self) -> None:
        assert parse_set("annotation=a=b") == {"annotation": "a=b"}

    def test_escaped_separators(self) -> None:
        result = parse_set(r"nodeSelector.kubernetes\.io/os=linux,msg=a\,b")

        assert result == {"nodeSelector": {"kubernetes.io/os": "linux"}, "msg": "a,b"}

    def test_applies_into_existing_tree(self) -> None:
        tree = {"a": {"x": 1}}

        result = parse_set("a.y=2", into=tree)

        assert result is tree
        assert tree == {"a": {"x": 1, "y": 2}}

    def test_later_assignment_wins(self) -> None:
        assert parse_set("a=1,a=2") == {"a": 2}

    @pytest.mark.parametrize(
        "expression",
        [
            "novalue",
            "=1",
            "a..b=1",
            "a[x]=1",
            "a[70000]=1",
            "a[0=1",
        ],
    )
    def test_malformed_expressions(self, expression: str) -> None:
        with pytest.raises(ConfigurationError, match="failed parsing --set data"):
            parse_set(expression)

    def test_list_slots_need_int_index(self) -> None:
        with pytest.raises(TypeError, match="list index"):
            _assign([], "name", 1)


class TestValueSources:
    """Tests for reading value documents."""

    def test_empty_document_is_empty_tree(self) -> None:
        assert load_values_document(b"", "values.yaml") == {}

    def test_non_mapping_document_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="expected a mapping"):
            load_values_document(b"- a\n- b\n", "values.yaml")

    def test_invalid_yaml_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            load_values_document(b"a: [1, 2\n", "values.yaml")

        assert excinfo.value.details

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="failed to read values file"):
            read_source(str(tmp_path / "missing.yaml"))

    def test_urls_use_fetcher(self) -> None:
        fetched: list[str] = []

        def fetch(url: str) -> bytes:
            fetched.append(url)
            return b"a: 1\n"

        assert read_source("https://example.com/values.yaml", fetch) == b"a: 1\n"
        assert fetched == ["https://example.com/values.yaml"]


class TestFetchURL:
    """Tests for downloading value documents over HTTP."""

    URL = "https://charts.example.com/values.yaml"

    def test_returns_body_and_follows_redirects(self) -> None:
        response = httpx.Response(
            200, content=b"a: 1\n", request=httpx.Request("GET", self.URL)
        )
        with patch("src.captain.values.httpx.get", return_value=response) as get:
            assert fetch_url(self.URL, timeout=5.0) == b"a: 1\n"

        get.assert_called_once_with(self.URL, timeout=5.0, follow_redirects=True)

    def test_error_status_is_a_configuration_error(self) -> None:
        response = httpx.Response(404, request=httpx.Request("GET", self.URL))
        with patch("src.captain.values.httpx.get", return_value=response):
            with pytest.raises(ConfigurationError, match="failed to fetch values"):
                fetch_url(self.URL)

    def test_unreachable_host_is_a_configuration_error(self) -> None:
        with patch(
            "src.captain.values.httpx.get", side_effect=httpx.ConnectError("refused")
        ):
            with pytest.raises(ConfigurationError, match="refused"):
                fetch_url(self.URL)


class TestValueOptions:
    """Tests for layering value files and --set expressions."""

    def test_later_layers_win(self, tmp_path: Path) -> None:
        first = tmp_path / "first.yaml"
        first.write_text("image:\n  repository: nginx\n  tag: '1.0'\nreplicas: 1\n")
        second = tmp_path / "second.yaml"
        second.write_text("image:\n  tag: '2.0'\n")

        options = ValueOptions(
            values=["replicas=3", "image.pullPolicy=Always"],
            value_files=[str(first), str(second)],
        )

        assert options.merge() == {
            "image": {"repository": "nginx", "tag": "2.0", "pullPolicy": "Always"},
            "replicas": 3,
        }

    def test_url_layer(self, tmp_path: Path) -> None:
        local = tmp_path / "values.yaml"
        local.write_text("a: 1\nb: 1\n")

        options = ValueOptions(
            value_files=[str(local), "http://charts.example.com/values.yaml"],
        )

        assert options.merge(lambda url: b"b: 2\n") == {"a": 1, "b": 2}

    def test_no_layers(self) -> None:
        assert ValueOptions().merge() == {}
