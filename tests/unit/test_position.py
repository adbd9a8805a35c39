"""Tests for discussion position parsing and validation."""

from __future__ import annotations

import json

import pytest

from mcp_gitlab_review.exceptions import GitLabValidationError
from mcp_gitlab_review.models.merge_requests import DiffVersion, DiscussionPosition
from mcp_gitlab_review.position import (
    RULE_LINES,
    RULE_PATHS,
    RULE_POSITION_TYPE,
    RULE_SHAPE,
    RULE_SHAS,
    coerce_position,
    fill_missing_shas,
    missing_shas,
    parse_position,
)

SHAS = {"base_sha": "aaa111", "head_sha": "bbb222", "start_sha": "ccc333"}


def _position(**overrides):
    data = {**SHAS, "old_path": "src/app.py", "new_path": "src/app.py", "new_line": 10}
    data.update(overrides)
    return {k: v for k, v in data.items() if v is not ...}


def _outcome(raw):
    """(accepted, rule, reason) for a position input."""
    try:
        parse_position(raw)
    except GitLabValidationError as e:
        return False, e.rule, e.reason
    return True, None, None


class TestCoercePosition:
    def test_structured(self):
        position = coerce_position(_position())
        assert isinstance(position, DiscussionPosition)
        assert position.new_line == 10

    def test_json_string(self):
        position = coerce_position(json.dumps(_position()))
        assert position.base_sha == "aaa111"
        assert position.new_line == 10

    def test_model_passes_through(self):
        model = DiscussionPosition(**_position())
        assert coerce_position(model) is model

    def test_invalid_json_string(self):
        with pytest.raises(GitLabValidationError, match="not valid JSON") as exc_info:
            coerce_position("{base_sha: nope")
        assert exc_info.value.rule == RULE_SHAPE

    @pytest.mark.parametrize("raw", ["[1, 2]", "null", '"text"', "42"])
    def test_json_that_is_not_an_object(self, raw):
        with pytest.raises(GitLabValidationError, match="position object") as exc_info:
            coerce_position(raw)
        assert exc_info.value.rule == RULE_SHAPE

    def test_string_is_decoded_once(self):
        double_encoded = json.dumps(json.dumps(_position()))
        with pytest.raises(GitLabValidationError) as exc_info:
            coerce_position(double_encoded)
        assert exc_info.value.rule == RULE_SHAPE

    def test_wrong_field_type(self):
        with pytest.raises(GitLabValidationError, match="new_line") as exc_info:
            coerce_position(_position(new_line="ten"))
        assert exc_info.value.rule == RULE_SHAPE

    def test_non_positive_line(self):
        with pytest.raises(GitLabValidationError, match="old_line") as exc_info:
            coerce_position(_position(old_line=0))
        assert exc_info.value.rule == RULE_SHAPE


class TestShaRule:
    @pytest.mark.parametrize("field", ["base_sha", "head_sha", "start_sha"])
    def test_missing_sha(self, field):
        with pytest.raises(GitLabValidationError, match=field) as exc_info:
            parse_position(_position(**{field: ...}))
        assert exc_info.value.rule == RULE_SHAS

    def test_blank_sha(self):
        with pytest.raises(GitLabValidationError) as exc_info:
            parse_position(_position(head_sha="   "))
        assert exc_info.value.rule == RULE_SHAS

    def test_shas_optional_for_preflight(self):
        position = parse_position(
            _position(base_sha=..., head_sha=..., start_sha=...), require_shas=False
        )
        assert missing_shas(position) == ["base_sha", "head_sha", "start_sha"]


class TestPathRule:
    @pytest.mark.parametrize(
        "paths",
        [
            {"old_path": "", "new_path": ""},
            {"old_path": ..., "new_path": ...},
            {"old_path": None, "new_path": "  "},
        ],
    )
    def test_both_paths_empty(self, paths):
        with pytest.raises(GitLabValidationError, match="old_path or new_path") as exc_info:
            parse_position(_position(**paths))
        assert exc_info.value.rule == RULE_PATHS

    def test_both_paths_empty_with_both_lines(self):
        with pytest.raises(GitLabValidationError) as exc_info:
            parse_position(_position(old_path="", new_path="", old_line=3, new_line=3))
        assert exc_info.value.rule == RULE_PATHS

    def test_new_file_only_new_path(self):
        position = parse_position(_position(old_path=..., new_path="docs/new.md"))
        assert position.new_path == "docs/new.md"
        assert position.old_path == "docs/new.md"

    def test_deleted_file_only_old_path(self):
        position = parse_position(_position(old_path="legacy.py", new_path="", new_line=..., old_line=4))
        assert position.old_path == "legacy.py"
        assert position.new_path == "legacy.py"

    def test_rename_keeps_both_paths(self):
        position = parse_position(_position(old_path="a/old.py", new_path="a/new.py"))
        assert position.old_path == "a/old.py"
        assert position.new_path == "a/new.py"


class TestLineRule:
    @pytest.mark.parametrize(
        "overrides",
        [
            {},
            {"position_type": "image"},
            {"old_path": "a.py", "new_path": "b.py"},
            {"line_range": {
                "start": {"line_code": "abc_1_1", "type": "new", "new_line": 1},
                "end": {"line_code": "abc_3_3", "type": "new", "new_line": 3},
            }},
        ],
    )
    def test_missing_both_lines(self, overrides):
        raw = _position(new_line=..., **overrides)
        with pytest.raises(GitLabValidationError, match="old_line, new_line or both") as exc_info:
            parse_position(raw)
        assert exc_info.value.rule == RULE_LINES

    def test_added_line(self):
        assert parse_position(_position(new_line=5)).old_line is None

    def test_removed_line(self):
        position = parse_position(_position(new_line=..., old_line=5))
        assert position.old_line == 5
        assert position.new_line is None

    def test_context_line(self):
        position = parse_position(_position(old_line=4, new_line=5))
        assert (position.old_line, position.new_line) == (4, 5)


class TestPositionTypeRule:
    def test_defaults_to_text(self):
        assert parse_position(_position()).position_type == "text"

    def test_image_accepted(self):
        assert parse_position(_position(position_type="image")).position_type == "image"

    def test_unknown_type_rejected(self):
        with pytest.raises(GitLabValidationError, match="position_type") as exc_info:
            parse_position(_position(position_type="file"))
        assert exc_info.value.rule == RULE_POSITION_TYPE


class TestShapeEquivalence:
    @pytest.mark.parametrize(
        "raw",
        [
            _position(),
            _position(new_line=...),
            _position(old_path="", new_path=""),
            _position(start_sha=""),
            _position(position_type="video"),
            _position(old_line=-1),
            _position(line_range={"start": {}, "end": {}}),
        ],
    )
    def test_structured_and_string_agree(self, raw):
        assert _outcome(raw) == _outcome(json.dumps(raw))


class TestCanonicalForm:
    def test_to_dict_drops_unset_fields(self):
        data = parse_position(_position()).to_dict()
        assert data == {
            **SHAS,
            "position_type": "text",
            "old_path": "src/app.py",
            "new_path": "src/app.py",
            "new_line": 10,
        }

    def test_line_range_serialized(self):
        line_range = {
            "start": {"line_code": "abc_8_8", "type": "new", "new_line": 8},
            "end": {"line_code": "abc_10_10", "type": "new", "new_line": 10},
        }
        data = parse_position(_position(line_range=line_range)).to_dict()
        assert data["line_range"] == line_range


class TestFillMissingShas:
    VERSION = DiffVersion(
        id=3, base_commit_sha="base0", head_commit_sha="head0", start_commit_sha="start0"
    )

    def test_fills_all(self):
        position = coerce_position(_position(base_sha=..., head_sha=..., start_sha=...))
        filled = fill_missing_shas(position, self.VERSION)
        assert (filled.base_sha, filled.head_sha, filled.start_sha) == ("base0", "head0", "start0")

    def test_keeps_explicit_shas(self):
        position = coerce_position(_position(head_sha=...))
        filled = fill_missing_shas(position, self.VERSION)
        assert filled.base_sha == "aaa111"
        assert filled.head_sha == "head0"
        assert filled.start_sha == "ccc333"

    def test_complete_position_unchanged(self):
        position = coerce_position(_position())
        assert fill_missing_shas(position, self.VERSION) is position
