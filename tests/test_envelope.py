"""Tests for the tool response envelope."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from firebase_mcp.envelope import ToolResponse


def test_ok_message_has_no_error_flag():
    res = ToolResponse.ok("Document deleted successfully")

    assert res.is_error is False
    assert res.to_dict() == {
        "content": [{"type": "text", "text": "Document deleted successfully"}]
    }


def test_error_sets_flag_on_the_wire():
    res = ToolResponse.error("Document not found")

    assert res.to_dict() == {
        "content": [{"type": "text", "text": "Document not found"}],
        "isError": True,
    }


def test_ok_json_compact_by_default():
    res = ToolResponse.ok_json({"a": 1, "b": [1, 2]})

    assert "\n" not in res.text
    assert res.json() == {"a": 1, "b": [1, 2]}


def test_ok_json_indented():
    res = ToolResponse.ok_json({"a": 1}, indent=2)

    assert res.text == '{\n  "a": 1\n}'


def test_ok_json_stringifies_unknown_values():
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)

    res = ToolResponse.ok_json({"when": stamp})

    assert res.json() == {"when": str(stamp)}


def test_call_tool_result_carries_one_text_block():
    result = ToolResponse.error("boom").to_call_tool_result()

    assert result.isError is True
    assert len(result.content) == 1
    assert result.content[0].type == "text"
    assert result.content[0].text == "boom"


def test_envelope_is_immutable():
    res = ToolResponse.ok("x")

    with pytest.raises(FrozenInstanceError):
        res.text = "y"  # type: ignore[misc]
