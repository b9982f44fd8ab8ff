from typing import Any

from firebase_mcp.envelope import ToolResponse


def assert_ok_envelope(res: Any) -> Any:
    """Structured success: not an error, JSON payload. Returns the payload."""
    assert isinstance(res, ToolResponse)
    assert res.is_error is False
    assert "isError" not in res.to_dict()
    return res.json()


def assert_error_envelope(res: Any, message: str | None = None) -> None:
    """Error envelope: flagged, single text block, optionally an exact message."""
    assert isinstance(res, ToolResponse)
    assert res.is_error is True
    wire = res.to_dict()
    assert wire["isError"] is True
    assert len(wire["content"]) == 1
    assert wire["content"][0]["type"] == "text"
    if message is not None:
        assert res.text == message
