"""
Tests for tool-call block parsing.
"""

from src.orchestration.tool_calls import ToolCall, parse_tool_calls, scan_tool_blocks


class TestParseToolCalls:
    """Tests for parse_tool_calls."""

    def test_single_block(self):
        text = 'Let me check.\n[TOOL_CALL: get_weather]\n{"city": "Seoul"}\n[/TOOL_CALL]'
        assert parse_tool_calls(text) == [ToolCall(name="get_weather", arguments={"city": "Seoul"})]

    def test_multiple_blocks_in_order(self):
        text = (
            '[TOOL_CALL: get_weather]{"city": "Seoul"}[/TOOL_CALL]\n'
            '[TOOL_CALL: get_time]\n{"tz": "Asia/Seoul"}\n[/TOOL_CALL]'
        )
        assert [c.name for c in parse_tool_calls(text)] == ["get_weather", "get_time"]

    def test_malformed_block_skipped(self):
        """One well-formed and one malformed block yield exactly one call."""
        text = (
            "[TOOL_CALL: broken]\n{\"city\": Seoul}\n[/TOOL_CALL]\n"
            "[TOOL_CALL: get_weather]\n{\"city\": \"Busan\"}\n[/TOOL_CALL]"
        )
        calls = parse_tool_calls(text)
        assert calls == [ToolCall(name="get_weather", arguments={"city": "Busan"})]

    def test_unclosed_object_does_not_swallow_next_block(self):
        text = (
            "[TOOL_CALL: broken]\n{\"city\": \"Seoul\"\n[/TOOL_CALL]\n"
            "[TOOL_CALL: get_weather]\n{\"city\": \"Busan\"}\n[/TOOL_CALL]"
        )
        assert parse_tool_calls(text) == [ToolCall(name="get_weather", arguments={"city": "Busan"})]

    def test_unterminated_block_before_good_block(self):
        text = (
            "[TOOL_CALL: broken]\n{\"city\": \"Seoul\"}\n"
            "[TOOL_CALL: get_weather]\n{\"city\": \"Busan\"}\n[/TOOL_CALL]"
        )
        assert parse_tool_calls(text) == [ToolCall(name="get_weather", arguments={"city": "Busan"})]

    def test_non_object_arguments_skipped(self):
        assert parse_tool_calls("[TOOL_CALL: x]\n[1, 2]\n[/TOOL_CALL]") == []

    def test_nested_arguments(self):
        text = '[TOOL_CALL: search]\n{"filter": {"year": 2024}, "q": "rain"}\n[/TOOL_CALL]'
        assert parse_tool_calls(text)[0].arguments == {"filter": {"year": 2024}, "q": "rain"}

    def test_empty_object_arguments(self):
        assert parse_tool_calls("[TOOL_CALL: list_items]\n{}\n[/TOOL_CALL]") == [
            ToolCall(name="list_items", arguments={})
        ]

    def test_unterminated_block_ignored(self):
        assert parse_tool_calls('[TOOL_CALL: get_weather]\n{"city": "Seoul"}') == []

    def test_plain_answer(self):
        assert parse_tool_calls("2+2 is 4.") == []

    def test_empty_text(self):
        assert parse_tool_calls("") == []
        assert parse_tool_calls(None) == []


class TestScanToolBlocks:
    """Tests for the raw block scanner."""

    def test_yields_raw_argument_text(self):
        text = "[TOOL_CALL: x]\n{not json}\n[/TOOL_CALL]"
        assert list(scan_tool_blocks(text)) == [("x", "{not json}")]
