"""Unit tests for the tool-call parsers."""

from toolwire.format.parsers import InlineJSONParser, OpenAINativeParser, XMLToolParser


class TestOpenAINativeParser:
    """Tests for OpenAI native tool_calls field parser."""

    def test_can_parse_with_tool_calls(self):
        """Parser should detect when tool_calls are present."""
        response = {"message": {"tool_calls": [{"function": {"name": "test"}}]}}
        parser = OpenAINativeParser()
        assert parser.can_parse(response) is True

    def test_can_parse_without_tool_calls(self):
        """Parser should return False when no tool_calls."""
        response = {"message": {"content": "Hello"}}
        parser = OpenAINativeParser()
        assert parser.can_parse(response) is False

    def test_can_parse_empty_tool_calls(self):
        """Parser should return False for empty tool_calls list."""
        response = {"message": {"tool_calls": []}}
        parser = OpenAINativeParser()
        assert parser.can_parse(response) is False

    def test_parse_openai_choices_shape(self):
        """Parser should read choices[0].message.tool_calls."""
        response = {
            "choices": [{
                "message": {
                    "content": None,
                    "tool_calls": [{
                        "id": "call_123",
                        "type": "function",
                        "function": {"name": "read_file", "arguments": '{"path": "a.py"}'},
                    }],
                }
            }]
        }
        parsed = OpenAINativeParser().parse(response)

        assert len(parsed.tool_calls) == 1
        assert parsed.tool_calls[0].id == "call_123"
        assert parsed.tool_calls[0].name == "read_file"
        assert parsed.tool_calls[0].arguments == {"path": "a.py"}
        assert parsed.finish_reason == "tool_calls"

    def test_parse_handles_dict_arguments(self):
        """Parser should handle arguments as dict (not string)."""
        response = {
            "message": {
                "tool_calls": [{
                    "function": {
                        "name": "test",
                        "arguments": {"key": "value"}  # Already a dict
                    }
                }]
            }
        }
        parsed = OpenAINativeParser().parse(response)

        assert parsed.tool_calls[0].arguments == {"key": "value"}

    def test_parse_undecodable_arguments_become_empty(self):
        """Arguments that are not valid JSON should become an empty dict."""
        response = {"message": {"tool_calls": [{"id": "c1", "function": {"name": "t", "arguments": "{oops"}}]}}
        parsed = OpenAINativeParser().parse(response)

        assert parsed.tool_calls[0].arguments == {}

    def test_parse_assigns_missing_ids(self):
        """Calls without an id should get a generated one."""
        response = {"message": {"tool_calls": [{"function": {"name": "t", "arguments": "{}"}}]}}
        parsed = OpenAINativeParser().parse(response)

        assert parsed.tool_calls[0].id.startswith("call_")

    def test_parse_drops_nameless_calls(self):
        """Calls without a function name should be skipped."""
        response = {"message": {"tool_calls": [
            {"id": "c1", "function": {"name": "", "arguments": "{}"}},
            {"id": "c2", "function": {"name": "list_dir", "arguments": "{}"}},
        ]}}
        parsed = OpenAINativeParser().parse(response)

        assert [c.name for c in parsed.tool_calls] == ["list_dir"]

    def test_parse_preserves_content(self):
        """Content field should be preserved."""
        response = {"message": {"content": "Let me look.", "tool_calls": []}}
        parsed = OpenAINativeParser().parse(response)

        assert parsed.content == "Let me look."
        assert parsed.tool_calls == []


class TestXMLToolParser:
    """Tests for pseudo-XML tool calls in text."""

    def test_parse_single_call(self):
        """Outer tag is the tool, inner tags are arguments."""
        result = XMLToolParser().parse("<read_file>\n<path>/tmp/a.txt</path>\n</read_file>")

        assert len(result.tool_calls) == 1
        call = result.tool_calls[0]
        assert call.name == "read_file"
        assert call.arguments == {"path": "/tmp/a.txt"}
        assert call.id.startswith("xml_call_0_")
        assert result.cleaned_content == ""

    def test_argument_values_are_trimmed_strings(self):
        """Whitespace around values should be removed."""
        text = "<write_file>\n<path> a.txt </path>\n<content>\nhello\n</content>\n</write_file>"
        result = XMLToolParser().parse(text)

        assert result.tool_calls[0].arguments == {"path": "a.txt", "content": "hello"}

    def test_html_tags_are_not_tools(self):
        """Common HTML markup should never be parsed as a tool call."""
        result = XMLToolParser().parse("<div><span>x</span></div> and <p>hello</p>")

        assert result.tool_calls == []

    def test_bare_tag_without_underscore_is_not_a_tool(self):
        """A tag with no nested tags only counts if its name has an underscore."""
        assert XMLToolParser().parse("<note>remember this</note>").tool_calls == []

    def test_bare_tag_with_underscore_is_a_tool(self):
        """snake_case tags with no arguments are tool calls."""
        result = XMLToolParser().parse("<get_time></get_time>")

        assert [c.name for c in result.tool_calls] == ["get_time"]
        assert result.tool_calls[0].arguments == {}

    def test_call_nested_in_html_is_found(self):
        """A rejected HTML wrapper should not hide the call inside it."""
        result = XMLToolParser().parse("<p><read_file><path>x</path></read_file></p>")

        assert [c.name for c in result.tool_calls] == ["read_file"]

    def test_tool_call_wrapper_is_removed(self):
        """<tool_call> wrappers should be ignored."""
        result = XMLToolParser().parse("<tool_call><read_file><path>a</path></read_file></tool_call>")

        assert [c.name for c in result.tool_calls] == ["read_file"]
        assert result.cleaned_content == ""

    def test_prose_is_preserved(self):
        """Text around the call should survive with blank lines collapsed."""
        text = "Let me check.\n\n<read_file>\n<path>a.py</path>\n</read_file>\n\nThen done."
        result = XMLToolParser().parse(text)

        assert result.cleaned_content == "Let me check.\n\nThen done."

    def test_fence_holding_call_is_removed(self):
        """A code fence that only wrapped a call should disappear with it."""
        text = "Here:\n```xml\n<read_file>\n<path>a.py</path>\n</read_file>\n```\nok"
        result = XMLToolParser().parse(text)

        assert len(result.tool_calls) == 1
        assert result.cleaned_content == "Here:\n\nok"

    def test_multiple_calls_keep_order(self):
        """Calls should be numbered in the order they appear."""
        text = "<list_dir><path>.</path></list_dir>\n<read_file><path>b</path></read_file>"
        result = XMLToolParser().parse(text)

        assert [c.name for c in result.tool_calls] == ["list_dir", "read_file"]
        assert result.tool_calls[1].id.startswith("xml_call_1_")

    def test_detect_function_attribute_syntax(self):
        """<function=name> should be reported as malformed."""
        malformed = XMLToolParser().detect_malformed("<function=read_file>\n<parameter=path>a</parameter>")

        assert malformed is not None
        assert malformed.success is False
        assert "<function=name>" in malformed.error
        assert "<read_file>" in malformed.examples

    def test_detect_parameter_attribute_syntax(self):
        """<parameter=name> alone should be reported as malformed."""
        malformed = XMLToolParser().detect_malformed("<read_file><parameter=path>a</parameter></read_file>")

        assert malformed is not None
        assert "<parameter=name>" in malformed.error

    def test_detect_bracket_syntax(self):
        """[tool_use: name] should be reported as malformed."""
        malformed = XMLToolParser().detect_malformed("[tool_use: read_file] path=a.py")

        assert malformed is not None
        assert "[tool_use: name]" in malformed.error

    def test_detect_malformed_clean_text(self):
        """Ordinary text should not be flagged."""
        assert XMLToolParser().detect_malformed("All done, no tools needed.") is None


class TestInlineJSONParser:
    """Tests for JSON tool calls in text."""

    def test_parse_bare_object(self):
        """A bare JSON object with name and arguments is a call."""
        result = InlineJSONParser().parse('{"name": "read_file", "arguments": {"path": "a.py"}}')

        assert len(result.tool_calls) == 1
        assert result.tool_calls[0].name == "read_file"
        assert result.tool_calls[0].arguments == {"path": "a.py"}
        assert result.tool_calls[0].id.startswith("json_call_0_")

    def test_parse_fenced_object(self):
        """The fence around the call should be excised with it."""
        text = 'Sure.\n```json\n{"name": "read_file", "arguments": {"path": "a.py"}}\n```\nDone.'
        result = InlineJSONParser().parse(text)

        assert len(result.tool_calls) == 1
        assert result.cleaned_content == "Sure.\n\nDone."

    def test_parse_multiple_objects(self):
        """Several objects in one reply each become a call."""
        text = (
            '{"name": "list_dir", "arguments": {"path": "."}}\n'
            '{"name": "read_file", "arguments": {"path": "a.py"}}'
        )
        result = InlineJSONParser().parse(text)

        assert [c.name for c in result.tool_calls] == ["list_dir", "read_file"]
        assert result.tool_calls[1].id.startswith("json_call_1_")

    def test_unrelated_json_is_ignored(self):
        """Objects that do not look like tool calls are left alone."""
        result = InlineJSONParser().parse('The config is {"status": "ok"}.')

        assert result.tool_calls == []
        assert result.cleaned_content == 'The config is {"status": "ok"}.'

    def test_missing_arguments_is_malformed(self):
        """{"name": ...} without arguments should be reported."""
        malformed = InlineJSONParser().detect_malformed('{"name": "read_file"}')

        assert malformed is not None
        assert malformed.error == 'Invalid tool call: missing "arguments" field'
        assert '"name": "read_file"' in malformed.examples
        assert "Correct format" in malformed.examples

    def test_missing_name_is_malformed(self):
        """An arguments object without a name should be reported."""
        malformed = InlineJSONParser().detect_malformed('{"arguments": {"path": "a.py"}}')

        assert malformed is not None
        assert malformed.error == 'Invalid tool call: missing "name" field'

    def test_parameters_key_is_malformed(self):
        """{"name", "parameters"} is reported as missing "arguments"."""
        malformed = InlineJSONParser().detect_malformed('{"name": "read_file", "parameters": {"path": "a.txt"}}')

        assert malformed is not None
        assert malformed.error == 'Invalid tool call: missing "arguments" field'
        assert '"name": "read_file"' in malformed.examples

    def test_non_object_arguments_is_malformed(self):
        """Arguments must be an object, not a string."""
        malformed = InlineJSONParser().detect_malformed('{"name": "read_file", "arguments": "a.py"}')

        assert malformed is not None
        assert malformed.error == 'Invalid tool call: "arguments" must be an object'

    def test_braces_in_code_are_skipped(self):
        """Invalid JSON such as code blocks should not break parsing."""
        text = 'def f(): return {x}\n{"name": "list_dir", "arguments": {}}'
        result = InlineJSONParser().parse(text)

        assert [c.name for c in result.tool_calls] == ["list_dir"]
