"""
Tests for polish/prompts.py - system and per-selection prompts.
"""

from polish.prompts import JSON_REPLY_INSTRUCTION, build_system_prompt, build_user_prompt


class TestSystemPrompt:

    def test_embeds_file_content(self):
        prompt = build_system_prompt("# Notes\nsome {braces} here")

        assert "<file_context>\n# Notes\nsome {braces} here\n</file_context>" in prompt

    def test_describes_json_contract(self):
        prompt = build_system_prompt("")

        assert '"improved": "the improved text here"' in prompt
        assert "NEVER translate" in prompt


class TestUserPrompt:

    def test_single_line(self):
        prompt = build_user_prompt("fix this sentence")

        assert prompt == f"Improve the following text:\nfix this sentence\n\n{JSON_REPLY_INSTRUCTION}"

    def test_multi_line_states_line_count(self):
        """
        Given: Content of three lines
        When: build_user_prompt() is called
        Then: The prompt requires exactly three lines back
        """
        prompt = build_user_prompt("one\ntwo\nthree")

        assert "MUST have exactly 3 lines" in prompt
        assert "Text to improve:\none\ntwo\nthree\n\n" in prompt
        assert prompt.endswith(JSON_REPLY_INSTRUCTION)

    def test_blank_inner_lines_count(self):
        assert "exactly 3 lines" in build_user_prompt("a\n\nb")
