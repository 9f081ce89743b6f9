"""Tests for prompt construction and token estimates."""

import math

from src.ai.prompts import PromptBuilder


class TestChatPrompt:
    """Tests for PromptBuilder.chat."""

    def test_estimate_sums_messages(self):
        """Each message is estimated separately and summed."""
        prompt = PromptBuilder().chat([
            {"role": "user", "content": "a" * 10},
            {"role": "assistant", "content": "b" * 3},
        ])

        assert prompt.estimated_tokens == 3 + 1
        assert [m["role"] for m in prompt.messages] == ["user", "assistant"]

    def test_system_prompt_not_billed(self):
        """The optional system prompt is prepended but not estimated."""
        prompt = PromptBuilder().chat([{"role": "user", "content": "abcd"}], system_prompt="Be brief " * 20)

        assert prompt.messages[0]["role"] == "system"
        assert prompt.estimated_tokens == 1


class TestOperationPrompts:
    """Tests for the single-snippet builders."""

    def test_code_generation_estimate(self):
        """Generation is estimated on the request and context only."""
        prompt = PromptBuilder().code_generation("sort a list", "python", context="utility module")

        assert prompt.estimated_tokens == math.ceil(len("sort a listutility module") / 4)
        assert "Language: python" in prompt.messages[1]["content"]

    def test_quick_refactor_includes_code(self):
        """The snippet is sent in a fenced block."""
        prompt = PromptBuilder().quick_refactor("var x = 1", "use const", "javascript")

        assert "```javascript\nvar x = 1\n```" in prompt.messages[1]["content"]
        assert prompt.estimated_tokens == math.ceil(len("var x = 1use const") / 4)

    def test_refactor_requests_sections(self):
        """The full refactor asks for every parsed heading."""
        prompt = PromptBuilder().refactor("var x = 1", "modernize")
        content = prompt.messages[1]["content"]

        for heading in ("REFACTORED CODE", "CHANGES MADE", "PERFORMANCE IMPROVEMENTS",
                        "BREAKING CHANGES", "RECOMMENDATIONS"):
            assert heading in content
        assert "LANGUAGE: javascript" in content

    def test_bug_detection_requests_score(self):
        """Bug detection asks for a quality score and fixed code."""
        content = PromptBuilder().bug_detection("eval(input)", "python").messages[1]["content"]

        assert "CODE QUALITY SCORE" in content
        assert "FIXED CODE" in content

    def test_documentation_estimate_is_code_only(self):
        """Documentation is estimated on the code."""
        prompt = PromptBuilder().documentation("x" * 40, "go")

        assert prompt.estimated_tokens == 10

    def test_performance_estimate_is_code_only(self):
        """Optimization is estimated on the code."""
        prompt = PromptBuilder().performance_optimization("y" * 41, "rust")

        assert prompt.estimated_tokens == 11


class TestMultiFilePrompt:
    """Tests for PromptBuilder.multi_file_refactor."""

    def test_every_file_has_a_header(self):
        """Each file is introduced with FILE and LANGUAGE lines."""
        prompt = PromptBuilder().multi_file_refactor(
            [
                {"name": "a.ts", "content": "let a = 1", "language": "typescript"},
                {"name": "b.js", "content": "let b = 2"},
            ],
            "share constants",
        )
        content = prompt.messages[1]["content"]

        assert "FILE: a.ts\nLANGUAGE: typescript" in content
        assert "FILE: b.js\nLANGUAGE: javascript" in content
        assert "CROSS_FILE_DEPENDENCIES" in content
        assert prompt.estimated_tokens > 0


class TestAssistantPrompt:
    """Tests for PromptBuilder.assistant_chat."""

    def test_history_and_user_context(self):
        """History precedes the new message and the system prompt names the user."""
        prompt = PromptBuilder().assistant_chat(
            "How do I fetch data?",
            [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
            "dev@example.com",
        )

        assert prompt.messages[0]["role"] == "system"
        assert "dev@example.com" in prompt.messages[0]["content"]
        assert [m["role"] for m in prompt.messages[1:]] == ["user", "assistant", "user"]
        assert prompt.messages[-1]["content"] == "How do I fetch data?"
