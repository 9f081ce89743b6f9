"""Prompt construction for every AI operation.

Each builder returns the chat messages to send and the token estimate that
is reserved before the call. Estimates are deliberately computed on a short
description of the task (or the raw inputs) rather than on the full prompt,
so the reserved amount tracks what the user submitted.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from src.constants import DEFAULT_LANGUAGE
from src.core.usage.metering import estimate_tokens


@dataclass
class Prompt:
    messages: List[Dict[str, str]]
    estimated_tokens: int


def _fence(code: str, language: str) -> str:
    return f"```{language}\n{code}\n```"


class PromptBuilder:
    """Builds system/user messages for each operation."""

    def chat(
        self,
        messages: Sequence[Dict[str, str]],
        system_prompt: Optional[str] = None,
    ) -> Prompt:
        """Pass-through chat; the estimate is summed per message."""
        out = [{"role": m["role"], "content": m["content"]} for m in messages]
        if system_prompt:
            out.insert(0, {"role": "system", "content": system_prompt})
        return Prompt(
            messages=out,
            estimated_tokens=sum(estimate_tokens(m["content"]) for m in messages),
        )

    def code_generation(self, prompt: str, language: str, context: str = "") -> Prompt:
        user = f"""Write code for the request below.

Language: {language}
Context: {context}
Request: {prompt}

Guidelines:
- Produce complete, working code that is ready to use
- Keep it readable and follow the language's conventions
- Handle errors where the code can fail
- Comment only the parts that are not obvious

Return the code only, without explanation, unless the request asks for one."""
        return Prompt(
            messages=[
                {
                    "role": "system",
                    "content": "You are a senior software engineer who writes clean, efficient, production-quality code.",
                },
                {"role": "user", "content": user},
            ],
            estimated_tokens=estimate_tokens(prompt + context),
        )

    def quick_refactor(self, code: str, instruction: str, language: str) -> Prompt:
        user = f"""Refactor the following code.

Language: {language}
Code:
{_fence(code, language)}

Instruction: {instruction}

Guidelines:
- Keep the existing behaviour intact
- Improve readability, structure and performance where possible
- Comment the changes that need it
- Return complete code that runs as-is

Return the refactored code only, without explanation, unless the instruction asks for one."""
        return Prompt(
            messages=[
                {
                    "role": "system",
                    "content": "You are a senior software engineer focused on refactoring and code quality.",
                },
                {"role": "user", "content": user},
            ],
            estimated_tokens=estimate_tokens(code + instruction),
        )

    def refactor(self, code: str, instruction: str, language: Optional[str] = None) -> Prompt:
        """Full refactor with a sectioned report."""
        language = language or DEFAULT_LANGUAGE
        user = f"""Refactor the code below according to the instruction.

LANGUAGE: {language}

ORIGINAL CODE:
{_fence(code, language)}

REFACTORING INSTRUCTION: {instruction}

REQUIREMENTS:
1. Preserve all existing behaviour
2. Improve readability, structure and maintainability
3. Use idiomatic patterns for the language
4. Optimize hot paths where it does not hurt clarity
5. Add error handling and input validation where missing
6. Name things clearly and organize the code logically
7. Note any security implications

OUTPUT FORMAT (use these headings):
1. **REFACTORED CODE**: the complete refactored code in one fenced block
2. **CHANGES MADE**: the improvements, as a list
3. **PERFORMANCE IMPROVEMENTS**: the optimizations applied
4. **BREAKING CHANGES**: any change to the public interface
5. **RECOMMENDATIONS**: further improvements worth considering"""
        estimate_text = (
            f"Refactor the following {language} code:\n\n{code}\n\n"
            f"Instruction: {instruction}\n\n"
            "Provide the refactored code, the changes made, the performance "
            "improvements and any breaking changes."
        )
        return Prompt(
            messages=[
                {
                    "role": "system",
                    "content": (
                        "You are a senior software architect who refactors code for clarity and "
                        "performance and explains every change."
                    ),
                },
                {"role": "user", "content": user},
            ],
            estimated_tokens=estimate_tokens(estimate_text),
        )

    def bug_detection(self, code: str, language: Optional[str] = None) -> Prompt:
        language = language or DEFAULT_LANGUAGE
        user = f"""Review the code below for bugs, security problems, performance problems and quality issues.

LANGUAGE: {language}

CODE TO ANALYZE:
{_fence(code, language)}

CHECK FOR:
1. Bugs: syntax, logic and runtime errors, null handling, type mistakes
2. Security: injection, XSS, CSRF, auth bypass, data exposure, missing validation
3. Performance: inefficient algorithms, memory leaks, blocking calls
4. Quality: naming, structure, documentation, error handling
5. Dependencies: outdated or vulnerable packages, if any are visible

OUTPUT FORMAT (use these headings):
1. **CRITICAL ISSUES**: security vulnerabilities and serious bugs, one per list item
2. **WARNINGS**: performance and quality problems, one per list item
3. **SUGGESTIONS**: lower-priority improvements, one per list item
4. **CODE QUALITY SCORE**: a single number from 0 to 100
5. **FIXED CODE**: the corrected code in one fenced block
6. **EXPLANATION**: what each fix does

For each issue give the line number when possible, the severity and the fix."""
        estimate_text = (
            f"Analyze the following {language} code for bugs, security "
            f"vulnerabilities and performance issues:\n\n{code}\n\n"
            "List the issues with line numbers, recommended fixes and an overall "
            "quality score."
        )
        return Prompt(
            messages=[
                {
                    "role": "system",
                    "content": (
                        "You are a senior engineer and security reviewer. You find real defects "
                        "and give concrete fixes."
                    ),
                },
                {"role": "user", "content": user},
            ],
            estimated_tokens=estimate_tokens(estimate_text),
        )

    def documentation(self, code: str, language: str) -> Prompt:
        user = f"""Write documentation for the code below.

Language: {language}
Code:
{_fence(code, language)}

Cover:
1. What the code is for
2. Each function or method and its parameters
3. Return values
4. Usage examples
5. Caveats worth knowing
6. Dependencies

Format the result as Markdown with headings and code examples."""
        return Prompt(
            messages=[
                {
                    "role": "system",
                    "content": "You are a technical writer with a software engineering background.",
                },
                {"role": "user", "content": user},
            ],
            estimated_tokens=estimate_tokens(code),
        )

    def performance_optimization(self, code: str, language: str) -> Prompt:
        user = f"""Optimize the performance of the code below.

Language: {language}
Code to optimize:
{_fence(code, language)}

Look at:
- Time and space complexity
- Algorithm and data structure choice
- Memory use
- Caching and parallelism opportunities
- Database queries, if any

Provide:
1. The current bottlenecks
2. Specific optimizations
3. The optimized code in one fenced block
4. Expected gains
5. Trade-offs

Keep the optimized code readable."""
        return Prompt(
            messages=[
                {
                    "role": "system",
                    "content": "You are a senior engineer specializing in performance and algorithm analysis.",
                },
                {"role": "user", "content": user},
            ],
            estimated_tokens=estimate_tokens(code),
        )

    def multi_file_refactor(
        self,
        files: Sequence[Dict[str, str]],
        instruction: str,
    ) -> Prompt:
        """
        Refactor several files together.

        ``files`` items carry ``name``, ``content`` and optional ``language``.
        """
        blocks = []
        for f in files:
            language = f.get("language") or DEFAULT_LANGUAGE
            blocks.append(
                f"FILE: {f['name']}\nLANGUAGE: {language}\nCODE:\n{_fence(f['content'], language)}\n"
            )

        user = f"""Refactor these files together so they keep working as one system.

REFACTORING INSTRUCTION: {instruction}

FILES TO REFACTOR:
{chr(10).join(blocks)}
REQUIREMENTS:
1. Files must keep working together after the change
2. Apply the same approach across all files
3. Update imports and exports as needed
4. Improve structure, error handling, typing and documentation
5. Preserve all existing behaviour

OUTPUT FORMAT:
For every file, repeat its header exactly as given:
FILE: <name>
LANGUAGE: <language>
CODE:
followed by the complete refactored code in one fenced block.

Then add these sections:
SYSTEM_IMPROVEMENTS: architectural improvements overall
BREAKING_CHANGES: breaking changes across the files
MIGRATION_GUIDE: how to move from the old files to the new ones
TESTING_RECOMMENDATIONS: how to test the refactored files together
CROSS_FILE_DEPENDENCIES: how dependencies between files changed"""
        listing = "\n\n".join(f"--- {f['name']} ---\n{f['content']}" for f in files)
        estimate_text = (
            f"Multi-file refactoring task:\n\n{instruction}\n\n"
            f"Files to refactor:\n{listing}\n\n"
            "Keep the files working together, update imports and exports, and "
            "explain the changes for each file."
        )
        return Prompt(
            messages=[
                {
                    "role": "system",
                    "content": (
                        "You are a senior software architect who refactors multi-file codebases "
                        "while keeping them consistent."
                    ),
                },
                {"role": "user", "content": user},
            ],
            estimated_tokens=estimate_tokens(estimate_text),
        )

    def assistant_chat(
        self,
        message: str,
        history: Sequence[Dict[str, str]],
        user_email: str,
    ) -> Prompt:
        """General web-development assistant used by the signed-in chat page."""
        system = (
            "You are a helpful assistant for a web development platform. You answer "
            "questions about Next.js, React, TypeScript and web development in general "
            "with practical, friendly advice. "
            f"The current user is {user_email}."
        )
        messages = [{"role": "system", "content": system}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in history)
        messages.append({"role": "user", "content": message})
        return Prompt(
            messages=messages,
            estimated_tokens=sum(estimate_tokens(m["content"]) for m in messages),
        )


_prompt_builder: Optional[PromptBuilder] = None


def get_prompt_builder() -> PromptBuilder:
    global _prompt_builder
    if _prompt_builder is None:
        _prompt_builder = PromptBuilder()
    return _prompt_builder
