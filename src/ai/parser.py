"""
Best-effort extraction of structured fields from LLM text responses.

Models do not reliably follow the requested output format, so every field
has a default and the raw response is always returned as ``analysis``.
Nothing here raises on malformed input.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from src.constants import DEFAULT_LANGUAGE

logger = logging.getLogger(__name__)

FENCED_BLOCK = re.compile(r"```[\w+#.-]*[ \t]*\n(.*?)\n?```", re.DOTALL)
ISSUE_SPLIT = re.compile(r"\n\s*\d+\.|\n\s*-|\n\s*\*|\n\s*•")
BARE_LABEL = re.compile(r"^(critical|warning|suggestion)s?:?$", re.IGNORECASE)
SCORE_PATTERN = re.compile(r"(?:CODE QUALITY SCORE|QUALITY SCORE)[\s:*]*([0-9]+)", re.IGNORECASE)

# Heading aliases accepted for each field
REFACTOR_SECTIONS = {
    "changes": ("CHANGES MADE", "IMPROVEMENTS"),
    "performance": ("PERFORMANCE IMPROVEMENTS", "OPTIMIZATIONS"),
    "breaking": ("BREAKING CHANGES", "API CHANGES"),
    "recommendations": ("RECOMMENDATIONS", "FUTURE CONSIDERATIONS"),
}
REFACTOR_HEADINGS = ("REFACTORED CODE",)

BUG_SECTIONS = {
    "critical": ("CRITICAL ISSUES", "SECURITY VULNERABILITIES"),
    "warnings": ("WARNINGS", "ISSUES"),
    "suggestions": ("SUGGESTIONS", "RECOMMENDATIONS"),
}
BUG_HEADINGS = ("CODE QUALITY SCORE", "QUALITY SCORE", "FIXED CODE", "EXPLANATION")

MULTI_SECTIONS = {
    "system_improvements": ("SYSTEM_IMPROVEMENTS",),
    "breaking_changes": ("BREAKING_CHANGES",),
    "migration_guide": ("MIGRATION_GUIDE",),
    "testing_recommendations": ("TESTING_RECOMMENDATIONS",),
    "cross_file_dependencies": ("CROSS_FILE_DEPENDENCIES",),
}

REFACTOR_DEFAULTS = {
    "changes": "Code refactored with improved structure and readability",
    "performance": "General performance improvements applied",
    "breaking": "No breaking changes",
    "recommendations": "Consider adding unit tests and documentation",
}

MULTI_DEFAULTS = {
    "system_improvements": "Overall system architecture improved",
    "breaking_changes": "No breaking changes across the file system",
    "migration_guide": "Replace original files with refactored versions",
    "testing_recommendations": "Test all refactored files together",
    "cross_file_dependencies": "No changes to cross-file dependencies",
}

FILE_CHANGES_MADE = "Refactored with improved structure and readability"
FILE_DEPENDENCIES_UPDATED = "No breaking changes to dependencies"

SECURITY_KEYWORDS = ("security", "xss", "injection", "vulnerability")
PERFORMANCE_KEYWORDS = ("performance", "optimization", "memory", "algorithm")

DEFAULT_QUALITY_SCORE = 75


def _heading_regex(labels: Iterable[str]) -> re.Pattern:
    """
    Match a heading line for any of ``labels``.

    Tolerates markdown ``#`` prefixes, list numbering, bullets and ``**``
    emphasis; spaces and underscores in a label are interchangeable. The
    ``rest`` group holds any text after the heading on the same line.
    """
    alternatives = "|".join(
        re.escape(label.replace("_", " ")).replace(r"\ ", "[ _]") for label in labels
    )
    return re.compile(
        rf"^\s*(?:#+\s*)?(?:\d+[.)]\s*)?(?:[-*•]\s+)?\**\s*(?:{alternatives})\b\s*\**\s*:?\s*\**\s*(?P<rest>.*)$",
        re.IGNORECASE,
    )


def extract_last_code_block(text: str) -> Optional[str]:
    """Content of the last fenced code block, or None when there is none."""
    blocks = FENCED_BLOCK.findall(text or "")
    if not blocks:
        return None
    return blocks[-1]


def extract_section(
    text: str,
    labels: Sequence[str],
    stop_labels: Sequence[str] = (),
) -> Optional[str]:
    """
    Body of the first section headed by one of ``labels``.

    Leading blank lines after the heading are skipped; the body then runs
    to the next blank line, code fence, markdown heading or any heading in
    ``stop_labels``.
    """
    if not text:
        return None

    start = _heading_regex(labels)
    stop = _heading_regex(tuple(labels) + tuple(stop_labels))
    lines = text.splitlines()

    for i, line in enumerate(lines):
        match = start.match(line)
        if not match:
            continue

        body: List[str] = []
        rest = match.group("rest").strip()
        if rest:
            body.append(rest)

        for following in lines[i + 1:]:
            stripped = following.strip()
            if not stripped:
                if body:
                    break
                continue
            if stripped.startswith("```") or stripped.startswith("#") or stop.match(following):
                break
            body.append(following.rstrip())

        result = "\n".join(body).strip()
        return result or None

    return None


def split_issues(text: Optional[str]) -> List[str]:
    """Split a section body into individual numbered or bulleted items."""
    if not text:
        return []
    items = (item.strip() for item in ISSUE_SPLIT.split("\n" + text))
    return [item for item in items if item and not BARE_LABEL.match(item)]


def _mentions(item: str, keywords: Sequence[str]) -> bool:
    lowered = item.lower()
    return any(word in lowered for word in keywords)


def _line_count(code: str) -> int:
    return len(code.split("\n"))


def _comment_count(code: str) -> int:
    return len(re.findall(r"//|#", code))


def _has_error_handling(code: str) -> bool:
    return "try" in code and ("catch" in code or "except" in code)


def improvement_score(original: str, refactored: str) -> int:
    """Heuristic 0..100 score for a single refactored file."""
    if not original or not refactored:
        return 0

    original_lines = _line_count(original)
    refactored_lines = _line_count(refactored)
    score = 50

    if refactored_lines < original_lines * 0.8:
        score += 10
    elif refactored_lines > original_lines * 1.2:
        score -= 10

    comment_ratio = _comment_count(refactored) / refactored_lines
    if 0.1 < comment_ratio < 0.3:
        score += 15

    if _has_error_handling(refactored):
        score += 10
    if "const" in refactored and "let" in refactored:
        score += 5
    if "async" in refactored or "await" in refactored:
        score += 5

    return min(100, max(0, score))


def _file_score(original: str, refactored: str) -> int:
    original_lines = _line_count(original)
    refactored_lines = _line_count(refactored)
    score = 50

    if original_lines * 0.5 < refactored_lines < original_lines * 0.9:
        score += 15
    elif refactored_lines > original_lines * 1.3:
        score -= 10

    comment_ratio = _comment_count(refactored) / refactored_lines
    if 0.05 < comment_ratio < 0.2:
        score += 10

    if "const" in refactored and "let" in refactored:
        score += 5
    if _has_error_handling(refactored):
        score += 10

    return min(100, score)


@dataclass
class RefactorResult:
    refactored_code: str
    changes_made: str
    performance_improvements: str
    breaking_changes: str
    recommendations: str
    analysis: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "refactoredCode": self.refactored_code,
            "changesMade": self.changes_made,
            "performanceImprovements": self.performance_improvements,
            "breakingChanges": self.breaking_changes,
            "recommendations": self.recommendations,
            "analysis": self.analysis,
        }


@dataclass
class BugReport:
    fixed_code: str
    critical_issues: List[str]
    warnings: List[str]
    suggestions: List[str]
    code_quality_score: int
    security_issues: List[str]
    performance_issues: List[str]
    analysis: str

    @property
    def total_issues(self) -> int:
        return len(self.critical_issues) + len(self.warnings) + len(self.suggestions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fixedCode": self.fixed_code,
            "criticalIssues": self.critical_issues,
            "warnings": self.warnings,
            "suggestions": self.suggestions,
            "codeQualityScore": self.code_quality_score,
            "securityIssues": self.security_issues,
            "performanceIssues": self.performance_issues,
            "totalIssues": self.total_issues,
            "analysis": self.analysis,
        }


@dataclass
class RefactoredFile:
    name: str
    language: str
    original_content: str
    refactored_code: str
    changes_made: str = FILE_CHANGES_MADE
    dependencies_updated: str = FILE_DEPENDENCIES_UPDATED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "language": self.language,
            "originalContent": self.original_content,
            "refactoredCode": self.refactored_code,
            "changesMade": self.changes_made,
            "dependenciesUpdated": self.dependencies_updated,
        }


@dataclass
class MultiFileResult:
    refactored_files: List[RefactoredFile] = field(default_factory=list)
    system_improvements: str = MULTI_DEFAULTS["system_improvements"]
    breaking_changes: str = MULTI_DEFAULTS["breaking_changes"]
    migration_guide: str = MULTI_DEFAULTS["migration_guide"]
    testing_recommendations: str = MULTI_DEFAULTS["testing_recommendations"]
    cross_file_dependencies: str = MULTI_DEFAULTS["cross_file_dependencies"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "refactoredFiles": [f.to_dict() for f in self.refactored_files],
            "systemImprovements": self.system_improvements,
            "breakingChanges": self.breaking_changes,
            "migrationGuide": self.migration_guide,
            "testingRecommendations": self.testing_recommendations,
            "crossFileDependencies": self.cross_file_dependencies,
        }


class ResponseParser:
    """Turns raw model output into the response shapes the API returns."""

    def parse_refactor(self, response: str) -> RefactorResult:
        response = response or ""
        code = extract_last_code_block(response)
        stop = REFACTOR_HEADINGS + tuple(a for aliases in REFACTOR_SECTIONS.values() for a in aliases)

        sections = {
            key: extract_section(response, aliases, stop) or REFACTOR_DEFAULTS[key]
            for key, aliases in REFACTOR_SECTIONS.items()
        }

        return RefactorResult(
            refactored_code=(code if code is not None else response).strip(),
            changes_made=sections["changes"],
            performance_improvements=sections["performance"],
            breaking_changes=sections["breaking"],
            recommendations=sections["recommendations"],
            analysis=response,
        )

    def parse_bug_report(self, response: str) -> BugReport:
        response = response or ""
        code = extract_last_code_block(response)
        stop = BUG_HEADINGS + tuple(a for aliases in BUG_SECTIONS.values() for a in aliases)

        critical = split_issues(extract_section(response, BUG_SECTIONS["critical"], stop))
        warnings = split_issues(extract_section(response, BUG_SECTIONS["warnings"], stop))
        suggestions = split_issues(extract_section(response, BUG_SECTIONS["suggestions"], stop))

        score_match = SCORE_PATTERN.search(response)
        score = int(score_match.group(1)) if score_match else DEFAULT_QUALITY_SCORE

        return BugReport(
            fixed_code=(code or "").strip(),
            critical_issues=critical,
            warnings=warnings,
            suggestions=suggestions,
            code_quality_score=min(100, max(0, score)),
            security_issues=[i for i in critical if _mentions(i, SECURITY_KEYWORDS)],
            performance_issues=[i for i in warnings if _mentions(i, PERFORMANCE_KEYWORDS)],
            analysis=response,
        )

    def parse_multi_file(
        self,
        response: str,
        files: Sequence[Dict[str, str]],
    ) -> MultiFileResult:
        """
        Pull each file's refactored code and the system-wide sections.

        A file's code is the first fenced block after its ``FILE: <name>``
        header and before the next ``FILE:`` header. Files the model did
        not return are left out.
        """
        response = response or ""
        refactored: List[RefactoredFile] = []

        for f in files:
            header = re.search(rf"FILE:\s*{re.escape(f['name'])}\s*$", response, re.IGNORECASE | re.MULTILINE)
            if not header:
                logger.debug(f"No refactored code returned for {f['name']}")
                continue

            segment = response[header.end():]
            next_header = re.search(r"^\s*FILE:", segment, re.IGNORECASE | re.MULTILINE)
            if next_header:
                segment = segment[:next_header.start()]

            block = FENCED_BLOCK.search(segment)
            if not block:
                continue

            refactored.append(RefactoredFile(
                name=f["name"],
                language=f.get("language") or DEFAULT_LANGUAGE,
                original_content=f["content"],
                refactored_code=block.group(1),
            ))

        stop = tuple(a for aliases in MULTI_SECTIONS.values() for a in aliases) + ("FILE",)
        sections = {
            key: extract_section(response, aliases, stop) or MULTI_DEFAULTS[key]
            for key, aliases in MULTI_SECTIONS.items()
        }

        return MultiFileResult(refactored_files=refactored, **sections)

    @staticmethod
    def multi_file_score(
        files: Sequence[Dict[str, str]],
        refactored: Sequence[RefactoredFile],
    ) -> int:
        """Average per-file score over all submitted files, 0..100."""
        if not files or not refactored:
            return 0

        by_name = {r.name: r for r in refactored}
        total = 0
        for f in files:
            match = by_name.get(f["name"])
            if match is None:
                continue
            total += _file_score(f["content"], match.refactored_code)

        return round(total / (len(files) * 100) * 100)


_response_parser: Optional[ResponseParser] = None


def get_response_parser() -> ResponseParser:
    global _response_parser
    if _response_parser is None:
        _response_parser = ResponseParser()
    return _response_parser
