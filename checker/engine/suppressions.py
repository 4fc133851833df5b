"""
Suppression system for retcheck rules.

This module parses suppression comments in source code to selectively
disable rule findings:

    foo();  // retcheck: ignore[errors.unused_return_value]
    // retcheck: ignore-next-line[errors.*]
    foo();
"""

import fnmatch
import re
from typing import Dict, List, Set, Tuple


_SUPPRESSION_RE = re.compile(
    r'//\s*retcheck:\s*(ignore|ignore-next-line)\s*\[\s*([^\]]*)\]',
    re.IGNORECASE,
)


class SuppressionParser:
    """Parser for retcheck suppression comments."""

    def __init__(self, text: str):
        self.text = text
        self.lines = text.split('\n')
        self._encoded = text.encode('utf-8')
        self._parse_suppressions()

    def _parse_suppressions(self):
        """Parse all suppression comments in the text."""
        self.line_suppressions: Dict[int, Set[str]] = {}  # line_number -> {rule_patterns}

        for line_num, line in enumerate(self.lines, 1):
            for match in _SUPPRESSION_RE.finditer(line):
                target = line_num + 1 if match.group(1).lower() == 'ignore-next-line' else line_num
                patterns = {p.strip() for p in match.group(2).split(',') if p.strip()}
                if patterns:
                    self.line_suppressions.setdefault(target, set()).update(patterns)

    def is_suppressed(self, rule_id: str, start_byte: int) -> bool:
        """Check if a rule finding should be suppressed."""
        line_num = self._byte_to_line(start_byte)

        for pattern in self.line_suppressions.get(line_num, ()):
            if rule_id == pattern or fnmatch.fnmatch(rule_id, pattern):
                return True

        return False

    def _byte_to_line(self, byte_offset: int) -> int:
        """Convert byte offset to 1-based line number."""
        if byte_offset < 0:
            return 1
        return self._encoded[:byte_offset].count(b'\n') + 1

    def get_suppression_stats(self) -> Dict[str, int]:
        """Get statistics about the suppressions in the file."""
        all_patterns = set()
        for patterns in self.line_suppressions.values():
            all_patterns.update(patterns)

        return {
            "suppressed_lines": len(self.line_suppressions),
            "unique_patterns": len(all_patterns),
            "total_suppressions": sum(len(patterns) for patterns in self.line_suppressions.values())
        }


def filter_suppressed_findings(findings: List, text: str) -> List:
    """Filter out suppressed findings from a list."""
    if not findings:
        return findings

    parser = SuppressionParser(text)
    return [
        finding for finding in findings
        if not parser.is_suppressed(finding.rule, finding.start_byte)
    ]


def validate_suppression_patterns(text: str) -> List[Tuple[int, str]]:
    """
    Validate suppression comments in text and return any errors.

    Returns:
        List of (line_number, error_message) tuples
    """
    errors = []

    for line_num, line in enumerate(text.split('\n'), 1):
        for match in _SUPPRESSION_RE.finditer(line):
            if not match.group(2).strip():
                errors.append((line_num, "Empty suppression pattern"))

        if re.search(r'//\s*retcheck:\s*ignore(-next-line)?\s*\[[^\]]*$', line, re.IGNORECASE):
            errors.append((line_num, "Unclosed suppression bracket"))

    return errors
