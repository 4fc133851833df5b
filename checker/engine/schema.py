"""
JSON schema validation for retcheck findings.

This module provides JSON schema definitions and validation helpers to ensure
findings conform to a well-defined contract for downstream tools.
"""

from pathlib import Path
from typing import Any, Dict, List

import jsonschema

# Current protocol version
PROTOCOL_VERSION = "1"
ENGINE_VERSION = "0.1.0"

_RANGE_SCHEMA = {
    "type": "object",
    "properties": {
        "startLine": {"type": "integer", "minimum": 1},
        "startCol": {"type": "integer", "minimum": 0},
        "endLine": {"type": "integer", "minimum": 1},
        "endCol": {"type": "integer", "minimum": 0}
    },
    "required": ["startLine", "startCol", "endLine", "endCol"],
    "additionalProperties": False,
    "description": "Line/column range (1-based lines, 0-based columns)"
}

# JSON Schema for a single Finding
FINDING_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "rule_id": {
            "type": "string",
            "description": "Rule identifier that generated this finding"
        },
        "message": {
            "type": "string",
            "description": "Human-readable description of the issue"
        },
        "file_path": {
            "type": "string",
            "description": "Absolute native file path where the issue was found"
        },
        "uri": {
            "type": "string",
            "description": "File URI"
        },
        "start_byte": {
            "type": "integer",
            "minimum": 0,
            "description": "Start byte offset of the issue"
        },
        "end_byte": {
            "type": "integer",
            "minimum": 0,
            "description": "End byte offset of the issue"
        },
        "range": _RANGE_SCHEMA,
        "severity": {
            "type": "string",
            "enum": ["info", "warn", "error"],
            "description": "Severity level of the finding"
        },
        "suppression_hint": {
            "type": "string",
            "description": "Comment text to suppress this rule"
        },
        "meta": {
            "type": "object",
            "description": "Optional metadata about the finding"
        }
    },
    "required": ["rule_id", "message", "file_path", "uri", "start_byte", "end_byte", "range", "severity"],
    "additionalProperties": False
}

# JSON Schema for the full runner output
RUNNER_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "retcheck.protocol": {
            "type": "string",
            "description": "Protocol version"
        },
        "engine_version": {
            "type": "string",
            "description": "Engine version"
        },
        "files_scanned": {
            "type": "integer",
            "minimum": 0,
            "description": "Number of files that were scanned"
        },
        "rules_run": {
            "type": "integer",
            "minimum": 0,
            "description": "Number of rules that were executed"
        },
        "findings": {
            "type": "array",
            "items": FINDING_JSON_SCHEMA,
            "description": "List of all findings"
        },
        "metrics": {
            "type": "object",
            "properties": {
                "parse_ms": {"type": "number", "minimum": 0},
                "rules_ms": {"type": "number", "minimum": 0},
                "total_ms": {"type": "number", "minimum": 0}
            },
            "required": ["parse_ms", "rules_ms", "total_ms"],
            "additionalProperties": False,
            "description": "Performance metrics"
        }
    },
    "required": ["retcheck.protocol", "engine_version", "files_scanned", "rules_run", "findings", "metrics"],
    "additionalProperties": False
}


def normalize_path_for_protocol(file_path: str) -> tuple[str, str]:
    """
    Normalize a file path for protocol output.

    Args:
        file_path: File path (relative or absolute)

    Returns:
        Tuple of (absolute_native_path, file_uri)
    """
    path = Path(file_path).resolve()
    return str(path), path.as_uri()


def byte_to_line_col(text: str, byte_offset: int) -> tuple[int, int]:
    """
    Convert byte offset to 1-based line, 0-based column.

    Args:
        text: Source text
        byte_offset: Byte offset (0-based) into the UTF-8 encoding of text

    Returns:
        Tuple of (line, col) where line is 1-based, col is 0-based (characters)
    """
    prefix = text.encode('utf-8')[:max(byte_offset, 0)].decode('utf-8', errors='ignore')
    line = prefix.count('\n') + 1
    last_newline = prefix.rfind('\n')
    col = len(prefix) if last_newline == -1 else len(prefix) - last_newline - 1
    return line, col


def create_range_from_bytes(text: str, start_byte: int, end_byte: int) -> dict:
    """
    Create a protocol range object from byte offsets.

    Args:
        text: Source text
        start_byte: Start byte offset
        end_byte: End byte offset

    Returns:
        Range dictionary with startLine, startCol, endLine, endCol
    """
    start_line, start_col = byte_to_line_col(text, start_byte)
    end_line, end_col = byte_to_line_col(text, end_byte)

    return {
        "startLine": start_line,
        "startCol": start_col,
        "endLine": end_line,
        "endCol": end_col
    }


def validate_findings(findings: List[Dict[str, Any]]) -> List[str]:
    """
    Validate a list of findings against the JSON schema.

    Args:
        findings: List of finding dictionaries to validate

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []
    for i, finding in enumerate(findings):
        try:
            jsonschema.validate(finding, FINDING_JSON_SCHEMA)
        except jsonschema.ValidationError as e:
            errors.append(f"Finding {i}: {e.message}")
    return errors


def validate_runner_output(output: Dict[str, Any]) -> List[str]:
    """
    Validate runner output against the schema.

    Args:
        output: Runner output dictionary

    Returns:
        List of validation errors (empty if valid)
    """
    try:
        jsonschema.validate(output, RUNNER_OUTPUT_SCHEMA)
    except jsonschema.ValidationError as e:
        return [f"Output validation: {e.message}"]
    return []


def findings_to_json(findings: List[Any], text_cache: Dict[str, str] = None) -> List[Dict[str, Any]]:
    """
    Convert Finding objects to JSON-serializable dictionaries.

    Args:
        findings: List of Finding objects
        text_cache: Optional cache of absolute file_path -> text content for range conversion

    Returns:
        List of finding dictionaries conforming to protocol v1
    """
    if text_cache is None:
        text_cache = {}

    result = []
    for finding in findings:
        abs_path, uri = normalize_path_for_protocol(finding.file)

        text = text_cache.get(abs_path, "")
        range_obj = create_range_from_bytes(text, finding.start_byte, finding.end_byte)

        finding_dict = {
            "rule_id": finding.rule,
            "message": finding.message,
            "file_path": abs_path,
            "uri": uri,
            "start_byte": finding.start_byte,
            "end_byte": finding.end_byte,
            "range": range_obj,
            "severity": finding.severity,
            "suppression_hint": f"// retcheck: ignore[{finding.rule}]",
        }

        if finding.meta:
            finding_dict["meta"] = finding.meta

        result.append(finding_dict)

    return result
