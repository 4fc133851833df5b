"""
CLI runner for the retcheck engine.

This module provides the main CLI entry point for loading adapters,
parsing files, running rules, and outputting results.
"""

import argparse
import concurrent.futures
import fnmatch
import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .types import RuleContext, Finding
from .registry import register_adapter, get_adapter, get_enabled_rules, discover_rules, get_rule_ids
from .config import load_config, find_config_file, get_rule_severity, EngineConfig
from .schema import validate_runner_output, findings_to_json, PROTOCOL_VERSION, ENGINE_VERSION
from .scopes import build_scopes
from .suppressions import filter_suppressed_findings, validate_suppression_patterns

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "typescript"
DEFAULT_RULE_PACKAGES = ["rules"]

SEVERITY_ORDER = {"info": 0, "warn": 1, "error": 2}


def setup_adapters():
    """Set up and register language adapters."""
    from .typescript_adapter import default_typescript_adapter
    register_adapter(default_typescript_adapter.language_id, default_typescript_adapter)


def collect_files(paths: List[str], language: str, exclude: List[str] = None) -> List[str]:
    """Collect files to analyze for a language, dropping paths matching ``exclude`` patterns."""
    adapter = get_adapter(language)
    if not adapter:
        logger.error("No adapter found for language '%s'", language)
        return []

    exclude = exclude or []
    all_files = []
    for file_path in adapter.list_files(paths):
        abs_path = str(Path(file_path).absolute())
        if any(fnmatch.fnmatch(abs_path, pattern) or fnmatch.fnmatch(file_path, pattern) for pattern in exclude):
            logger.debug("Excluded %s", file_path)
            continue
        all_files.append(abs_path)

    return sorted(set(all_files))  # Remove duplicates and sort


def _meets_threshold(finding: Finding, threshold: str) -> bool:
    return SEVERITY_ORDER.get(finding.severity, 0) >= SEVERITY_ORDER.get(threshold, 0)


def analyze_file(file_path: str, language: str, rules: List, config: EngineConfig,
                 debug_scopes: bool = False, content: Optional[str] = None) -> Tuple[List[Finding], float]:
    """Analyze a single file and return findings and parse time.

    Args:
        file_path: Path to the file (used for context even if content is provided)
        language: Language to analyze
        rules: List of rules to run
        config: Engine configuration
        debug_scopes: Whether to log scope statistics
        content: Optional file content (if None, reads from disk)
    """
    adapter = get_adapter(language)
    if not adapter:
        return [], 0.0

    if content is None:
        try:
            with open(file_path, 'r', encoding='utf-8', errors='ignore') as f:
                content = f.read()
        except OSError as e:
            logger.warning("Failed to read %s: %s", file_path, e)
            return [], 0.0

    # Parse the file - file_path selects the TS or TSX grammar
    parse_start = time.time()
    tree = adapter.parse(content, file_path=file_path)
    parse_time = (time.time() - parse_start) * 1000
    if tree is None:
        logger.warning("Failed to parse %s", file_path)
        return [], parse_time

    for line_num, error in validate_suppression_patterns(content):
        logger.warning("%s:%d: %s", file_path, line_num, error)

    # Check if any rule needs scopes
    scopes = None
    if any(rule.requires.scopes for rule in rules):
        try:
            scopes = build_scopes(adapter, tree, content)
        except Exception as e:
            logger.warning("Failed to build scopes for %s: %s", file_path, e)
            return [], parse_time
        if debug_scopes:
            stats = scopes.get_stats()
            logger.info("[scopes] %s: scopes=%d definitions=%d refs=%d unresolved=%d", file_path,
                        stats['scopes'], stats['definitions'], stats['refs'], stats['unresolved'])

    context = RuleContext(
        file_path=file_path,
        text=content,
        tree=tree,
        adapter=adapter,
        config=dict(config.language_configs.get(language, {})),
        scopes=scopes,
    )

    # Run each rule on this file
    findings = []
    for rule in rules:
        try:
            rule_findings = list(rule.visit(context))
        except Exception as e:
            logger.warning("Rule '%s' failed on %s: %s", rule.meta.id, file_path, e)
            continue

        for finding in rule_findings:
            # Apply configured severity if available
            finding = finding._replace(severity=get_rule_severity(finding.rule, config, finding.severity))
            if _meets_threshold(finding, config.severity_threshold):
                findings.append(finding)

    findings = filter_suppressed_findings(findings, content)
    findings.sort(key=lambda f: (f.start_byte, f.rule))

    # Apply per-file limit
    if len(findings) > config.max_findings_per_file:
        findings = findings[:config.max_findings_per_file]

    return findings, parse_time


def run_analysis_parallel(files: List[str], language: str, rules: List, config: EngineConfig,
                          jobs: int, debug_scopes: bool = False) -> Tuple[List[Finding], float]:
    """Run analysis on files with optional parallelization."""
    if jobs <= 1:
        results = []
        for file_path in files:
            try:
                results.append(analyze_file(file_path, language, rules, config, debug_scopes))
            except Exception as e:
                logger.warning("Failed to process %s: %s", file_path, e)
                results.append(([], 0.0))
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=jobs) as executor:
            futures = [
                executor.submit(analyze_file, file_path, language, rules, config, debug_scopes)
                for file_path in files
            ]
            # Collect results in file order
            results = []
            for file_path, future in zip(files, futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.warning("Failed to process %s: %s", file_path, e)
                    results.append(([], 0.0))

    all_findings = []
    total_parse_time = 0.0
    for findings, parse_time in results:
        total_parse_time += parse_time
        all_findings.extend(findings)

    # Apply total findings limit
    if len(all_findings) > config.max_total_findings:
        all_findings = all_findings[:config.max_total_findings]

    return all_findings, total_parse_time


def read_text_cache(files: List[str]) -> Dict[str, str]:
    """Read file contents keyed by absolute path, for range conversion."""
    text_cache = {}
    for file_path in files:
        try:
            with open(file_path, 'r', encoding='utf-8', errors='ignore') as f:
                text_cache[str(Path(file_path).resolve())] = f.read()
        except OSError as e:
            logger.debug("Could not read %s for output ranges: %s", file_path, e)
    return text_cache


def build_output(findings: List[Finding], files_count: int, rules_count: int, metrics: Dict[str, float],
                 text_cache: Dict[str, str] = None) -> Dict[str, Any]:
    """Build the protocol v1 output document."""
    return {
        "retcheck.protocol": PROTOCOL_VERSION,
        "engine_version": ENGINE_VERSION,
        "files_scanned": files_count,
        "rules_run": rules_count,
        "findings": findings_to_json(findings, text_cache),
        "metrics": metrics
    }


def format_output(findings: List[Finding], files_count: int, rules_count: int, metrics: Dict[str, float],
                  format_type: str, text_cache: Dict[str, str] = None) -> str:
    """Format output according to specified format."""
    if text_cache is None:
        text_cache = {}

    if format_type == "json":
        return json.dumps(build_output(findings, files_count, rules_count, metrics, text_cache), indent=2)

    elif format_type == "pretty":
        lines = []
        adapter = get_adapter(DEFAULT_LANGUAGE)

        # Group findings by file
        by_file: Dict[str, List[Finding]] = {}
        for finding in findings:
            by_file.setdefault(finding.file, []).append(finding)

        for file_path, file_findings in sorted(by_file.items()):
            lines.append(file_path)
            content = text_cache.get(str(Path(file_path).resolve()))
            for finding in file_findings:
                if adapter and content is not None:
                    line, col = adapter.byte_to_linecol(content, finding.start_byte)
                    location = f"{line}:{col}"
                else:
                    location = f"byte {finding.start_byte}"
                lines.append(f"  {location}  {finding.severity:<5}  {finding.message}  ({finding.rule})")
            lines.append("")

        lines.append(f"Scanned {files_count} files with {rules_count} rules, found {len(findings)} issues "
                     f"in {metrics['total_ms']:.1f}ms")
        return "\n".join(lines)

    else:
        raise ValueError(f"Unknown format: {format_type}")


def analyze_paths(paths: List[str], discovery_packages: List[str] = None,
                  rule_patterns: List[str] = None, config_path: str = None,
                  jobs: int = 1) -> Dict[str, Any]:
    """
    Library function to analyze paths.

    Args:
        paths: List of file/directory paths to analyze
        discovery_packages: Packages to discover rules from (default: ["rules"])
        rule_patterns: Rule patterns to run (default: enabled_rules from config)
        config_path: Path to config file (default: auto-detect)
        jobs: Number of worker threads

    Returns:
        Dictionary with analysis results in protocol v1 format
    """
    if discovery_packages is None:
        discovery_packages = DEFAULT_RULE_PACKAGES

    start_time = time.time()
    setup_adapters()

    if not config_path:
        config_path = find_config_file(paths[0] if paths else ".")
    config = load_config(config_path)

    discover_rules(discovery_packages)
    rules = get_enabled_rules(rule_patterns or config.enabled_rules, DEFAULT_LANGUAGE)
    files = collect_files(paths, DEFAULT_LANGUAGE, config.exclude)

    rules_start = time.time()
    findings, parse_ms = run_analysis_parallel(files, DEFAULT_LANGUAGE, rules, config, jobs)
    rules_ms = (time.time() - rules_start) * 1000

    metrics = {
        "parse_ms": parse_ms,
        "rules_ms": rules_ms,
        "total_ms": (time.time() - start_time) * 1000
    }
    return build_output(findings, len(files), len(rules), metrics, read_text_cache(files))


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="retcheck",
        description="Report calls whose declared non-void return value is discarded (TypeScript)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  retcheck --paths src/
  retcheck --paths app.ts --format pretty
  retcheck --paths frontend/ --jobs 4 --validate
        """
    )

    parser.add_argument(
        "--paths",
        nargs="+",
        required=True,
        help="Paths to files or directories to analyze"
    )

    parser.add_argument(
        "--discover",
        default=",".join(DEFAULT_RULE_PACKAGES),
        help="Comma-separated packages to discover rules from (default: rules)"
    )

    parser.add_argument(
        "--rules",
        help="Rule patterns to run: '*' for all, or comma-separated IDs/patterns (default: from config)"
    )

    parser.add_argument(
        "--jobs",
        type=int,
        default=0,
        help="Number of parallel jobs (0=auto, 1=sequential, N=parallel)"
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate JSON output against schema"
    )

    parser.add_argument(
        "--format",
        choices=["json", "pretty"],
        default="json",
        help="Output format: json (protocol v1) or pretty (human-readable)"
    )

    parser.add_argument(
        "--config",
        help="Path to configuration file"
    )

    parser.add_argument(
        "--exit-zero",
        action="store_true",
        help="Exit with status 0 even when findings are reported"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--debug-scopes",
        action="store_true",
        help="Log scope statistics for each file"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO if args.debug_scopes else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    total_start = time.time()

    setup_adapters()

    config_path = args.config
    if not config_path:
        config_path = find_config_file(args.paths[0] if args.paths else ".")
    config = load_config(config_path)
    logger.debug("Using config: %s", config_path or "defaults")

    discovery_packages = [pkg.strip() for pkg in args.discover.split(",") if pkg.strip()]
    rules_discovered = discover_rules(discovery_packages)
    logger.debug("Discovered %d rules from %s: %s", rules_discovered, discovery_packages, get_rule_ids())

    if args.rules is None:
        rule_patterns = config.enabled_rules
    elif args.rules == "*":
        rule_patterns = ["*"]
    else:
        rule_patterns = [pattern.strip() for pattern in args.rules.split(",")]

    rules = get_enabled_rules(rule_patterns, DEFAULT_LANGUAGE)
    logger.debug("Running %d rules: %s", len(rules), [r.meta.id for r in rules])

    files = collect_files(args.paths, DEFAULT_LANGUAGE, config.exclude)
    logger.debug("Found %d files to analyze", len(files))

    if not files:
        print("No files found to analyze", file=sys.stderr)
        sys.exit(2)

    jobs = args.jobs
    if jobs == 0:
        jobs = min(4, len(files), os.cpu_count() or 1)

    rules_start = time.time()
    findings, parse_time_ms = run_analysis_parallel(files, DEFAULT_LANGUAGE, rules, config, jobs, args.debug_scopes)
    rules_time_ms = (time.time() - rules_start) * 1000

    metrics = {
        "parse_ms": parse_time_ms,
        "rules_ms": rules_time_ms,
        "total_ms": (time.time() - total_start) * 1000
    }

    text_cache = read_text_cache(files)
    output = format_output(findings, len(files), len(rules), metrics, args.format, text_cache)

    if args.validate and args.format == "json":
        errors = validate_runner_output(json.loads(output))
        if errors:
            print("JSON validation errors:", file=sys.stderr)
            for error in errors:
                print(f"  {error}", file=sys.stderr)
            sys.exit(1)

    print(output)

    if findings and not args.exit_zero:
        sys.exit(1)


if __name__ == "__main__":
    main()
