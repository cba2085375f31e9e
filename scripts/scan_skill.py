#!/usr/bin/env python3
"""
Security scan for local SKILL.md files

Usage:
    python scripts/scan_skill.py path/to/SKILL.md
    python scripts/scan_skill.py skills/ --output report.json --quiet
"""

import argparse
import logging
import os
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from skill_indexer.security_scanner import SecurityScanner

logging.basicConfig(level=logging.WARNING, format='%(levelname)s - %(message)s')


def main():
    parser = argparse.ArgumentParser(description='Scan local SKILL.md files for prompt injection and unsafe tooling')
    parser.add_argument('path', help='A SKILL.md file, or a directory searched recursively')
    parser.add_argument('--output', '-o', help='Write the JSON report here')
    parser.add_argument('--strict', action='store_true', help='Fail on any threat, not only unsafe skills')
    parser.add_argument('--quiet', action='store_true', help='Hide passing skills')

    args = parser.parse_args()
    path = Path(args.path)
    scanner = SecurityScanner()

    if path.is_file():
        result = scanner.scan_file(path)
        print(scanner.generate_report(result))
        if args.output:
            scanner.save(result.to_dict(), args.output)
        failed = not result.safe or (args.strict and result.threats)
        sys.exit(1 if failed else 0)

    elif path.is_dir():
        results = scanner.scan_directory(path)
        for skill in results['skills']:
            if args.quiet and skill['safe']:
                continue
            status = 'PASS' if skill['safe'] else 'FAIL'
            print(f"[{status}] {skill['path']} (risk {skill['riskScore']})")
        if args.output:
            scanner.save(results, args.output)

        print(f"\n{results['total']} scanned, {results['passed']} safe, {results['failed']} unsafe")
        sys.exit(1 if scanner.directory_failed(results, args.strict) else 0)

    else:
        print(f"No such file or directory: {path}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
