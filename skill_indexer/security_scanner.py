"""
Security scanner for SKILL.md content

Heuristic triage only: a clean result means no known pattern matched, not
that the skill is safe to run.
"""

import json
import re
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Pattern, Union
from urllib.parse import urlparse

from .errors import SkillParseError
from .models import Severity, Threat, SecurityScanResult, SEVERITY_WEIGHTS
from .skill_parser import SkillParser

logger = logging.getLogger(__name__)

SAFE_THRESHOLD = 50
MAX_SCORE = 100


@dataclass(frozen=True)
class ThreatRule:
    pattern: Pattern
    severity: Severity
    type: str
    message: str
    details: Optional[str] = None


def _rule(pattern: str, severity: Severity, type_: str, message: str,
          details: Optional[str] = None, flags: int = re.IGNORECASE) -> ThreatRule:
    return ThreatRule(re.compile(pattern, flags), severity, type_, message, details)


INJECTION_DETAILS = "This pattern is commonly used in prompt injection attacks"

PROMPT_INJECTION_RULES = [
    _rule(r'\b(ignore|disregard|forget|override)\s+(previous|all|above|prior)\s+'
          r'(instructions?|prompts?|rules?)',
          Severity.CRITICAL, 'prompt_injection', 'Potential prompt injection: "{match}"',
          INJECTION_DETAILS),
    _rule(r'\bbypass\s+(security|safety|restrictions?|rules?)',
          Severity.CRITICAL, 'prompt_injection', 'Potential prompt injection: "{match}"',
          INJECTION_DETAILS),
    _rule(r'\byou\s+are\s+now\s+(a|an|the)\b',
          Severity.HIGH, 'prompt_injection', 'Potential prompt injection: "{match}"',
          INJECTION_DETAILS),
    _rule(r'\bnew\s+(instructions?|role|persona|character)\b',
          Severity.HIGH, 'prompt_injection', 'Potential prompt injection: "{match}"',
          INJECTION_DETAILS),
    _rule(r'^\s*system\s*:', Severity.HIGH, 'prompt_injection',
          'Potential prompt injection: "{match}"', INJECTION_DETAILS,
          flags=re.IGNORECASE | re.MULTILINE),
    _rule(r'\[SYSTEM\]', Severity.HIGH, 'prompt_injection',
          'Potential prompt injection: "{match}"', INJECTION_DETAILS),
]

HIDDEN_CHARACTER_RULES = [
    _rule(r'[\u200b-\u200d\ufeff]', Severity.HIGH, 'hidden_characters',
          'Hidden zero-width characters detected ({count} instances)',
          'These invisible characters can hide malicious instructions', flags=0),
    _rule(r'\s{50,}', Severity.MEDIUM, 'hidden_characters',
          'Excessive whitespace detected',
          'Long whitespace sequences can hide instructions off-screen', flags=0),
]

BASE64_RULES = [
    _rule(r'[A-Za-z0-9+/]{40,}={0,2}', Severity.MEDIUM, 'base64_content',
          'Possible base64 encoded content detected ({count} instances)',
          'Base64 encoding can obfuscate malicious instructions', flags=0),
]

# Reported once, whichever matches first
FETCH_RULES = [
    _rule(r'\b(fetch|download|curl|wget)\s+', Severity.HIGH, 'external_resource',
          'Remote resource fetching detected',
          'Content attempts to fetch external resources at runtime'),
    _rule(r'requests\.get\s*\(', Severity.HIGH, 'external_resource',
          'Remote resource fetching detected',
          'Content attempts to fetch external resources at runtime'),
    _rule(r'urllib\.request', Severity.HIGH, 'external_resource',
          'Remote resource fetching detected',
          'Content attempts to fetch external resources at runtime'),
]

URL_RE = re.compile(r'https?://[^\s<>"{}|\\^`\[\]]+', re.IGNORECASE)
SAFE_DOMAINS = (
    'github.com',
    'githubusercontent.com',
    'docs.anthropic.com',
    'python.org',
    'pypi.org',
)

DANGEROUS_TOOLS = ('shell', 'exec', 'execute', 'file_write', 'network', 'subprocess')
WILDCARD_TOOLS = ('*', 'all')

PYTHON_SCRIPT_RULES = [
    _rule(r'^import\s+(os|sys|subprocess)\b', Severity.HIGH, 'dangerous_import',
          'Dangerous import/function: {match}', 'This can execute arbitrary code',
          flags=re.MULTILINE),
    _rule(r'^from\s+(os|sys|subprocess)\s+import', Severity.HIGH, 'dangerous_import',
          'Dangerous import/function: {match}', 'This can execute arbitrary code',
          flags=re.MULTILINE),
    _rule(r'\beval\s*\(', Severity.CRITICAL, 'dangerous_import',
          'Dangerous import/function: {match}', 'This can execute arbitrary code', flags=0),
    _rule(r'\bexec\s*\(', Severity.CRITICAL, 'dangerous_import',
          'Dangerous import/function: {match}', 'This can execute arbitrary code', flags=0),
    _rule(r'\b__import__\s*\(', Severity.CRITICAL, 'dangerous_import',
          'Dangerous import/function: {match}', 'This can execute arbitrary code', flags=0),
]
ENV_ACCESS_RE = re.compile(r'os\.environ|os\.getenv|sys\.argv')
PEP723_RE = re.compile(r'# /// script\n(.*?)\n# ///', re.DOTALL)
PEP723_DEPS_RE = re.compile(r'dependencies\s*=\s*\[(.*?)\]', re.DOTALL)

SCRIPT_SUFFIXES = ('.py',)


def match_rules(content: str, rules: Iterable[ThreatRule], first_only: bool = False,
                location: Optional[str] = None) -> List[Threat]:
    """Apply a rule table; every matching rule yields one threat."""
    threats = []
    for rule in rules:
        matches = [m.group(0) for m in rule.pattern.finditer(content)]
        if not matches:
            continue
        threats.append(Threat(
            type=rule.type,
            severity=rule.severity,
            message=rule.message.format(match=matches[0].strip(), count=len(matches)),
            details=rule.details,
            location=location,
        ))
        if first_only:
            break
    return threats


def match_rules_each(content: str, rules: Iterable[ThreatRule],
                     location: Optional[str] = None) -> List[Threat]:
    """Apply a rule table; every individual match yields one threat."""
    threats = []
    for rule in rules:
        for m in rule.pattern.finditer(content):
            threats.append(Threat(
                type=rule.type,
                severity=rule.severity,
                message=rule.message.format(match=m.group(0).strip(), count=1),
                details=rule.details,
                location=location,
            ))
    return threats


def _is_safe_url(url: str) -> bool:
    host = (urlparse(url).hostname or '').lower()
    return any(host == d or host.endswith('.' + d) for d in SAFE_DOMAINS)


def detect_prompt_injection(content: str) -> List[Threat]:
    return match_rules(content, PROMPT_INJECTION_RULES)


def detect_hidden_characters(content: str) -> List[Threat]:
    return match_rules(content, HIDDEN_CHARACTER_RULES)


def detect_base64_content(content: str) -> List[Threat]:
    return match_rules(content, BASE64_RULES)


def detect_external_resources(content: str) -> List[Threat]:
    threats = []
    suspicious = [url for url in URL_RE.findall(content) if not _is_safe_url(url)]
    if suspicious:
        more = '...' if len(suspicious) > 3 else ''
        threats.append(Threat(
            type='external_resource',
            severity=Severity.MEDIUM,
            message=f'External URLs detected ({len(suspicious)})',
            details=f"URLs: {', '.join(suspicious[:3])}{more}",
        ))
    threats.extend(match_rules(content, FETCH_RULES, first_only=True))
    return threats


def scan_allowed_tools(allowed_tools: Union[str, List[str], None]) -> List[Threat]:
    """Flag wildcard grants (critical) and dangerous tool names (high)."""
    if not allowed_tools:
        return []
    tools = [allowed_tools] if isinstance(allowed_tools, str) else allowed_tools

    threats = []
    for tool in tools:
        normalized = tool.strip().lower()
        if normalized in WILDCARD_TOOLS:
            threats.append(Threat(
                type='dangerous_tool_permission',
                severity=Severity.CRITICAL,
                message='Wildcard tool permission detected',
                details=f'allowed-tools: {tool.strip()} grants unrestricted access to all tools',
                location='allowed-tools field',
            ))
        if any(dt in normalized for dt in DANGEROUS_TOOLS):
            threats.append(Threat(
                type='dangerous_tool_permission',
                severity=Severity.HIGH,
                message=f'Dangerous tool permission: {tool.strip()}',
                details='This tool can execute arbitrary code or modify files',
                location='allowed-tools field',
            ))
    return threats


def scan_python_script(script: str, script_path: str) -> List[Threat]:
    """Scan a bundled Python script for supply-chain and execution risks."""
    threats = []

    metadata = PEP723_RE.search(script)
    deps_match = PEP723_DEPS_RE.search(metadata.group(1)) if metadata else None
    if deps_match:
        deps = [
            d.strip().strip('#').strip().strip('\'"')
            for d in deps_match.group(1).split(',')
        ]
        for dep in filter(None, deps):
            if not re.search(r'[=~><]', dep):
                threats.append(Threat(
                    type='unpinned_dependency',
                    severity=Severity.CRITICAL,
                    message=f'Unpinned dependency: {dep}',
                    details='A later malicious release would be picked up silently',
                    location=script_path,
                ))
            elif '==' not in dep:
                threats.append(Threat(
                    type='unpinned_dependency',
                    severity=Severity.HIGH,
                    message=f'Loosely pinned dependency: {dep}',
                    details='Use == for exact version pinning',
                    location=script_path,
                ))

    threats.extend(match_rules_each(script, PYTHON_SCRIPT_RULES, location=script_path))

    if ENV_ACCESS_RE.search(script):
        threats.append(Threat(
            type='suspicious_pattern',
            severity=Severity.MEDIUM,
            message='Environment variable access detected',
            details='Verify the script does not exfiltrate secrets',
            location=script_path,
        ))
    return threats


def calculate_risk_score(threats: Iterable[Threat]) -> int:
    return min(sum(SEVERITY_WEIGHTS[t.severity] for t in threats), MAX_SCORE)


def build_result(threats: List[Threat]) -> SecurityScanResult:
    score = calculate_risk_score(threats)
    return SecurityScanResult(safe=score < SAFE_THRESHOLD, risk_score=score, threats=threats)


def scan_skill_content(content: str) -> SecurityScanResult:
    """Run the four content detectors over raw SKILL.md text."""
    threats = (
        detect_prompt_injection(content)
        + detect_hidden_characters(content)
        + detect_base64_content(content)
        + detect_external_resources(content)
    )
    return build_result(threats)


def scan_skill(content: str,
               allowed_tools: Union[str, List[str], None] = None) -> SecurityScanResult:
    """Content detectors plus the tool-permission scan, scored together."""
    result = scan_skill_content(content)
    return build_result(result.threats + scan_allowed_tools(allowed_tools))


SEVERITY_ICONS = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🔵",
}


def format_security_report(result: SecurityScanResult) -> str:
    """Human-readable triage report."""
    if not result.threats:
        return "✓ No known threat patterns matched (heuristic scan, not a guarantee)"

    lines = [
        f"Security triage: {'LOW RISK' if result.safe else 'NEEDS REVIEW'}",
        f"   Risk Score: {result.risk_score}/100",
        f"   Threats Found: {len(result.threats)}",
        "",
    ]
    for threat in result.threats:
        icon = SEVERITY_ICONS[threat.severity]
        lines.append(f"   {icon} [{threat.severity.value.upper()}] {threat.message}")
        if threat.details:
            lines.append(f"      {threat.details}")
        if threat.location:
            lines.append(f"      Location: {threat.location}")
    return '\n'.join(lines)


class SecurityScanner:
    """Scan SKILL.md files and their bundled scripts on disk"""

    def __init__(self, parser: Optional[SkillParser] = None):
        self.parser = parser or SkillParser()

    def scan(self, content: str) -> SecurityScanResult:
        allowed_tools = None
        try:
            allowed_tools = self.parser.parse(content).allowed_tools
        except SkillParseError as e:
            logger.debug(f"Scanning without tool permissions: {e}")
        return scan_skill(content, allowed_tools)

    def scan_file(self, skill_path: Path) -> SecurityScanResult:
        content = Path(skill_path).read_text(encoding='utf-8')
        result = self.scan(content)

        threats = list(result.threats)
        scripts_dir = Path(skill_path).parent / 'scripts'
        if scripts_dir.is_dir():
            for script_file in sorted(scripts_dir.rglob('*')):
                if not script_file.is_file() or script_file.suffix not in SCRIPT_SUFFIXES:
                    continue
                try:
                    script = script_file.read_text(encoding='utf-8')
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning(f"Cannot read {script_file}: {e}")
                    continue
                threats.extend(scan_python_script(script, str(script_file)))
        return build_result(threats)

    def scan_directory(self, skills_dir: Path) -> Dict:
        """Scan every SKILL.md under a directory"""
        skills_dir = Path(skills_dir)
        results = {
            'total': 0,
            'passed': 0,
            'failed': 0,
            'skills': [],
        }
        for skill_file in sorted(skills_dir.rglob('SKILL.md')):
            results['total'] += 1
            result = self.scan_file(skill_file)
            results['skills'].append({
                'path': str(skill_file.relative_to(skills_dir)),
                **result.to_dict(),
            })
            if result.safe:
                results['passed'] += 1
            else:
                results['failed'] += 1
        return results

    @staticmethod
    def directory_failed(results: Dict, strict: bool = False) -> bool:
        """Whether a scan_directory() result fails: any unsafe skill, or any threat when strict."""
        if results['failed']:
            return True
        return strict and any(skill['threats'] for skill in results['skills'])

    @staticmethod
    def generate_report(result: SecurityScanResult) -> str:
        return format_security_report(result)

    @staticmethod
    def save(results: Dict, output_file: Path):
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(results, f, indent=2, ensure_ascii=False)
