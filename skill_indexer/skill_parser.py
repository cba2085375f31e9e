"""
SKILL.md parser
Extracts and validates the YAML frontmatter of SKILL.md files
"""

import json
import re
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
import jsonschema

from .errors import SkillParseError

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema" / "skill.schema.json"

FRONTMATTER_RE = re.compile(r'^---[ \t]*\n(.*?)\n---', re.DOTALL)
KEY_RE = re.compile(r'^([A-Za-z_][\w.-]*)\s*:(?:\s+(.*)|\s*)$')
BLOCK_SCALAR_RE = re.compile(r'^([|>])([+-]?)\d*$')

REQUIRED_FIELDS = ('name', 'description')


@dataclass
class ParsedSkill:
    name: str
    description: str
    compatibility: Optional[str] = None
    allowed_tools: Optional[List[str]] = None
    tags: List[str] = field(default_factory=list)
    version: Optional[str] = None
    license: Optional[str] = None
    author: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


def normalize_content(content: str) -> str:
    """Strip BOM, convert CRLF to LF and trim."""
    return content.lstrip('\ufeff').replace('\r\n', '\n').strip()


def normalize_allowed_tools(value: Union[str, List[str], None]) -> Optional[List[str]]:
    if not value:
        return None
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return [t for t in re.split(r'[\s,]+', value) if t]


def normalize_tags(value: Union[str, List[str], None]) -> List[str]:
    if not value:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return [t.strip() for t in value.split(',') if t.strip()]


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def _parse_inline_array(value: str) -> List[str]:
    inner = value[1:-1].strip()
    if not inner:
        return []
    return [_strip_quotes(part.strip()) for part in inner.split(',')]


def _coerce(value: Any) -> Any:
    """Turn YAML scalars (numbers, dates, booleans) into strings."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float, date, datetime)):
        return str(value)
    if isinstance(value, list):
        return [_coerce(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _coerce(v) for k, v in value.items()}
    return str(value)


def _join_block(lines: List[str], style: str, chomp: str) -> str:
    if style == '>':
        paragraphs, current = [], []
        for line in lines:
            if line.strip():
                current.append(line.strip())
            else:
                paragraphs.append(' '.join(current))
                current = []
        paragraphs.append(' '.join(current))
        text = '\n'.join(paragraphs)
    else:
        text = '\n'.join(lines)
    if chomp == '+':
        return text + '\n'
    return text.strip('\n') if chomp == '-' else text.rstrip('\n')


class SkillParser:
    """Parse SKILL.md files and validate their frontmatter"""

    def __init__(self, schema_path: Optional[Path] = None):
        with open(schema_path or SCHEMA_PATH, 'r', encoding='utf-8') as f:
            self.schema = json.load(f)
        self.validator = jsonschema.Draft7Validator(self.schema)

    @staticmethod
    def extract_frontmatter(content: str) -> Optional[str]:
        match = FRONTMATTER_RE.match(normalize_content(content))
        return match.group(1) if match else None

    @staticmethod
    def parse_frontmatter(block: str) -> Dict[str, Any]:
        """Parse a frontmatter block into a mapping.

        PyYAML is tried first. Frontmatter in the wild is often not valid
        YAML (unquoted ``*``, stray colons in descriptions), so a lenient
        line-based parser takes over when PyYAML fails.
        """
        try:
            data = yaml.safe_load(block)
            if isinstance(data, dict):
                return _coerce(data)
        except yaml.YAMLError as e:
            logger.debug(f"YAML parse failed, using lenient parser: {e}")
        return SkillParser.parse_simple_yaml(block)

    @staticmethod
    def parse_simple_yaml(block: str) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        lines = block.split('\n')
        i = 0
        while i < len(lines):
            line = lines[i]
            i += 1
            if not line.strip() or line.lstrip().startswith('#') or line[0] in ' \t':
                continue

            match = KEY_RE.match(line)
            if not match:
                continue
            key, value = match.group(1), (match.group(2) or '').strip()

            # Collect the indented lines that belong to this key
            body = []
            while i < len(lines) and (not lines[i].strip() or lines[i][0] in ' \t'):
                body.append(lines[i])
                i += 1
            while body and not body[-1].strip():
                body.pop()

            block_match = BLOCK_SCALAR_RE.match(value)
            if block_match:
                indent = min(
                    (len(b) - len(b.lstrip()) for b in body if b.strip()), default=0
                )
                result[key] = _join_block(
                    [b[indent:] for b in body], block_match.group(1), block_match.group(2)
                )
            elif value.startswith('[') and value.endswith(']'):
                result[key] = _parse_inline_array(value)
            elif not value and body and body[0].strip().startswith('- '):
                result[key] = [
                    _strip_quotes(b.strip()[2:].strip())
                    for b in body if b.strip().startswith('- ')
                ]
            elif body:
                parts = [value] + [b.strip() for b in body if b.strip()]
                result[key] = _strip_quotes(' '.join(p for p in parts if p))
            else:
                result[key] = _strip_quotes(value) if value else None
        return result

    def validate(self, data: Dict[str, Any]) -> Dict[str, str]:
        """Check frontmatter against the schema.

        Problems with ``name``/``description`` or the document as a whole
        raise SkillParseError. Optional fields with the wrong shape are
        returned as a ``{key: issue}`` mapping instead.
        """
        fatal, optional = [], {}
        for e in sorted(self.validator.iter_errors(data), key=lambda e: [str(p) for p in e.path]):
            issue = f"{'.'.join(str(p) for p in e.path) or 'frontmatter'}: {e.message}"
            if e.path and e.path[0] not in REQUIRED_FIELDS:
                optional.setdefault(str(e.path[0]), issue)
            else:
                fatal.append(issue)
        if fatal:
            raise SkillParseError(', '.join(fatal))
        return optional

    def parse(self, content: str) -> ParsedSkill:
        """Parse SKILL.md content; raises SkillParseError on failure."""
        block = self.extract_frontmatter(content or '')
        if block is None:
            raise SkillParseError("No YAML frontmatter found")

        # An empty key (`license:`) means the field is absent
        data = {k: v for k, v in self.parse_frontmatter(block).items() if v is not None}
        invalid = self.validate(data)
        fields = {k: v for k, v in data.items() if k not in invalid}

        return ParsedSkill(
            name=data['name'].strip(),
            description=data['description'].strip(),
            compatibility=fields.get('compatibility'),
            allowed_tools=normalize_allowed_tools(fields.get('allowed-tools')),
            tags=normalize_tags(fields.get('tags')),
            version=fields.get('version'),
            license=fields.get('license'),
            author=fields.get('author'),
            metadata=data,
            warnings=list(invalid.values()),
        )
