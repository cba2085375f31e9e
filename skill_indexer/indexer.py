"""
Per-record indexing: fetched data -> validated, scanned SkillRecord
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from .canonical import (
    is_likely_agent_skill,
    normalize_skill_name,
    slugify,
    validate_description,
    validate_skill_name,
)
from .config import GITHUB_RAW_BASE, GITHUB_WEB_BASE
from .errors import ErrorKind, ErrorTracker, SkillParseError
from .models import SkillFullData, SkillRecord, SkillStatus
from .security_scanner import scan_skill
from .skill_parser import SkillParser, normalize_content

logger = logging.getLogger(__name__)


def skill_urls(owner: str, repo: str, path: str):
    return (
        f"{GITHUB_WEB_BASE}/{owner}/{repo}/blob/HEAD/{path}",
        f"{GITHUB_RAW_BASE}/{owner}/{repo}/HEAD/{path}",
    )


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_skill_record(skill_id: str, data: SkillFullData, parser: SkillParser,
                       tracker: ErrorTracker,
                       existing: Optional[SkillRecord] = None,
                       now: Optional[str] = None) -> Optional[SkillRecord]:
    """Parse, validate and scan one fetched skill.

    Returns None when the record hits a terminal rejection; the reason is
    recorded on ``tracker``. Name and description problems are recorded as
    warnings and do not stop the record.
    """
    if data.blob_sha is None:
        tracker.add(skill_id, ErrorKind.NOT_FOUND, "SKILL.md blob not found at HEAD")
        return None
    if not data.content or not data.content.strip():
        tracker.add(skill_id, ErrorKind.EMPTY_CONTENT, "SKILL.md is empty")
        return None

    try:
        parsed = parser.parse(data.content)
    except SkillParseError as e:
        tracker.add(skill_id, ErrorKind.PARSE_FAILED, str(e))
        return None
    for warning in parsed.warnings:
        tracker.add(skill_id, ErrorKind.INVALID_FIELD, warning)

    name_check = validate_skill_name(parsed.name)
    if name_check.error:
        tracker.add(skill_id, ErrorKind.INVALID_NAME, name_check.error)
    description_check = validate_description(parsed.description)
    if description_check.error:
        tracker.add(skill_id, ErrorKind.INVALID_DESCRIPTION, description_check.error)

    if not is_likely_agent_skill(parsed.name, parsed.description):
        tracker.add(skill_id, ErrorKind.NOT_AGENT_SKILL, f"Placeholder name '{parsed.name}'")
        return None

    scan = scan_skill(normalize_content(data.content), parsed.allowed_tools)
    if not scan.safe:
        logger.info(f"{skill_id}: risk score {scan.risk_score}, flagged for review")

    url, raw = skill_urls(data.owner, data.repo, data.path)
    meta = data.metadata
    return SkillRecord(
        id=skill_id,
        name=parsed.name,
        slug=slugify(parsed.name) or normalize_skill_name(parsed.name),
        description=parsed.description,
        owner=data.owner,
        repo=data.repo,
        path=data.path,
        url=url,
        raw_url=raw,
        blob_sha=data.blob_sha,
        stars=meta.stars,
        forks=meta.forks,
        topics=list(meta.topics),
        is_archived=meta.is_archived,
        avatar_url=meta.avatar_url,
        license_key=meta.license_key,
        compatibility=parsed.compatibility,
        allowed_tools=parsed.allowed_tools,
        tags=parsed.tags,
        status=existing.status if existing else SkillStatus.PENDING,
        security_scan=scan,
        name_is_strict=name_check.strict,
        repo_pushed_at=meta.pushed_at,
        file_updated_at=data.committed_at,
        last_seen_at=now or utc_now(),
    )
