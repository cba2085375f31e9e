"""
Data records passed between pipeline stages
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional


class SkillStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 40,
    Severity.HIGH: 25,
    Severity.MEDIUM: 10,
    Severity.LOW: 5,
}


@dataclass
class DiscoveredItem:
    """A candidate SKILL.md location returned by discovery"""
    owner: str
    repo: str
    path: str
    content_hash: Optional[str] = None


@dataclass
class RepoMetadata:
    stars: int = 0
    forks: int = 0
    pushed_at: Optional[str] = None
    topics: List[str] = field(default_factory=list)
    is_archived: bool = False
    avatar_url: Optional[str] = None
    license_key: Optional[str] = None
    language: Optional[str] = None


@dataclass
class SkillFullData:
    """Phase-two result for one item: file content plus repository metadata"""
    owner: str
    repo: str
    path: str
    content: Optional[str]
    blob_sha: Optional[str]
    committed_at: Optional[str]
    metadata: RepoMetadata
    is_truncated: bool = False


@dataclass
class Threat:
    type: str
    severity: Severity
    message: str
    details: Optional[str] = None
    location: Optional[str] = None

    def to_dict(self) -> dict:
        data = {k: v for k, v in asdict(self).items() if v is not None}
        data['severity'] = self.severity.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Threat":
        return cls(
            type=data['type'],
            severity=Severity(data['severity']),
            message=data['message'],
            details=data.get('details'),
            location=data.get('location'),
        )


@dataclass
class SecurityScanResult:
    safe: bool
    risk_score: int
    threats: List[Threat] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'safe': self.safe,
            'riskScore': self.risk_score,
            'threats': [t.to_dict() for t in self.threats],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SecurityScanResult":
        return cls(
            safe=data['safe'],
            risk_score=data['riskScore'],
            threats=[Threat.from_dict(t) for t in data.get('threats', [])],
        )


@dataclass
class SkillInput:
    """What the classifiers see of a skill"""
    id: str
    name: str
    description: Optional[str] = None
    topics: List[str] = field(default_factory=list)


@dataclass
class CategoryAssignment:
    skill_id: str
    category_ids: List[str]
    source: str  # keyword | ai | cache


@dataclass
class SkillRecord:
    """Persisted skill entity, keyed by canonical id"""
    id: str
    name: str
    slug: str
    description: str
    owner: str
    repo: str
    path: str
    url: str
    raw_url: str
    blob_sha: Optional[str]
    stars: int = 0
    forks: int = 0
    topics: List[str] = field(default_factory=list)
    is_archived: bool = False
    avatar_url: Optional[str] = None
    license_key: Optional[str] = None
    compatibility: Optional[str] = None
    allowed_tools: Optional[List[str]] = None
    tags: List[str] = field(default_factory=list)
    status: SkillStatus = SkillStatus.PENDING
    security_scan: Optional[SecurityScanResult] = None
    category_ids: List[str] = field(default_factory=list)
    category_source: Optional[str] = None
    name_is_strict: bool = True
    repo_pushed_at: Optional[str] = None
    file_updated_at: Optional[str] = None
    last_seen_at: Optional[str] = None

    METADATA_FIELDS = (
        'stars', 'forks', 'topics', 'is_archived', 'avatar_url',
        'license_key', 'repo_pushed_at',
    )

    def metadata_differs(self, other: "SkillRecord") -> bool:
        return any(getattr(self, f) != getattr(other, f) for f in self.METADATA_FIELDS)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['status'] = self.status.value
        data['security_scan'] = self.security_scan.to_dict() if self.security_scan else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SkillRecord":
        data = dict(data)
        data['status'] = SkillStatus(data.get('status', SkillStatus.PENDING.value))
        scan = data.get('security_scan')
        data['security_scan'] = SecurityScanResult.from_dict(scan) if scan else None
        return cls(**data)


@dataclass
class SyncResult:
    discovered: int = 0
    filtered: int = 0
    indexed: int = 0
    skipped_unchanged: int = 0
    duplicates: int = 0
    errors: int = 0
    deferred: int = 0
    upserted: int = 0
    error_counts: Dict[str, int] = field(default_factory=dict)
    error_list: List[dict] = field(default_factory=list)
    cancelled: bool = False

    def to_dict(self) -> dict:
        return asdict(self)
