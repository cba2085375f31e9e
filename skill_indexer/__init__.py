"""
Skill indexer
Discovers SKILL.md files on GitHub, validates, scans and categorizes them
"""

from .github_client import GitHubClient
from .discovery import SkillDiscovery
from .batch_fetcher import BatchFetcher
from .skill_parser import SkillParser
from .security_scanner import SecurityScanner, scan_skill
from .store import InMemorySkillStore, JsonFileSkillStore
from .sync import SkillSync, SyncOptions

__all__ = [
    'GitHubClient',
    'SkillDiscovery',
    'BatchFetcher',
    'SkillParser',
    'SecurityScanner',
    'scan_skill',
    'InMemorySkillStore',
    'JsonFileSkillStore',
    'SkillSync',
    'SyncOptions',
]
