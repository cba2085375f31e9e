"""
Indexer configuration
"""

import os

# GitHub API settings
GITHUB_API_BASE = "https://api.github.com"
GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
GITHUB_RAW_BASE = "https://raw.githubusercontent.com"
GITHUB_WEB_BASE = "https://github.com"
USER_AGENT = "skill-indexer"
REQUEST_TIMEOUT = 30  # seconds

GITHUB_TOKEN = os.environ.get('GITHUB_TOKEN', '')

# The file every skill lives in
SKILL_FILENAME = "SKILL.md"

# Code search queries. Each query gets its own 1000-result window, so the
# variants overlap on purpose and are merged through the dedup set.
DISCOVERY_QUERIES = [
    "filename:SKILL.md size:>100",
    "path:SKILL.md size:>100",
    "path:.claude filename:SKILL.md size:>100",
    "path:.kiro filename:SKILL.md size:>100",
    "path:skills filename:SKILL.md size:>100",
    "path:.cursor filename:SKILL.md size:>100",
    "path:.windsurf filename:SKILL.md size:>100",
    "path:.cline filename:SKILL.md size:>100",
]

# Aggregator repositories scanned with the git tree API
KNOWN_SKILL_REGISTRIES = [
    ("moltbot", "skills"),
    ("VoltAgent", "awesome-moltbot-skills"),
    ("VoltAgent", "awesome-clawdbot-skills"),
    ("anthropics", "courses"),
    ("sickn33", "antigravity-awesome-skills"),
    ("jeremylongshore", "claude-code-plugins-plus-skills"),
    ("aiskillstore", "marketplace"),
    ("majiayu000", "claude-skill-registry"),
    ("microck", "ordinary-claude-skills"),
    ("oaustegard", "claude-skills"),
]

# Topic tags searched as a last resort
SKILL_TOPICS = [
    "claude-skill",
    "claude-skills",
    "claude-code-skill",
    "agent-skill",
    "ai-skill",
    "codex-skill",
]
TOPIC_MIN_STARS = 3

# Relative paths probed in repositories found by topic
WELL_KNOWN_SKILL_PATHS = [
    "SKILL.md",
    ".claude/SKILL.md",
    ".kiro/SKILL.md",
    "skills/SKILL.md",
]

# Search pagination
SEARCH_PER_PAGE = 100
SEARCH_MAX_PAGES = 10  # GitHub caps every query at 1000 results
SEARCH_QUERY_CAP = 1000
MAX_DISCOVERY_RESULTS = 5000
PRIMARY_DISCOVERY_CAP = 2000

# Rate limiting
SEARCH_PAGE_DELAY = 2.2  # code search allows ~30 requests/min
RATE_LIMIT_MARGIN = 2.0  # seconds added to X-RateLimit-Reset
MAX_RATE_LIMIT_WAIT = 65.0
REGISTRY_DELAY = 1.0
TOPIC_REPO_DELAY = 0.2
TOPIC_DELAY = 2.0
HTTP_MAX_RETRIES = 3
HTTP_RETRY_BASE_DELAY = 2.0
HTTP_RETRY_MAX_DELAY = 16.0

# Bounded concurrency against the GitHub API
DISCOVERY_CONCURRENCY = 3
FETCH_CONCURRENCY = 5
GRAPHQL_CHUNK_SIZE = 50
CHUNK_DELAY = 0.2  # between waves of GraphQL chunks

# Raw content fallback
RAW_MAX_CONCURRENT = 10
RAW_TIMEOUT = 15
RAW_RETRY_ATTEMPTS = 3

# Quality filters
MIN_STARS = 10
MIN_RECENT_DAYS = 365
INCREMENTAL_OVERLAP_DAYS = 2

# Validation limits
MAX_NAME_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 1024
MIN_DESCRIPTION_LENGTH = 10
PLACEHOLDER_NAMES = {
    "test", "example", "sample", "demo", "todo", "placeholder", "untitled",
}

# Keyword scorer thresholds
KEYWORD_MIN_SCORE = 7
KEYWORD_MIN_DESCRIPTION_SCORE = 8
KEYWORD_TOP_SCORE_MIN = 7
KEYWORD_NEGATIVE_MULTIPLIER = 1.25
KEYWORD_FIELD_WEIGHTS = {
    "name": {"priority": 9, "normal": 6},
    "topics": {"priority": 7, "normal": 4},
    "description": {"priority": 5, "normal": 2},
}
MAX_CATEGORIES_PER_SKILL = 3

# AI classification
AI_MODEL = os.environ.get('SKILL_INDEXER_AI_MODEL', "gemini/gemini-2.5-flash-lite")
AI_PRO_MODEL = "gemini/gemini-2.5-pro"
AI_API_KEY_ENV = "GEMINI_API_KEY"
AI_BATCH_SIZE = 50
AI_PRO_BATCH_SIZE = 20
AI_TEMPERATURE = 0.1
AI_MAX_TOKENS = 8000
AI_MAX_DESCRIPTION_LENGTH = 500
AI_MAX_TOPICS = 10
AI_MAX_REQUESTS_PER_WINDOW = 1000
AI_RATE_WINDOW = 24 * 60 * 60  # seconds
AI_RETRY_ATTEMPTS = 3
AI_RETRY_BASE_DELAY = 1.0
AI_RETRY_MAX_DELAY = 10.0

# Output paths
OUTPUT_FILE = "skills.json"
FAILURE_REPORT_FILE = "sync_failures.json"
