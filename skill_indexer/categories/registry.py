"""
Closed category registry
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CategoryDefinition:
    id: str
    slug: str
    name: str
    description: str
    icon: str
    color: str
    order: int
    keywords: Tuple[str, ...]
    priority_keywords: Tuple[str, ...] = ()
    negative_keywords: Tuple[str, ...] = ()

    def to_row(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'color': self.color,
            'order': self.order,
        }


CATEGORIES: Tuple[CategoryDefinition, ...] = (
    CategoryDefinition(
        id="llms-models",
        slug="llms-models",
        name="LLMs & Models",
        description="Artificial intelligence, LLMs, and machine learning tools",
        icon="🤖",
        color="#8B5CF6",
        order=1,
        keywords=(
            "llm", "gpt", "openai", "claude", "anthropic", "gemini", "ollama",
            "langchain", "machine learning", "ml", "transformer", "embedding",
            "chatgpt", "llama", "mistral", "groq", "huggingface", "model", "prompt",
            "inference", "fine-tune", "rag", "vector", "semantic", "chat", "conversation",
        ),
        priority_keywords=("llm", "gpt", "openai", "claude", "anthropic", "chatgpt", "chat"),
        negative_keywords=(
            "component", "ui", "frontend", "react component", "vue component",
            "skill", "skills", "discovery", "install", "search", "web search",
            "workflow", "automation", "agent",
        ),
    ),
    CategoryDefinition(
        id="data-analytics",
        slug="data-analytics",
        name="Data & Analytics",
        description="Data processing, analytics, and database tools",
        icon="📊",
        color="#3B82F6",
        order=2,
        keywords=(
            "data", "analytics", "database", "sql", "postgres", "mysql", "mongodb",
            "redis", "elasticsearch", "bigquery", "snowflake", "dbt", "etl", "pipeline",
            "warehouse", "visualization", "chart", "dashboard", "metrics", "bi",
            "tableau", "powerbi", "grafana", "prometheus", "pandas", "numpy", "query",
        ),
        priority_keywords=("database", "sql", "postgres", "mysql", "mongodb", "query"),
        negative_keywords=(
            "api", "rest", "graphql", "component",
            "skill", "skills", "discovery",
        ),
    ),
    CategoryDefinition(
        id="coding-development",
        slug="coding-development",
        name="Coding & Development",
        description="Frontend, backend, and fullstack web development",
        icon="💻",
        color="#10B981",
        order=3,
        keywords=(
            "react", "vue", "angular", "svelte", "next", "nuxt", "remix", "astro",
            "typescript", "javascript", "node", "python", "rust", "go", "java",
            "frontend", "backend", "fullstack", "rest", "graphql", "trpc",
            "tailwind", "css", "html", "component", "library", "framework", "sdk",
            "export", "code generation", "generator", "convert to code", "code",
        ),
        priority_keywords=(
            "react", "vue", "angular", "typescript", "javascript", "component", "code",
        ),
        negative_keywords=("chat", "conversation", "llm", "ai chat"),
    ),
    CategoryDefinition(
        id="mobile",
        slug="mobile",
        name="Mobile",
        description="iOS, Android, and cross-platform mobile development",
        icon="📱",
        color="#F59E0B",
        order=4,
        keywords=(
            "ios", "android", "react native", "flutter", "swift", "kotlin",
            "mobile", "app", "expo", "capacitor", "cordova", "ionic", "swiftui",
            "jetpack compose", "xcode", "android studio",
        ),
        priority_keywords=("ios", "android", "react native", "flutter", "mobile app"),
        negative_keywords=(
            "web", "browser", "desktop",
            "figma", "design", "export",
            "ui", "ux",
        ),
    ),
    CategoryDefinition(
        id="automation-agents",
        slug="automation-agents",
        name="Automation & Agents",
        description="CI/CD, cloud, and infrastructure automation",
        icon="⚡",
        color="#EF4444",
        order=5,
        keywords=(
            "automation", "agent", "workflow", "cicd", "ci/cd", "pipeline",
            "github actions", "jenkins", "terraform", "pulumi", "ansible",
            "kubernetes", "k8s", "docker", "container", "aws", "azure", "gcp",
            "cloud", "serverless", "lambda", "cron", "schedule", "task", "bot",
            "scraper", "crawler", "mcp", "tool", "search", "web search", "skill",
            "skills", "plugin", "extension", "discovery", "install",
        ),
        priority_keywords=(
            "automation", "agent", "workflow", "ci/cd", "skill", "skills",
            "search", "web search", "discovery",
        ),
        negative_keywords=("component", "ui", "design", "chat", "conversation"),
    ),
    CategoryDefinition(
        id="security",
        slug="security",
        name="Security",
        description="Security, authentication, and encryption tools",
        icon="🔒",
        color="#EC4899",
        order=6,
        keywords=(
            "security", "auth", "authentication", "authorization", "oauth", "jwt",
            "encryption", "ssl", "tls", "certificate", "password", "hash", "crypto",
            "vulnerability", "scan", "audit", "compliance", "firewall", "waf",
            "penetration", "pentest", "sast", "dast",
        ),
        priority_keywords=("security", "auth", "authentication", "jwt", "encryption"),
    ),
    CategoryDefinition(
        id="dev-tools",
        slug="dev-tools",
        name="Dev Tools",
        description="Git workflows and version control tools",
        icon="🔧",
        color="#6366F1",
        order=7,
        keywords=(
            "git", "github", "gitlab", "bitbucket", "version control", "vcs",
            "cli", "terminal", "shell", "bash", "zsh", "editor", "vscode", "vim",
            "neovim", "ide", "debugger", "profiler", "linter", "formatter",
            "prettier", "eslint", "test", "jest", "vitest", "playwright",
            "skill", "skills", "plugin", "extension", "tool", "github actions",
            "discovery",
        ),
        priority_keywords=(
            "git", "github", "cli", "skill", "skills", "plugin",
            "github actions", "discovery",
        ),
        negative_keywords=("chat", "conversation", "llm"),
    ),
    CategoryDefinition(
        id="business-productivity",
        slug="business-productivity",
        name="Business & Productivity",
        description="Workflow automation and productivity tools",
        icon="📈",
        color="#14B8A6",
        order=8,
        keywords=(
            "productivity", "workflow", "notion", "slack", "discord", "teams",
            "email", "calendar", "task", "project", "management", "crm", "erp",
            "salesforce", "hubspot", "airtable", "zapier", "n8n", "make",
            "spreadsheet", "excel", "sheets", "report", "invoice",
        ),
        priority_keywords=("notion", "slack", "productivity", "crm", "project management"),
        negative_keywords=(
            "code", "programming", "development",
            "github", "actions", "ci/cd", "workflow",
            "automation", "agent",
        ),
    ),
    CategoryDefinition(
        id="writing-content",
        slug="writing-content",
        name="Writing & Content",
        description="Content management and CMS tools",
        icon="✍️",
        color="#F97316",
        order=9,
        keywords=(
            "writing", "content", "cms", "blog", "markdown", "docs", "documentation",
            "readme", "wiki", "strapi", "sanity", "contentful", "wordpress",
            "ghost", "medium", "seo", "copywriting", "translation", "i18n",
            "editor", "markdown editor",
        ),
        priority_keywords=("writing", "content", "cms", "markdown", "docs"),
        negative_keywords=("code", "programming", "component"),
    ),
    CategoryDefinition(
        id="design-creative",
        slug="design-creative",
        name="Design & Creative",
        description="UI/UX design and component libraries",
        icon="🎨",
        color="#A855F7",
        order=10,
        keywords=(
            "design", "ui", "ux", "figma", "sketch", "adobe", "photoshop",
            "illustrator", "canva", "image", "icon", "logo", "animation",
            "video", "audio", "music", "3d", "blender", "unity", "game",
            "creative", "art", "graphic", "color", "font", "typography", "export",
        ),
        priority_keywords=("figma", "design", "ui", "ux", "sketch"),
    ),
)

_BY_ID: Dict[str, CategoryDefinition] = {c.id: c for c in CATEGORIES}
_BY_SLUG: Dict[str, CategoryDefinition] = {c.slug: c for c in CATEGORIES}

CATEGORY_IDS = frozenset(_BY_ID)


def get_category_by_id(category_id: str) -> Optional[CategoryDefinition]:
    return _BY_ID.get(category_id)


def get_category_by_slug(slug: str) -> Optional[CategoryDefinition]:
    return _BY_SLUG.get(slug)


def get_categories_sorted() -> List[CategoryDefinition]:
    return sorted(CATEGORIES, key=lambda c: c.order)


def get_all_category_ids() -> List[str]:
    return [c.id for c in get_categories_sorted()]
