from __future__ import annotations

from dataclasses import dataclass, field


ARTICLE_STATUSES = ("draft", "scheduled", "published")


@dataclass(frozen=True)
class SyncSettings:
    sync_enabled: bool
    username: str | None


@dataclass(frozen=True)
class Project:
    id: int | None
    slug: str
    title_en: str
    title_fa: str | None
    description_en: str | None
    description_fa: str | None
    github_url: str | None
    demo_url: str | None
    github_repo_id: int | None
    github_repo_name: str | None
    github_stars: int
    github_forks: int
    github_language: str | None
    github_description: str | None
    github_updated_at: str | None
    is_github_synced: bool
    is_featured: bool = False
    sort_order: int = 0
    status: str = "draft"


@dataclass(frozen=True)
class Article:
    id: int | None
    slug: str
    title_en: str
    title_fa: str | None
    status: str
    scheduled_publish_at: str | None
    published_at: str | None
    updated_at: str | None = None
    excerpt_en: str | None = None
    excerpt_fa: str | None = None


@dataclass(frozen=True)
class SyncLog:
    id: int
    sync_type: str
    status: str
    items_processed: int
    items_created: int
    items_updated: int
    error_message: str | None
    started_at: str
    completed_at: str


@dataclass(frozen=True)
class AlternateUrls:
    canonical: str
    languages: dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return {"canonical": self.canonical, "languages": dict(self.languages)}
