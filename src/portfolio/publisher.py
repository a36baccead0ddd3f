from __future__ import annotations

import logging

from .storage import list_due_scheduled_articles, mark_article_published
from .utils import log_event, to_utc_iso, utc_now_iso


def publish_scheduled_articles(conn, now: str | None = None) -> dict[str, object]:
    """Publish every scheduled article whose publish time has passed.

    Each transition is a conditional update, so an article another run
    already published is skipped and not counted.
    """
    logger = logging.getLogger("portfolio.publisher")
    now_iso = to_utc_iso(now) if now else utc_now_iso()
    due = list_due_scheduled_articles(conn, now_iso)
    published: list[str] = []
    for article in due:
        if mark_article_published(conn, article.id, now_iso):
            published.append(article.slug)
            log_event(
                logger,
                logging.INFO,
                "article_published",
                article_id=article.id,
                slug=article.slug,
                scheduled_for=article.scheduled_publish_at,
            )
    return {"count": len(published), "slugs": published}
