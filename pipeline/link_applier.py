"""
Link plan application.

Each proposed entry is checked before anything is replaced:
1. target slug not already linked in this run
2. all fields present
3. original snippet occurs verbatim in the current markdown
4. rewritten snippet contains exactly one markdown link, pointing at
   `/<target slug>`
5. rewritten snippet with the link stripped equals the original snippet,
   ignoring punctuation

Only entries passing every check are applied, each as a single
first-occurrence replacement. Any unexpected error returns the markdown
untouched.
"""
import re
from typing import List
import structlog

from .schemas import LinkApplicationResult, LinkPlanEntry, RejectedLink

logger = structlog.get_logger()

_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_NON_WORD_RE = re.compile(r"[^\w\s]")


def strip_markdown_links(text: str) -> str:
    """`[anchor](href)` -> `anchor`."""
    return _MARKDOWN_LINK_RE.sub(r"\1", text)


def normalize_snippet(text: str) -> str:
    return _NON_WORD_RE.sub("", text.strip())


def is_faithful_rewrite(original: str, rewritten: str) -> bool:
    """True when the rewrite only adds link syntax to the original text."""
    return normalize_snippet(strip_markdown_links(rewritten)) == normalize_snippet(original)


def link_href(slug: str) -> str:
    return f"/{slug.strip().strip('/')}"


def _link_reason(entry: LinkPlanEntry) -> str:
    links = _MARKDOWN_LINK_RE.findall(entry.rewritten_snippet)
    if not links:
        return "missing_link"
    if len(links) > 1:
        return "extra_link"
    href = links[0][1].strip()
    if href.rstrip("/") != link_href(entry.target_article_slug):
        return "href_mismatch"
    return ""


def _rejection_reason(entry: LinkPlanEntry, markdown: str, used_slugs: set) -> str:
    if entry.target_article_slug and entry.target_article_slug in used_slugs:
        return "duplicate_slug"
    if not (entry.target_article_slug and entry.original_snippet and entry.rewritten_snippet):
        return "missing_fields"
    if entry.original_snippet not in markdown:
        return "snippet_not_found"
    link_reason = _link_reason(entry)
    if link_reason:
        return link_reason
    if not is_faithful_rewrite(entry.original_snippet, entry.rewritten_snippet):
        return "rewrite_mismatch"
    return ""


def apply_link_plan(markdown: str, entries: List[LinkPlanEntry]) -> LinkApplicationResult:
    """Apply validated entries in order; the first accepted entry per slug wins."""
    try:
        current = markdown
        used_slugs = set()
        applied = []
        rejected = []

        for entry in entries:
            reason = _rejection_reason(entry, current, used_slugs)
            if reason:
                rejected.append(RejectedLink(entry=entry, reason=reason))
                logger.info(
                    "link_rejected",
                    reason=reason,
                    slug=entry.target_article_slug,
                    original=(entry.original_snippet or "")[:80],
                    rewritten=(entry.rewritten_snippet or "")[:120],
                )
                continue

            current = current.replace(entry.original_snippet, entry.rewritten_snippet, 1)
            used_slugs.add(entry.target_article_slug)
            applied.append(entry)
            logger.info("link_applied", slug=entry.target_article_slug)

        logger.info(
            "link_plan_applied",
            proposed=len(entries),
            applied=len(applied),
            rejected=len(rejected),
        )
        return LinkApplicationResult(markdown=current, applied=applied, rejected=rejected)

    except Exception as e:
        logger.error("link_application_failed", error=str(e))
        return LinkApplicationResult(markdown=markdown, status="error")
