"""
Node functions for the content enrichment and internal linking pipeline.

This package contains all pipeline node implementations.
"""

from .sections import (
    split_sections,
    assign_media_slots,
    plan_media_slots,
)

from .media_terms import (
    generate_media_terms,
)

from .media_fetcher import (
    verify_image_relevance,
    find_best_image,
    find_video,
    fetch_media,
)

from .enricher import (
    assemble_enriched_markdown,
    enrich_content,
)

from .ranker import (
    rank_linkable_articles,
    find_linkable_articles,
)

from .link_plan import (
    pick_target_link_count,
    generate_link_plan,
)

from .link_applier import (
    apply_link_plan,
)

from .linking import (
    insert_internal_links,
)

from .job import (
    process_article,
)

from .niche import (
    detect_niche,
    find_authority_domains,
    get_domain_whitelist,
)
