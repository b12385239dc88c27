import re
from typing import Optional

from portal.db import Store


def generate_slug(title: str) -> str:
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def unique_slug(store: Store, title: str, exclude_id: Optional[str] = None) -> str:
    """First free slug among `base`, `base-1`, `base-2`, ... (ignoring `exclude_id`)."""
    base = generate_slug(title) or "post"
    slug = base
    counter = 1
    while True:
        existing = store.find_many("blog_posts", {"slug": slug}, limit=1)
        if not existing or existing[0]["id"] == exclude_id:
            return slug
        slug = f"{base}-{counter}"
        counter += 1
