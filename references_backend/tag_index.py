"""Distinct tag vocabulary across all references."""
import logging
from typing import List

from references_backend.repository import ReferenceRepository

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class TagIndex:
    """Derives the sorted set of tags currently in use, re-read on every call."""

    def __init__(self, repository: ReferenceRepository):
        self.repository = repository

    def all_tags(self) -> List[str]:
        """
        Every distinct tag across all references, surrounding whitespace
        trimmed, empty tags dropped, sorted ascending. Case is significant:
        "UI" and "ui" are different tags.
        """
        seen = set()
        for tags in self.repository.fetch_all_tags():
            for tag in tags or ():
                cleaned = tag.strip() if tag else ""
                if cleaned:
                    seen.add(cleaned)
        logger.debug("Tag index holds %d tag(s)", len(seen))
        return sorted(seen)
