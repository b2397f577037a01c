"""Tag store and association package."""

from ledgerbook.tags.manager import TagManager

__all__ = ["TagManager"]
