"""Contact lifecycle package."""

from ledgerbook.contacts.lifecycle import ContactLifecycleManager

__all__ = ["ContactLifecycleManager"]
