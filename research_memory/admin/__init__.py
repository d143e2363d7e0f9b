"""Memory management HTTP surface."""

from research_memory.admin.server import AdminServer, create_admin_app

__all__ = ["AdminServer", "create_admin_app"]
