"""
Storage abstractions.

- UserDirectory → read access to users and projects
- DiscordLinkStore → link codes and the user-side Discord binding
- InMemoryStore → development/test adapter for both
"""

from taskmanager.storage.base import (
    DirectoryUnavailableError,
    DiscordIdentityConflictError,
    DiscordLinkStore,
    UserDirectory,
)
from taskmanager.storage.local import (
    InMemoryStore,
    create_local_storage,
    link_code_from_row,
    project_from_row,
    user_from_row,
)

__all__ = [
    "DirectoryUnavailableError",
    "DiscordIdentityConflictError",
    "DiscordLinkStore",
    "UserDirectory",
    "InMemoryStore",
    "create_local_storage",
    "link_code_from_row",
    "project_from_row",
    "user_from_row",
]
