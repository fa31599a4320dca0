"""Archive registry and format providers."""
from .base import ArchiveError, ArchiveMember, ArchiveProvider, UnsupportedArchiveError
from .registry import ArchiveRegistry, default_registry, group_members

__all__ = [
    'ArchiveError',
    'ArchiveMember',
    'ArchiveProvider',
    'ArchiveRegistry',
    'UnsupportedArchiveError',
    'default_registry',
    'group_members',
]
