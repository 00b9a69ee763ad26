"""User-editable knowledge base of series, aliases, publishers and volumes."""

from .matcher import KnowledgeBaseMatcher, KnowledgeMatch, MatchKind
from .models import ComicKnowledge, KnowledgeVolume
from .snapshot import KnowledgeBaseSnapshot
from .store import (
    InMemoryKnowledgeBaseStore,
    JsonKnowledgeBaseStore,
    KnowledgeBase,
    KnowledgeBaseStore,
)

__all__ = [
    "ComicKnowledge",
    "KnowledgeVolume",
    "KnowledgeBaseSnapshot",
    "KnowledgeBaseMatcher",
    "KnowledgeMatch",
    "MatchKind",
    "KnowledgeBase",
    "KnowledgeBaseStore",
    "JsonKnowledgeBaseStore",
    "InMemoryKnowledgeBaseStore",
]
