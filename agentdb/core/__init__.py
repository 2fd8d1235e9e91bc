"""
agentdb - Core Storage Layer

One embedded SQLite database per agent process:
- Connection manager: scoped handles and transactions
- Entity stores: memories, knowledge, goals, rooms/participants,
  relationships, cache, logs
- AgentDatabase: the unified interface the runtime talks to
"""

from .cache import CacheStore
from .connection import ConnectionManager, Engine, SQLiteEngine, create_engine
from .goals import GoalStore
from .knowledge import KnowledgeStore
from .logs import LogStore
from .memories import MemoryStore
from .models import (
    Account,
    Actor,
    CachedEmbedding,
    Content,
    Goal,
    GoalStatus,
    KnowledgeContent,
    KnowledgeItem,
    KnowledgeMetadata,
    LogEntry,
    Memory,
    Objective,
    Participant,
    ParticipantState,
    Relationship,
)
from .relationships import RelationshipStore
from .rooms import RoomStore
from .store import AgentDatabase

__all__ = [
    "AgentDatabase",
    "CacheStore",
    "ConnectionManager",
    "Engine",
    "SQLiteEngine",
    "create_engine",
    "GoalStore",
    "KnowledgeStore",
    "LogStore",
    "MemoryStore",
    "RelationshipStore",
    "RoomStore",
    "Account",
    "Actor",
    "CachedEmbedding",
    "Content",
    "Goal",
    "GoalStatus",
    "KnowledgeContent",
    "KnowledgeItem",
    "KnowledgeMetadata",
    "LogEntry",
    "Memory",
    "Objective",
    "Participant",
    "ParticipantState",
    "Relationship",
]
