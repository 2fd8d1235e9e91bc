"""
agentdb - persistence and retrieval for conversational agents.

Relational CRUD, cosine-similarity search and a text-assisted embedding
cache over one embedded SQLite database.
"""

from .config import StoreConfig
from .core import (
    Account,
    AgentDatabase,
    CachedEmbedding,
    Content,
    Goal,
    GoalStatus,
    KnowledgeContent,
    KnowledgeItem,
    Memory,
    Objective,
    ParticipantState,
    Relationship,
)
from .errors import ConstraintViolation, EngineFailure, InvalidInput, StoreError

__version__ = "0.1.0"

__all__ = [
    "AgentDatabase",
    "StoreConfig",
    "StoreError",
    "ConstraintViolation",
    "EngineFailure",
    "InvalidInput",
    "Account",
    "CachedEmbedding",
    "Content",
    "Goal",
    "GoalStatus",
    "KnowledgeContent",
    "KnowledgeItem",
    "Memory",
    "Objective",
    "ParticipantState",
    "Relationship",
]
