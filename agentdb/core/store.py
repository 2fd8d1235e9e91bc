"""
AgentDatabase - the runtime-facing interface to agentdb.

Brings together the entity stores (memories, knowledge, goals, rooms and
participants, relationships, cache, logs) over one ConnectionManager, plus
the embedding cache from the similarity engine.

Each store is available as an attribute for callers that want the narrow
interface; the flat methods below are what the agent runtime calls.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from ..config import StoreConfig
from ..similarity.embedding_cache import EmbeddingCache
from .cache import CacheStore
from .connection import ConnectionManager, create_engine
from .goals import GoalStore
from .knowledge import KnowledgeStore
from .logs import LogStore
from .memories import DEFAULT_TABLE, MemoryStore
from .models import (
    Account,
    Actor,
    CachedEmbedding,
    Goal,
    GoalStatus,
    KnowledgeItem,
    Memory,
    Participant,
    ParticipantState,
    Relationship,
    UUIDLike,
)
from .relationships import RelationshipStore
from .rooms import RoomStore

logger = logging.getLogger(__name__)


class AgentDatabase:
    """
    Unified persistence layer for one agent process.

    Example:
        db = AgentDatabase(StoreConfig.in_memory(embedding_dimension=384))
        db.init()

        room_id = db.create_room()
        db.add_participant(user_id, room_id)

        db.create_memory(Memory(agent_id=agent_id, room_id=room_id,
                                user_id=user_id, content={"text": "hi"},
                                embedding=vector, unique=True))

        similar = db.search_memories_by_embedding(vector, threshold=0.8)
        db.close()

    Pass the instance to whatever needs storage; there is no global handle.
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        connections: Optional[ConnectionManager] = None,
    ):
        """
        Initialize the database.

        Args:
            config: Store settings (defaults to StoreConfig.from_env())
            connections: Pre-built ConnectionManager (overrides config.url)
        """
        self.config = config or StoreConfig.from_env()
        self.connections = connections or ConnectionManager(
            create_engine(self.config.url, busy_timeout=self.config.busy_timeout)
        )

        dimension = self.config.embedding_dimension
        self.cache = CacheStore(self.connections)
        self.memories = MemoryStore(
            self.connections,
            embedding_dimension=dimension,
            exact_match_tolerance=self.config.exact_match_tolerance,
        )
        self.knowledge = KnowledgeStore(
            self.connections,
            cache=self.cache if self.config.enable_search_cache else None,
            embedding_dimension=dimension,
            cache_size=self.config.search_cache_size,
        )
        self.goals = GoalStore(self.connections)
        self.rooms = RoomStore(self.connections)
        self.relationships = RelationshipStore(self.connections)
        self.logs = LogStore(self.connections)
        self.embedding_cache = EmbeddingCache(self.connections)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def init(self) -> "AgentDatabase":
        """Open the engine and make sure the schema exists."""
        try:
            self.connections.init()
        except Exception:
            self.connections.close()
            raise
        logger.info(
            f"AgentDatabase initialized: url={self.config.url}, "
            f"dimension={self.config.embedding_dimension}, "
            f"search_cache={self.config.enable_search_cache}"
        )
        return self

    def close(self) -> None:
        self.connections.close()

    def __enter__(self) -> "AgentDatabase":
        return self.init()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def query(self, text: str, values: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Parameterized passthrough for collaborators that need ad hoc SQL."""
        return self.connections.query(text, values)

    # =========================================================================
    # Memories
    # =========================================================================

    def create_memory(self, memory: Memory, table_name: str = DEFAULT_TABLE) -> bool:
        return self.memories.create(memory, table_name)

    def get_memory_by_id(self, memory_id: UUIDLike) -> Optional[Memory]:
        return self.memories.get_by_id(memory_id)

    def get_memories_by_ids(
        self, memory_ids: List[UUIDLike], table_name: Optional[str] = None
    ) -> List[Memory]:
        return self.memories.get_by_ids(memory_ids, table_name)

    def get_memories_by_room_ids(
        self,
        room_ids: List[UUIDLike],
        table_name: str = DEFAULT_TABLE,
        agent_id: Optional[UUIDLike] = None,
        count: Optional[int] = None,
        unique: bool = False,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Memory]:
        return self.memories.get_by_room(
            room_ids, table_name, agent_id=agent_id, count=count,
            unique=unique, start=start, end=end,
        )

    def get_memories(
        self,
        room_id: UUIDLike,
        table_name: str = DEFAULT_TABLE,
        agent_id: Optional[UUIDLike] = None,
        count: Optional[int] = None,
        unique: bool = False,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Memory]:
        return self.memories.get_by_room(
            [room_id], table_name, agent_id=agent_id, count=count,
            unique=unique, start=start, end=end,
        )

    def search_memories_by_embedding(
        self,
        embedding: List[float],
        table_name: str = DEFAULT_TABLE,
        threshold: float = 0.0,
        count: Optional[int] = 10,
        agent_id: Optional[UUIDLike] = None,
        room_id: Optional[UUIDLike] = None,
        unique: bool = False,
    ) -> List[Memory]:
        return self.memories.search_by_embedding(
            embedding, table_name=table_name, threshold=threshold, count=count,
            agent_id=agent_id, room_id=room_id, unique=unique,
        )

    def search_memories(
        self,
        room_id: UUIDLike,
        embedding: List[float],
        table_name: str = DEFAULT_TABLE,
        threshold: float = 0.0,
        count: int = 10,
        agent_id: Optional[UUIDLike] = None,
        unique: bool = False,
    ) -> List[Memory]:
        return self.memories.search(
            room_id, embedding, table_name=table_name, threshold=threshold,
            count=count, agent_id=agent_id, unique=unique,
        )

    def remove_memory(self, memory_id: UUIDLike, table_name: str = DEFAULT_TABLE) -> int:
        return self.memories.remove(memory_id, table_name)

    def remove_all_memories(self, room_id: UUIDLike, table_name: str = DEFAULT_TABLE) -> int:
        return self.memories.remove_all(room_id, table_name)

    def count_memories(
        self, room_id: UUIDLike, unique: bool = True, table_name: str = DEFAULT_TABLE
    ) -> int:
        return self.memories.count(room_id, unique=unique, table_name=table_name)

    def get_cached_embeddings(
        self,
        query_table_name: str,
        query_threshold: float,
        query_input: str,
        query_field_name: str,
        query_field_sub_name: str,
        query_match_count: int,
    ) -> List[CachedEmbedding]:
        return self.embedding_cache.get_cached_embeddings(
            query_table_name=query_table_name,
            query_threshold=query_threshold,
            query_input=query_input,
            query_field_name=query_field_name,
            query_field_sub_name=query_field_sub_name,
            query_match_count=query_match_count,
        )

    # =========================================================================
    # Knowledge
    # =========================================================================

    def create_knowledge(self, item: KnowledgeItem) -> bool:
        return self.knowledge.create(item)

    def get_knowledge(
        self,
        agent_id: UUIDLike,
        id: Optional[UUIDLike] = None,
        limit: Optional[int] = None,
    ) -> List[KnowledgeItem]:
        return self.knowledge.get(agent_id, id=id, limit=limit)

    def search_knowledge(
        self,
        agent_id: UUIDLike,
        embedding: List[float],
        threshold: float = 0.0,
        count: Optional[int] = 10,
        search_text: Optional[str] = None,
    ) -> List[KnowledgeItem]:
        return self.knowledge.search(
            agent_id, embedding, threshold=threshold, count=count, search_text=search_text
        )

    def remove_knowledge(self, id: UUIDLike) -> int:
        return self.knowledge.remove(id)

    def clear_knowledge(self, agent_id: UUIDLike, shared: bool = False) -> int:
        return self.knowledge.clear(agent_id, shared=shared)

    # =========================================================================
    # Goals
    # =========================================================================

    def create_goal(self, goal: Goal) -> Goal:
        return self.goals.create(goal)

    def update_goal(self, goal: Goal) -> bool:
        return self.goals.update(goal)

    def update_goal_status(self, goal_id: UUIDLike, status: Union[GoalStatus, str]) -> bool:
        return self.goals.update_status(goal_id, status)

    def remove_goal(self, goal_id: UUIDLike) -> int:
        return self.goals.remove(goal_id)

    def remove_all_goals(self, room_id: UUIDLike) -> int:
        return self.goals.remove_all_for_room(room_id)

    def get_goals(
        self,
        room_id: UUIDLike,
        user_id: Optional[UUIDLike] = None,
        only_in_progress: bool = False,
        count: Optional[int] = None,
    ) -> List[Goal]:
        return self.goals.list(
            room_id, user_id=user_id, only_in_progress=only_in_progress, count=count
        )

    # =========================================================================
    # Rooms, participants, accounts
    # =========================================================================

    def create_room(self, room_id: Optional[UUIDLike] = None) -> str:
        return self.rooms.create_room(room_id)

    def get_room(self, room_id: UUIDLike) -> Optional[str]:
        return self.rooms.get_room(room_id)

    def remove_room(self, room_id: UUIDLike) -> bool:
        return self.rooms.remove_room(room_id)

    def add_participant(self, user_id: UUIDLike, room_id: UUIDLike) -> bool:
        return self.rooms.add_participant(user_id, room_id)

    def remove_participant(self, user_id: UUIDLike, room_id: UUIDLike) -> bool:
        return self.rooms.remove_participant(user_id, room_id)

    def set_participant_user_state(
        self,
        room_id: UUIDLike,
        user_id: UUIDLike,
        state: Optional[Union[ParticipantState, str]],
    ) -> None:
        self.rooms.set_participant_state(room_id, user_id, state)

    def get_participant_user_state(
        self, room_id: UUIDLike, user_id: UUIDLike
    ) -> Optional[ParticipantState]:
        return self.rooms.get_participant_state(room_id, user_id)

    def get_participants_for_room(self, room_id: UUIDLike) -> List[str]:
        return self.rooms.get_participants_for_room(room_id)

    def get_participants_for_account(self, user_id: UUIDLike) -> List[Participant]:
        return self.rooms.get_participants_for_account(user_id)

    def get_rooms_for_participant(self, user_id: UUIDLike) -> List[str]:
        return self.rooms.get_rooms_for_participant(user_id)

    def get_rooms_for_participants(self, user_ids: List[UUIDLike]) -> List[str]:
        return self.rooms.get_rooms_for_participants(user_ids)

    def create_account(self, account: Account) -> bool:
        return self.rooms.create_account(account)

    def get_account_by_id(self, user_id: UUIDLike) -> Optional[Account]:
        return self.rooms.get_account_by_id(user_id)

    def get_actor_details(self, room_id: UUIDLike) -> List[Actor]:
        return self.rooms.get_actor_details(room_id)

    # =========================================================================
    # Relationships
    # =========================================================================

    def create_relationship(self, user_a: UUIDLike, user_b: UUIDLike) -> Relationship:
        return self.relationships.create(user_a, user_b)

    def get_relationship(self, user_a: UUIDLike, user_b: UUIDLike) -> Optional[Relationship]:
        return self.relationships.get(user_a, user_b)

    def get_relationships(self, user_id: UUIDLike) -> List[Relationship]:
        return self.relationships.list(user_id)

    # =========================================================================
    # Cache and logs
    # =========================================================================

    def get_cache(self, agent_id: UUIDLike, key: str) -> Optional[str]:
        return self.cache.get(agent_id, key)

    def set_cache(self, agent_id: UUIDLike, key: str, value: str) -> bool:
        return self.cache.set(agent_id, key, value)

    def delete_cache(self, agent_id: UUIDLike, key: str) -> bool:
        return self.cache.delete(agent_id, key)

    def log(
        self,
        body: Dict[str, Any],
        user_id: UUIDLike,
        room_id: UUIDLike,
        type: str,
    ) -> str:
        return self.logs.log(body, user_id, room_id, type)
