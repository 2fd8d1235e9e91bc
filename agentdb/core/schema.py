"""
Schema gate - creates every table and index the stores need.

All statements are IF NOT EXISTS, so running the gate against an existing
database is a no-op. ConnectionManager.init() runs it once per process.
"""

import logging

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    id TEXT PRIMARY KEY,
    createdAt TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now')),
    name TEXT,
    username TEXT,
    email TEXT NOT NULL DEFAULT '',
    avatarUrl TEXT,
    details TEXT NOT NULL DEFAULT '{}' CHECK(json_valid(details))
);

CREATE TABLE IF NOT EXISTS rooms (
    id TEXT PRIMARY KEY,
    createdAt TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now'))
);

CREATE TABLE IF NOT EXISTS participants (
    id TEXT PRIMARY KEY,
    createdAt TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now')),
    userId TEXT NOT NULL,
    roomId TEXT NOT NULL,
    userState TEXT CHECK(userState IS NULL OR userState IN ('FOLLOWED', 'MUTED')),
    last_message_read TEXT,
    UNIQUE(userId, roomId)
);

CREATE INDEX IF NOT EXISTS idx_participants_room ON participants(roomId);

CREATE TABLE IF NOT EXISTS memories (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    createdAt TEXT NOT NULL,
    content TEXT NOT NULL CHECK(json_valid(content)),
    embedding BLOB,
    userId TEXT,
    roomId TEXT NOT NULL,
    agentId TEXT NOT NULL,
    "unique" INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_memories_room
ON memories(type, roomId, createdAt);

CREATE INDEX IF NOT EXISTS idx_memories_agent
ON memories(type, agentId, createdAt);

CREATE TABLE IF NOT EXISTS goals (
    id TEXT PRIMARY KEY,
    createdAt TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now')),
    userId TEXT,
    name TEXT,
    status TEXT NOT NULL,
    description TEXT,
    roomId TEXT NOT NULL,
    objectives TEXT NOT NULL DEFAULT '[]' CHECK(json_valid(objectives))
);

CREATE INDEX IF NOT EXISTS idx_goals_room ON goals(roomId, status);

CREATE TABLE IF NOT EXISTS relationships (
    id TEXT PRIMARY KEY,
    createdAt TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now')),
    userA TEXT NOT NULL,
    userB TEXT NOT NULL,
    status TEXT,
    userId TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_relationships_a ON relationships(userA);
CREATE INDEX IF NOT EXISTS idx_relationships_b ON relationships(userB);

CREATE TABLE IF NOT EXISTS knowledge (
    id TEXT PRIMARY KEY,
    agentId TEXT,
    content TEXT NOT NULL CHECK(json_valid(content)),
    embedding BLOB,
    createdAt TEXT NOT NULL,
    isMain INTEGER NOT NULL DEFAULT 0,
    originalId TEXT,
    chunkIndex INTEGER,
    isShared INTEGER NOT NULL DEFAULT 0,
    CHECK((isShared = 1 AND agentId IS NULL) OR (isShared = 0 AND agentId IS NOT NULL))
);

CREATE INDEX IF NOT EXISTS idx_knowledge_agent ON knowledge(agentId, createdAt);
CREATE INDEX IF NOT EXISTS idx_knowledge_shared ON knowledge(isShared);
CREATE INDEX IF NOT EXISTS idx_knowledge_original ON knowledge(originalId);

CREATE TABLE IF NOT EXISTS cache (
    key TEXT NOT NULL,
    agentId TEXT NOT NULL,
    value TEXT NOT NULL,
    createdAt TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now')),
    PRIMARY KEY (key, agentId)
);

CREATE TABLE IF NOT EXISTS logs (
    id TEXT PRIMARY KEY,
    createdAt TEXT NOT NULL,
    userId TEXT NOT NULL,
    roomId TEXT NOT NULL,
    type TEXT NOT NULL,
    body TEXT NOT NULL CHECK(json_valid(body))
);

CREATE INDEX IF NOT EXISTS idx_logs_room ON logs(roomId, createdAt);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);
"""

TABLES = (
    "accounts",
    "rooms",
    "participants",
    "memories",
    "goals",
    "relationships",
    "knowledge",
    "cache",
    "logs",
)


def ensure_schema(conn) -> int:
    """Create missing tables/indexes and record the schema version."""
    conn.executescript(SCHEMA)
    conn.execute(
        "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    row = conn.execute("SELECT MAX(version) AS version FROM schema_version").fetchone()
    logger.debug(f"Schema ready (version {row['version']})")
    return row["version"]
