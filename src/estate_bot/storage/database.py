"""SQLite database connection manager with schema migration."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from estate_bot.log import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS conversations (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    session_key           TEXT    NOT NULL,
    status                TEXT    NOT NULL DEFAULT 'active' CHECK(status IN ('active','closed')),
    user_name             TEXT,
    user_email            TEXT,
    user_phone            TEXT,
    last_response_source  TEXT,
    total_tokens          INTEGER NOT NULL DEFAULT 0,
    created_at            TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
    updated_at            TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_conversations_session
    ON conversations(session_key, status);

CREATE INDEX IF NOT EXISTS idx_conversations_email
    ON conversations(user_email);

CREATE INDEX IF NOT EXISTS idx_conversations_phone
    ON conversations(user_phone);

CREATE TABLE IF NOT EXISTS messages (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id   INTEGER NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    role              TEXT    NOT NULL CHECK(role IN ('user','assistant')),
    content           TEXT    NOT NULL,
    source            TEXT,
    provider          TEXT,
    model             TEXT,
    tokens            INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation
    ON messages(conversation_id, id);

CREATE TABLE IF NOT EXISTS conversation_context (
    conversation_id       INTEGER PRIMARY KEY REFERENCES conversations(id) ON DELETE CASCADE,
    collected_info_json   TEXT NOT NULL DEFAULT '{}',
    search_criteria_json  TEXT NOT NULL DEFAULT '{}',
    shown_entities_json   TEXT NOT NULL DEFAULT '[]',
    active_entity_id      TEXT,
    active_entity_json    TEXT,
    updated_at            TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE TABLE IF NOT EXISTS response_cache (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    question_hash     TEXT    NOT NULL,
    context_hash      TEXT,
    question          TEXT    NOT NULL,
    response          TEXT    NOT NULL,
    response_type     TEXT    NOT NULL,
    confidence        REAL    NOT NULL,
    tokens_used       INTEGER NOT NULL DEFAULT 0,
    hit_count         INTEGER NOT NULL DEFAULT 0,
    expires_at        REAL,
    last_accessed     REAL,
    created_at        REAL    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_cache_lookup
    ON response_cache(question_hash, context_hash);

CREATE TABLE IF NOT EXISTS faq (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    question      TEXT    NOT NULL,
    answer        TEXT    NOT NULL,
    keywords      TEXT    NOT NULL DEFAULT '',
    category      TEXT    NOT NULL DEFAULT 'general',
    is_active     INTEGER NOT NULL DEFAULT 1,
    usage_count   INTEGER NOT NULL DEFAULT 0,
    created_at    TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE VIRTUAL TABLE IF NOT EXISTS faq_fts USING fts5(
    question,
    keywords,
    content='faq',
    content_rowid='id',
    tokenize='porter unicode61'
);

CREATE TRIGGER IF NOT EXISTS trg_faq_fts_insert AFTER INSERT ON faq BEGIN
    INSERT INTO faq_fts(rowid, question, keywords) VALUES (new.id, new.question, new.keywords);
END;

CREATE TRIGGER IF NOT EXISTS trg_faq_fts_delete AFTER DELETE ON faq BEGIN
    INSERT INTO faq_fts(faq_fts, rowid, question, keywords)
        VALUES ('delete', old.id, old.question, old.keywords);
END;

CREATE TRIGGER IF NOT EXISTS trg_faq_fts_update AFTER UPDATE OF question, keywords ON faq BEGIN
    INSERT INTO faq_fts(faq_fts, rowid, question, keywords)
        VALUES ('delete', old.id, old.question, old.keywords);
    INSERT INTO faq_fts(rowid, question, keywords) VALUES (new.id, new.question, new.keywords);
END;

CREATE TABLE IF NOT EXISTS lead_submissions (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id   INTEGER,
    form_type         TEXT    NOT NULL CHECK(form_type IN ('tour','contact')),
    listing_id        TEXT,
    first_name        TEXT    NOT NULL,
    last_name         TEXT    NOT NULL DEFAULT '',
    email             TEXT    NOT NULL,
    phone             TEXT    NOT NULL DEFAULT '',
    message           TEXT    NOT NULL DEFAULT '',
    inquiry_type      TEXT    NOT NULL DEFAULT 'general',
    status            TEXT    NOT NULL DEFAULT 'new',
    source            TEXT    NOT NULL DEFAULT 'ai_chatbot',
    created_at        TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE TABLE IF NOT EXISTS provider_usage (
    provider            TEXT    NOT NULL,
    day                 TEXT    NOT NULL,
    request_count       INTEGER NOT NULL DEFAULT 0,
    prompt_tokens       INTEGER NOT NULL DEFAULT 0,
    completion_tokens   INTEGER NOT NULL DEFAULT 0,
    estimated_cost      REAL    NOT NULL DEFAULT 0,
    PRIMARY KEY (provider, day)
);
"""


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection and run migrations."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        logger.info("database_initialized", path=self._db_path)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")
