"""SQLite schema for the command store.

Statements run in order on every initialisation and are individually
idempotent (``IF NOT EXISTS`` / ``INSERT OR IGNORE``). They are kept as a
tuple rather than a SQL file because trigger bodies contain semicolons.

``command_search`` is an FTS5 table holding its own copy of the indexed
columns. Application code never writes it: the triggers below project every
relational mutation into it.
"""

from __future__ import annotations

_CREATE_CATEGORIES_TABLE = """
CREATE TABLE IF NOT EXISTS categories (
    id          INTEGER PRIMARY KEY,
    name        TEXT NOT NULL UNIQUE,
    description TEXT,
    created_at  TEXT DEFAULT CURRENT_TIMESTAMP
)
"""

_CREATE_COMMANDS_TABLE = """
CREATE TABLE IF NOT EXISTS commands (
    id          INTEGER PRIMARY KEY,
    name        TEXT NOT NULL UNIQUE COLLATE NOCASE,
    stands_for  TEXT,
    summary     TEXT NOT NULL,
    category_id INTEGER,
    created_at  TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at  TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE SET NULL
)
"""

_CREATE_COMMANDS_INDEX = "CREATE INDEX IF NOT EXISTS idx_commands_name ON commands(name)"

_CREATE_EXAMPLES_TABLE = """
CREATE TABLE IF NOT EXISTS command_examples (
    id          INTEGER PRIMARY KEY,
    command_id  INTEGER NOT NULL,
    example     TEXT NOT NULL,
    description TEXT,
    sort_order  INTEGER DEFAULT 0,
    FOREIGN KEY (command_id) REFERENCES commands(id) ON DELETE CASCADE
)
"""

_CREATE_EXAMPLES_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_examples_command ON command_examples(command_id, sort_order)"
)

_CREATE_CONTENT_TYPES_TABLE = """
CREATE TABLE IF NOT EXISTS content_types (
    id          INTEGER PRIMARY KEY,
    name        TEXT NOT NULL UNIQUE,
    description TEXT
)
"""

_SEED_CONTENT_TYPES = """
INSERT OR IGNORE INTO content_types (name, description) VALUES
    ('tldr', 'TL;DR style brief command summary'),
    ('manpage', 'Full manual page content in markdown'),
    ('chtsh', 'Content from cht.sh API'),
    ('explainshell', 'Content from explainshell.com')
"""

_SEED_CATEGORIES = """
INSERT OR IGNORE INTO categories (name, description) VALUES
    ('common', 'Commands available on every platform'),
    ('linux', 'Linux-specific commands'),
    ('osx', 'macOS-specific commands'),
    ('windows', 'Windows-specific commands')
"""

_CREATE_CONTENT_TABLE = """
CREATE TABLE IF NOT EXISTS command_content (
    id              INTEGER PRIMARY KEY,
    command_id      INTEGER NOT NULL,
    content_type_id INTEGER NOT NULL,
    content         TEXT NOT NULL,
    format          TEXT DEFAULT 'markdown',
    created_at      TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at      TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (command_id) REFERENCES commands(id) ON DELETE CASCADE,
    FOREIGN KEY (content_type_id) REFERENCES content_types(id) ON DELETE CASCADE,
    UNIQUE (command_id, content_type_id)
)
"""

_CREATE_CACHE_TABLE = """
CREATE TABLE IF NOT EXISTS api_cache (
    id           INTEGER PRIMARY KEY,
    cache_key    TEXT NOT NULL UNIQUE,
    content      TEXT NOT NULL,
    content_type TEXT DEFAULT 'json',
    expires_at   TEXT NOT NULL,
    created_at   TEXT DEFAULT CURRENT_TIMESTAMP
)
"""

_CREATE_CACHE_INDEX = "CREATE INDEX IF NOT EXISTS idx_api_cache_expires ON api_cache(expires_at)"

_CREATE_HISTORY_TABLE = """
CREATE TABLE IF NOT EXISTS command_history (
    id         INTEGER PRIMARY KEY,
    command_id INTEGER,
    raw_input  TEXT NOT NULL,
    event      TEXT NOT NULL DEFAULT 'lookup',
    timestamp  TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (command_id) REFERENCES commands(id) ON DELETE SET NULL
)
"""

_CREATE_HISTORY_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_history_timestamp ON command_history(timestamp)"
)

_CREATE_SETTINGS_TABLE = """
CREATE TABLE IF NOT EXISTS app_settings (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
)
"""

_SEED_SETTINGS = """
INSERT OR IGNORE INTO app_settings (key, value) VALUES
    ('db_version', '1.0'),
    ('cache_ttl_seconds', '86400'),
    ('theme', 'dark')
"""

_CREATE_SEARCH_TABLE = """
CREATE VIRTUAL TABLE IF NOT EXISTS command_search USING fts5(
    name,
    stands_for,
    summary,
    examples,
    content,
    category,
    tokenize = 'porter unicode61',
    prefix = '2 3'
)
"""

_EXAMPLES_CONCAT = (
    "(SELECT group_concat(example, ' ') FROM command_examples WHERE command_id = {ref})"
)
_CONTENT_CONCAT = "(SELECT group_concat(content, ' ') FROM command_content WHERE command_id = {ref})"
_CATEGORY_NAME = "(SELECT name FROM categories WHERE id = {ref})"

_TRIGGER_COMMANDS_INSERT = f"""
CREATE TRIGGER IF NOT EXISTS commands_ai AFTER INSERT ON commands BEGIN
    INSERT INTO command_search (rowid, name, stands_for, summary, examples, content, category)
    VALUES (
        new.id,
        new.name,
        new.stands_for,
        new.summary,
        {_EXAMPLES_CONCAT.format(ref="new.id")},
        {_CONTENT_CONCAT.format(ref="new.id")},
        {_CATEGORY_NAME.format(ref="new.category_id")}
    );
END
"""

_TRIGGER_COMMANDS_UPDATE = f"""
CREATE TRIGGER IF NOT EXISTS commands_au AFTER UPDATE ON commands BEGIN
    UPDATE command_search
    SET name = new.name,
        stands_for = new.stands_for,
        summary = new.summary,
        category = {_CATEGORY_NAME.format(ref="new.category_id")}
    WHERE rowid = old.id;
END
"""

_TRIGGER_COMMANDS_DELETE = """
CREATE TRIGGER IF NOT EXISTS commands_ad AFTER DELETE ON commands BEGIN
    DELETE FROM command_search WHERE rowid = old.id;
END
"""

_TRIGGER_EXAMPLES_INSERT = f"""
CREATE TRIGGER IF NOT EXISTS examples_ai AFTER INSERT ON command_examples BEGIN
    UPDATE command_search
    SET examples = {_EXAMPLES_CONCAT.format(ref="new.command_id")}
    WHERE rowid = new.command_id;
END
"""

_TRIGGER_EXAMPLES_DELETE = f"""
CREATE TRIGGER IF NOT EXISTS examples_ad AFTER DELETE ON command_examples BEGIN
    UPDATE command_search
    SET examples = {_EXAMPLES_CONCAT.format(ref="old.command_id")}
    WHERE rowid = old.command_id;
END
"""

_TRIGGER_CONTENT_INSERT = f"""
CREATE TRIGGER IF NOT EXISTS content_ai AFTER INSERT ON command_content BEGIN
    UPDATE command_search
    SET content = {_CONTENT_CONCAT.format(ref="new.command_id")}
    WHERE rowid = new.command_id;
END
"""

_TRIGGER_CONTENT_UPDATE = f"""
CREATE TRIGGER IF NOT EXISTS content_au AFTER UPDATE ON command_content BEGIN
    UPDATE command_search
    SET content = {_CONTENT_CONCAT.format(ref="new.command_id")}
    WHERE rowid = new.command_id;
END
"""

_TRIGGER_CONTENT_DELETE = f"""
CREATE TRIGGER IF NOT EXISTS content_ad AFTER DELETE ON command_content BEGIN
    UPDATE command_search
    SET content = {_CONTENT_CONCAT.format(ref="old.command_id")}
    WHERE rowid = old.command_id;
END
"""

_TRIGGER_CATEGORY_RENAME = """
CREATE TRIGGER IF NOT EXISTS categories_au AFTER UPDATE OF name ON categories BEGIN
    UPDATE command_search
    SET category = new.name
    WHERE rowid IN (SELECT id FROM commands WHERE category_id = new.id);
END
"""

SCHEMA_STATEMENTS: tuple[str, ...] = (
    _CREATE_CATEGORIES_TABLE,
    _CREATE_COMMANDS_TABLE,
    _CREATE_COMMANDS_INDEX,
    _CREATE_EXAMPLES_TABLE,
    _CREATE_EXAMPLES_INDEX,
    _CREATE_CONTENT_TYPES_TABLE,
    _SEED_CONTENT_TYPES,
    _SEED_CATEGORIES,
    _CREATE_CONTENT_TABLE,
    _CREATE_CACHE_TABLE,
    _CREATE_CACHE_INDEX,
    _CREATE_HISTORY_TABLE,
    _CREATE_HISTORY_INDEX,
    _CREATE_SETTINGS_TABLE,
    _SEED_SETTINGS,
    _CREATE_SEARCH_TABLE,
    _TRIGGER_COMMANDS_INSERT,
    _TRIGGER_COMMANDS_UPDATE,
    _TRIGGER_COMMANDS_DELETE,
    _TRIGGER_EXAMPLES_INSERT,
    _TRIGGER_EXAMPLES_DELETE,
    _TRIGGER_CONTENT_INSERT,
    _TRIGGER_CONTENT_UPDATE,
    _TRIGGER_CONTENT_DELETE,
    _TRIGGER_CATEGORY_RENAME,
)
