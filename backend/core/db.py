"""Database utilities: connection factory and schema ensure.

Exposes:
- get_db_conn(): psycopg2 connection built from DATABASE_URL or POSTGRES_* parts
- ensure_schema(): creates the note and Teach Me session tables (idempotent)
"""
from __future__ import annotations
import os
import logging
import psycopg2


def get_db_conn():
    dsn = os.getenv("DATABASE_URL")
    if not dsn:
        user = os.getenv("POSTGRES_USER", "postgres")
        password = os.getenv("POSTGRES_PASSWORD", "postgres")
        host = os.getenv("POSTGRES_HOST", "postgres")
        port = os.getenv("POSTGRES_PORT", "5432")
        db = os.getenv("POSTGRES_DB", "app")
        dsn = f"postgresql://{user}:{password}@{host}:{port}/{db}"
    return psycopg2.connect(dsn)


def ensure_schema() -> None:
    ddls = [
        """
CREATE EXTENSION IF NOT EXISTS "uuid-ossp";
""",
        """
CREATE TABLE IF NOT EXISTS study_notes (
  id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
  user_id TEXT NOT NULL,
  title TEXT,
  summary TEXT,
  key_points JSONB,
  structured_content JSONB,
  extracted_text TEXT,
  created_at TIMESTAMPTZ DEFAULT now()
);
""",
        """
CREATE TABLE IF NOT EXISTS teach_me_sessions (
  id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
  user_id TEXT NOT NULL,
  note_id UUID NULL,
  teaching_mode TEXT NOT NULL DEFAULT 'socratic',
  is_completed BOOLEAN NOT NULL DEFAULT false,
  version INT NOT NULL DEFAULT 0,
  data JSONB NOT NULL,
  created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
  updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
""",
        """
CREATE INDEX IF NOT EXISTS idx_teach_me_sessions_user ON teach_me_sessions (user_id, created_at);
""",
    ]
    conn = None
    try:
        conn = get_db_conn()
        with conn.cursor() as cur:
            for ddl in ddls:
                cur.execute(ddl)
        conn.commit()
    except Exception as e:
        logging.exception("Failed to ensure DB schema: %s", e)
    finally:
        if conn:
            conn.close()
