"""
Database manager for Mindloom.

This module handles all database operations using DuckDB: advisory metadata
for saved mindmaps and the log of AI agent calls.
"""

import duckdb
import json
import logging
from typing import List, Optional, Dict

from ..models import MindmapMetadata


class DatabaseManager:
    """
    Manages the DuckDB database for mindmap metadata and AI call records.
    """

    def __init__(self, db_path: str = "mindloom.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the DuckDB database file (":memory:" for tests)
        """
        self.db_path = db_path
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        self.initialize_database()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        self._require_connection()

        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS mindmaps (
                mindmap_id VARCHAR PRIMARY KEY,
                title VARCHAR NOT NULL,
                created_at TIMESTAMP,
                source_files TEXT NOT NULL,
                category_schema TEXT NOT NULL,
                node_count INTEGER NOT NULL,
                content_hash VARCHAR,
                saved_at TIMESTAMP NOT NULL
            )
        """)

        # Sequence for auto-incrementing call_id in ai_agent_calls
        self.connection.execute("CREATE SEQUENCE IF NOT EXISTS call_id_seq;")
        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS ai_agent_calls (
                call_id BIGINT PRIMARY KEY DEFAULT nextval('call_id_seq'),
                agent_name VARCHAR NOT NULL,
                input_data TEXT NOT NULL,
                system_prompt TEXT,
                user_prompt TEXT NOT NULL,
                model_name VARCHAR NOT NULL,
                raw_response TEXT NOT NULL,
                success BOOLEAN NOT NULL,
                error_message TEXT,
                execution_time_ms INTEGER,
                called_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    def upsert_mindmap(self, metadata: MindmapMetadata) -> None:
        """
        Insert or replace the metadata record of a saved mindmap.

        Args:
            metadata: The record to store
        """
        self._require_connection()

        self.connection.execute("""
            INSERT OR REPLACE INTO mindmaps (
                mindmap_id, title, created_at, source_files, category_schema,
                node_count, content_hash, saved_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            metadata.mindmap_id,
            metadata.title,
            metadata.created_at,
            json.dumps(metadata.source_files),
            json.dumps(metadata.category_schema),
            metadata.node_count,
            metadata.content_hash,
            metadata.saved_at
        ])

    def get_mindmap(self, mindmap_id: str) -> Optional[MindmapMetadata]:
        """
        Retrieve the metadata record of a mindmap.

        Args:
            mindmap_id: Identifier of the saved mindmap

        Returns:
            The record if found, None otherwise
        """
        self._require_connection()

        row = self.connection.execute("""
            SELECT mindmap_id, title, created_at, source_files, category_schema,
                   node_count, content_hash, saved_at
            FROM mindmaps
            WHERE mindmap_id = ?
        """, [mindmap_id]).fetchone()

        return self._row_to_metadata(row) if row else None

    def list_mindmaps(self) -> List[MindmapMetadata]:
        self._require_connection()

        rows = self.connection.execute("""
            SELECT mindmap_id, title, created_at, source_files, category_schema,
                   node_count, content_hash, saved_at
            FROM mindmaps
            ORDER BY saved_at DESC, mindmap_id
        """).fetchall()

        return [self._row_to_metadata(row) for row in rows]

    def delete_mindmap(self, mindmap_id: str) -> bool:
        """
        Remove the metadata record of a mindmap.

        Returns:
            True if a record was removed
        """
        self._require_connection()

        existing = self.connection.execute(
            "SELECT 1 FROM mindmaps WHERE mindmap_id = ?", [mindmap_id]
        ).fetchone()
        if not existing:
            return False

        self.connection.execute("DELETE FROM mindmaps WHERE mindmap_id = ?", [mindmap_id])
        return True

    def _row_to_metadata(self, row) -> MindmapMetadata:
        return MindmapMetadata(
            mindmap_id=row[0],
            title=row[1],
            created_at=row[2],
            source_files=json.loads(row[3]),
            category_schema=json.loads(row[4]),
            node_count=row[5],
            content_hash=row[6],
            saved_at=row[7]
        )

    def log_ai_agent_call(
        self,
        agent_name: str,
        input_data: str,
        system_prompt: Optional[str],
        user_prompt: str,
        model_name: str,
        raw_response: str,
        success: bool = True,
        error_message: Optional[str] = None,
        execution_time_ms: Optional[int] = None
    ) -> Optional[int]:
        """
        Log an AI agent call to the database for reproducibility.

        Returns:
            The new call_id
        """
        self._require_connection()

        result = self.connection.execute("""
            INSERT INTO ai_agent_calls (
                agent_name, input_data, system_prompt, user_prompt, model_name,
                raw_response, success, error_message, execution_time_ms
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING call_id
        """, [
            agent_name, input_data, system_prompt, user_prompt, model_name,
            raw_response, success, error_message, execution_time_ms
        ]).fetchone()
        return result[0] if result else None

    def get_ai_agent_calls(
        self,
        agent_name: Optional[str] = None,
        success_only: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict]:
        """
        Retrieve AI agent calls from the database.

        Args:
            agent_name: Filter by agent name (optional)
            success_only: Only return successful calls
            limit: Limit number of results

        Returns:
            List of AI agent call records, newest first
        """
        self._require_connection()

        query = """
            SELECT call_id, agent_name, input_data, system_prompt, user_prompt,
                   model_name, raw_response, success, error_message,
                   execution_time_ms, called_at
            FROM ai_agent_calls
            WHERE 1=1
        """
        params = []

        if agent_name:
            query += " AND agent_name = ?"
            params.append(agent_name)

        if success_only:
            query += " AND success = true"

        query += " ORDER BY call_id DESC"

        if limit:
            query += f" LIMIT {int(limit)}"

        results = self.connection.execute(query, params).fetchall()

        return [
            {
                "call_id": row[0],
                "agent_name": row[1],
                "input_data": row[2],
                "system_prompt": row[3],
                "user_prompt": row[4],
                "model_name": row[5],
                "raw_response": row[6],
                "success": row[7],
                "error_message": row[8],
                "execution_time_ms": row[9],
                "called_at": row[10]
            }
            for row in results
        ]


def open_database(db_path: str) -> DatabaseManager:
    """
    Connect to a database and make sure its tables exist.

    Args:
        db_path: Path to the DuckDB database file

    Returns:
        A connected DatabaseManager
    """
    db = DatabaseManager(db_path)
    db.connect()
    db.initialize_database()
    logging.info(f"Opened database: {db_path}")
    return db
