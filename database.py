import psycopg2
from contextlib import contextmanager
from psycopg2 import errors
from psycopg2.extras import RealDictCursor
from typing import Optional

from models import UserRecord

USER_COLUMNS = "id, email, password_hash, user_type, first_name, last_name, phone"

SCHEMA = """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        email VARCHAR(255) UNIQUE NOT NULL,
        password_hash VARCHAR(255) NOT NULL,
        user_type VARCHAR(20) NOT NULL CHECK (user_type IN ('admin', 'driver')),
        first_name VARCHAR(100) NOT NULL,
        last_name VARCHAR(100) NOT NULL,
        phone VARCHAR(30),
        created_at TIMESTAMP DEFAULT NOW()
    )
"""


class DuplicateEmail(Exception):
    """Raised when inserting a user whose email is already registered"""


class UserStore:
    """users table access over psycopg2; a connection per operation"""

    def __init__(self, dsn: str):
        self.dsn = dsn

    @contextmanager
    def get_connection(self):
        conn = psycopg2.connect(self.dsn)
        try:
            # commits on success, rolls back on error
            with conn:
                yield conn
        finally:
            conn.close()

    def verify_connection(self) -> None:
        with self.get_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
        print("[DATABASE] Connected to PostgreSQL database successfully!")

    def init_schema(self) -> None:
        with self.get_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute(SCHEMA)

    def email_exists(self, email: str) -> bool:
        with self.get_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute("SELECT id FROM users WHERE email = %s", (email,))
                return cursor.fetchone() is not None

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE email = %s", (email,))
                row = cursor.fetchone()
                return UserRecord(**row) if row else None

    def insert_user(self, email: str, password_hash: str, user_type: str,
                    first_name: str, last_name: str, phone: Optional[str]) -> UserRecord:
        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(
                        f"""
                        INSERT INTO users (email, password_hash, user_type, first_name, last_name, phone)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        RETURNING {USER_COLUMNS}
                        """,
                        (email, password_hash, user_type, first_name, last_name, phone),
                    )
                    return UserRecord(**cursor.fetchone())
        except errors.UniqueViolation as e:
            raise DuplicateEmail(email) from e
