"""Database repository for user account data."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from psycopg import errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account, VerificationTicket
from .domain.contracts import AccountDraft, ProfileUpdate
from .domain.errors import ConflictError

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    account_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    bio TEXT NOT NULL DEFAULT '',
    avatar TEXT NOT NULL DEFAULT '',
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    is_email_verified BOOLEAN NOT NULL DEFAULT FALSE,
    email_verification_token TEXT,
    email_verification_expires TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    CONSTRAINT accounts_verification_pair CHECK (
        (email_verification_token IS NULL) = (email_verification_expires IS NULL)
    ),
    CONSTRAINT accounts_verified_has_no_token CHECK (
        NOT is_email_verified OR email_verification_token IS NULL
    )
);
CREATE UNIQUE INDEX IF NOT EXISTS accounts_email_key ON accounts (email);
CREATE INDEX IF NOT EXISTS accounts_verification_token_idx
    ON accounts (email_verification_token)
    WHERE email_verification_token IS NOT NULL;
"""

_PUBLIC_COLUMNS = "account_id, name, email, created_at, updated_at, is_active, is_email_verified, bio, avatar"


class AccountRepository:
    """Postgres-backed account persistence; the unique email index is the final authority."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        with self._pool.connection() as conn:
            conn.execute(SCHEMA_SQL)
            conn.commit()

    def create(self, draft: AccountDraft) -> Account:
        """Insert a new account, translating a unique-email violation into ``ConflictError``."""
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO accounts (
                            account_id, name, email, password_hash, is_active, is_email_verified,
                            email_verification_token, email_verification_expires, created_at, updated_at
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING {_PUBLIC_COLUMNS}
                        """,
                        (
                            account_id,
                            draft.name,
                            draft.email,
                            draft.password_hash,
                            draft.is_active,
                            draft.is_email_verified,
                            draft.verification.token_digest,
                            draft.verification.expires_at,
                            now,
                            now,
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        except errors.UniqueViolation as exc:
            raise ConflictError(draft.email) from exc
        return self._map_record(row)

    def find_by_email(self, email: str, *, include_password: bool = False) -> Account | None:
        """Fetch an account by normalised email; the hash is only read when requested."""
        columns = _PUBLIC_COLUMNS + (", password_hash" if include_password else "")
        row = self._fetch_one(f"SELECT {columns} FROM accounts WHERE email = %s", (email,))
        if row is None:
            return None
        account = self._map_record(row)
        if include_password:
            account.password_hash = row[9]
        return account

    def find_by_id(self, account_id: str) -> Account | None:
        row = self._fetch_one(f"SELECT {_PUBLIC_COLUMNS} FROM accounts WHERE account_id = %s", (account_id,))
        return self._map_record(row) if row else None

    def find_by_verification_token(self, token_digest: str) -> Account | None:
        """Return the account owning ``token_digest`` with its ticket; expiry is left to the caller."""
        row = self._fetch_one(
            f"""
            SELECT {_PUBLIC_COLUMNS}, email_verification_token, email_verification_expires
            FROM accounts
            WHERE email_verification_token = %s
            """,
            (token_digest,),
        )
        if row is None:
            return None
        account = self._map_record(row)
        account.verification = VerificationTicket(token_digest=row[9], expires_at=row[10])
        return account

    def mark_verified(self, account_id: str, token_digest: str, now: datetime) -> Account | None:
        """Consume the outstanding ticket; matches nothing once it was used, replaced or expired."""
        return self._update_returning(
            """
            UPDATE accounts
            SET is_email_verified = TRUE,
                email_verification_token = NULL,
                email_verification_expires = NULL,
                updated_at = %s
            WHERE account_id = %s
              AND NOT is_email_verified
              AND email_verification_token = %s
              AND email_verification_expires > %s
            """,
            (datetime.now(timezone.utc), account_id, token_digest, now),
        )

    def reissue_verification(self, account_id: str, ticket: VerificationTicket) -> Account | None:
        """Overwrite the token pair, but never on an account that is already verified."""
        return self._update_returning(
            """
            UPDATE accounts
            SET email_verification_token = %s,
                email_verification_expires = %s,
                updated_at = %s
            WHERE account_id = %s AND NOT is_email_verified
            """,
            (ticket.token_digest, ticket.expires_at, datetime.now(timezone.utc), account_id),
        )

    def update_profile(self, account_id: str, changes: ProfileUpdate) -> Account | None:
        assignments: list[str] = []
        params: list[Any] = []
        for column in ("name", "bio", "avatar"):
            value = getattr(changes, column)
            if value is not None:
                assignments.append(f"{column} = %s")
                params.append(value)
        assignments.append("updated_at = %s")
        params.extend([datetime.now(timezone.utc), account_id])
        return self._update_returning(
            f"UPDATE accounts SET {', '.join(assignments)} WHERE account_id = %s",
            tuple(params),
        )

    def _fetch_one(self, query: str, params: tuple) -> tuple | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                return cur.fetchone()

    def _update_returning(self, query: str, params: tuple) -> Account | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"{query} RETURNING {_PUBLIC_COLUMNS}", params)
                row = cur.fetchone()
            conn.commit()
        return self._map_record(row) if row else None

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            name=row[1],
            email=row[2],
            created_at=row[3],
            updated_at=row[4],
            is_active=row[5],
            is_email_verified=row[6],
            bio=row[7],
            avatar=row[8],
        )
