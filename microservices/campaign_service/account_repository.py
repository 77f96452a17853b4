"""
Account Repository

Data access for the local user rows anchored to identity-provider subjects.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.postgres_client import AsyncPostgresClient

from .models import User

logger = logging.getLogger(__name__)


class AccountRepository:
    """User repository - PostgreSQL (Async)"""

    def __init__(self, db: AsyncPostgresClient):
        self.db = db
        self.schema = "enrichment"
        self.users_table = "users"

    def _row_to_user(self, row: Dict[str, Any]) -> User:
        """Convert database row to User model"""
        return User(
            user_id=row["user_id"],
            external_id=row["external_id"],
            email=row.get("email") or "",
            first_name=row.get("first_name"),
            stripe_subscription_id=row.get("stripe_subscription_id"),
            stripe_price_id=row.get("stripe_price_id"),
            stripe_current_period_end=row.get("stripe_current_period_end"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def ensure_user(
        self,
        external_id: str,
        email: str = "",
        first_name: Optional[str] = None,
    ) -> User:
        """
        Find or create the user for an identity-provider subject.

        One conditional insert keyed by external_id, so concurrent first
        requests for the same subject converge on a single row. Profile fields
        are refreshed when the caller supplies new values; an unchanged
        profile writes nothing and the existing row is read back instead.
        """
        try:
            now = datetime.now(timezone.utc)
            users = self.users_table
            query = f'''
                INSERT INTO {self.schema}.{users} (
                    user_id, external_id, email, first_name, created_at, updated_at
                ) VALUES ($1, $2, $3, $4, $5, $5)
                ON CONFLICT (external_id) DO UPDATE SET
                    email = CASE
                        WHEN EXCLUDED.email <> '' THEN EXCLUDED.email
                        ELSE {users}.email
                    END,
                    first_name = COALESCE(EXCLUDED.first_name, {users}.first_name),
                    updated_at = EXCLUDED.updated_at
                WHERE (EXCLUDED.email <> '' AND EXCLUDED.email IS DISTINCT FROM {users}.email)
                   OR (EXCLUDED.first_name IS NOT NULL
                       AND EXCLUDED.first_name IS DISTINCT FROM {users}.first_name)
                RETURNING *
            '''
            params = [
                f"usr_{uuid.uuid4().hex[:16]}",
                external_id,
                email or "",
                first_name,
                now,
            ]

            row = await self.db.query_row(query, params=params)
            if row is None:
                # Existing user, profile unchanged
                row = await self.db.query_row(
                    f"SELECT * FROM {self.schema}.{users} WHERE external_id = $1",
                    params=[external_id],
                )
            return self._row_to_user(row)

        except Exception as e:
            logger.error(f"Error ensuring user for {external_id}: {e}", exc_info=True)
            raise


__all__ = ["AccountRepository"]
