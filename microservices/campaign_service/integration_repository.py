"""
Integration Repository

Credential store: one row per (user, service), with a partial unique index
that keeps an API key active for at most one user per service.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional

import asyncpg

from core.postgres_client import AsyncPostgresClient

from .models import Integration, ServiceName
from .protocols import IntegrationConflictError

logger = logging.getLogger(__name__)


class IntegrationRepository:
    """Integration repository - PostgreSQL (Async)"""

    def __init__(self, db: AsyncPostgresClient):
        self.db = db
        self.schema = "enrichment"
        self.integrations_table = "integrations"

    def _row_to_integration(self, row: Dict[str, Any]) -> Integration:
        """Convert database row to Integration model"""
        return Integration(
            integration_id=row["integration_id"],
            user_id=row["user_id"],
            service_name=ServiceName(row["service_name"]),
            api_key=row["api_key"],
            is_active=row.get("is_active", True),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _known_rows(self, rows: List[Dict[str, Any]]) -> List[Integration]:
        """Skip rows for services no longer in the enumeration"""
        known = {s.value for s in ServiceName}
        integrations = []
        for row in rows:
            if row["service_name"] not in known:
                logger.warning(f"Ignoring integration with unknown service: {row['service_name']}")
                continue
            integrations.append(self._row_to_integration(row))
        return integrations

    async def list_integrations(self, user_id: str) -> List[Integration]:
        """All integrations owned by a user"""
        try:
            rows = await self.db.query(
                f'''
                SELECT * FROM {self.schema}.{self.integrations_table}
                WHERE user_id = $1
                ORDER BY service_name
                ''',
                params=[user_id],
            )
            return self._known_rows(rows)

        except Exception as e:
            logger.error(f"Error listing integrations for {user_id}: {e}")
            raise

    async def get_integration(
        self, user_id: str, service_name: ServiceName
    ) -> Optional[Integration]:
        """One integration by owner and service"""
        try:
            row = await self.db.query_row(
                f'''
                SELECT * FROM {self.schema}.{self.integrations_table}
                WHERE user_id = $1 AND service_name = $2
                ''',
                params=[user_id, service_name.value],
            )
            return self._row_to_integration(row) if row else None

        except Exception as e:
            logger.error(f"Error getting integration {service_name.value} for {user_id}: {e}")
            raise

    async def get_active_service_names(self, user_id: str) -> FrozenSet[ServiceName]:
        """Names of the user's active integrations"""
        try:
            rows = await self.db.query(
                f'''
                SELECT service_name FROM {self.schema}.{self.integrations_table}
                WHERE user_id = $1 AND is_active = TRUE
                ''',
                params=[user_id],
            )
            known = {s.value for s in ServiceName}
            return frozenset(
                ServiceName(row["service_name"])
                for row in rows
                if row["service_name"] in known
            )

        except Exception as e:
            logger.error(f"Error loading active integrations for {user_id}: {e}")
            raise

    async def find_active_key_owner(
        self, service_name: ServiceName, api_key: str, exclude_user_id: str
    ) -> Optional[Integration]:
        """Active integration with this key held by a different user"""
        try:
            row = await self.db.query_row(
                f'''
                SELECT * FROM {self.schema}.{self.integrations_table}
                WHERE service_name = $1 AND api_key = $2
                  AND is_active = TRUE AND user_id <> $3
                LIMIT 1
                ''',
                params=[service_name.value, api_key, exclude_user_id],
            )
            return self._row_to_integration(row) if row else None

        except Exception as e:
            logger.error(f"Error checking key ownership for {service_name.value}: {e}")
            raise

    async def upsert_integration(
        self, user_id: str, service_name: ServiceName, api_key: str
    ) -> Integration:
        """Insert or replace the (user, service) row, marking it active"""
        try:
            now = datetime.now(timezone.utc)
            query = f'''
                INSERT INTO {self.schema}.{self.integrations_table} (
                    integration_id, user_id, service_name, api_key,
                    is_active, created_at, updated_at
                ) VALUES ($1, $2, $3, $4, TRUE, $5, $5)
                ON CONFLICT (user_id, service_name) DO UPDATE SET
                    api_key = EXCLUDED.api_key,
                    is_active = TRUE,
                    updated_at = EXCLUDED.updated_at
                RETURNING *
            '''
            params = [
                f"int_{uuid.uuid4().hex[:16]}",
                user_id,
                service_name.value,
                api_key,
                now,
            ]

            row = await self.db.query_row(query, params=params)
            return self._row_to_integration(row)

        except asyncpg.UniqueViolationError as e:
            # Only the (service_name, api_key) partial index can fire here
            logger.warning(f"Key for {service_name.value} already active for another user: {e}")
            raise IntegrationConflictError(
                f"This {service_name.value} API key is already in use by another account"
            ) from e

        except Exception as e:
            logger.error(f"Error saving integration {service_name.value} for {user_id}: {e}", exc_info=True)
            raise

    async def delete_integration(self, user_id: str, service_name: ServiceName) -> bool:
        """Delete the (user, service) row"""
        try:
            deleted = await self.db.execute(
                f'''
                DELETE FROM {self.schema}.{self.integrations_table}
                WHERE user_id = $1 AND service_name = $2
                ''',
                params=[user_id, service_name.value],
            )
            return deleted > 0

        except Exception as e:
            logger.error(f"Error deleting integration {service_name.value} for {user_id}: {e}")
            raise


__all__ = ["IntegrationRepository"]
