"""
Campaign Service Data Repository

Data access layer - PostgreSQL (Async)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.postgres_client import AsyncPostgresClient

from .models import (
    Campaign,
    CampaignStatus,
    Contact,
)

logger = logging.getLogger(__name__)


CONTACT_COLUMNS = (
    "first_name",
    "last_name",
    "email",
    "company",
    "company_domain",
    "title",
    "phone",
    "linkedin_url",
    "city",
    "state",
    "country",
    "enriched_by",
    "email_verified",
    "email_verification_status",
    "status",
)


class CampaignRepository:
    """Campaign service data repository - PostgreSQL (Async)"""

    def __init__(self, db: AsyncPostgresClient):
        self.db = db
        self.schema = "enrichment"

        # Table names
        self.campaigns_table = "campaigns"
        self.contacts_table = "contacts"

    # ====================
    # Campaign CRUD
    # ====================

    async def save_campaign(self, campaign: Campaign) -> Campaign:
        """Insert a campaign"""
        try:
            query = f'''
                INSERT INTO {self.schema}.{self.campaigns_table} (
                    campaign_id, user_id, name, url, status,
                    created_at, updated_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
            '''
            params = [
                campaign.campaign_id,
                campaign.user_id,
                campaign.name,
                campaign.url,
                campaign.status.value,
                campaign.created_at,
                campaign.updated_at,
            ]

            row = await self.db.query_row(query, params=params)
            if row:
                return self._row_to_campaign(row)
            return campaign

        except Exception as e:
            logger.error(f"Error saving campaign: {e}", exc_info=True)
            raise

    async def count_campaigns(self, user_id: str) -> int:
        """Number of campaigns owned by a user"""
        try:
            count = await self.db.query_value(
                f"SELECT COUNT(*) FROM {self.schema}.{self.campaigns_table} WHERE user_id = $1",
                params=[user_id],
            )
            return int(count or 0)

        except Exception as e:
            logger.error(f"Error counting campaigns for {user_id}: {e}")
            raise

    async def get_campaign_for_user(
        self, campaign_id: str, user_id: str
    ) -> Optional[Campaign]:
        """Get campaign by ID scoped to its owner"""
        try:
            row = await self.db.query_row(
                f'''
                SELECT * FROM {self.schema}.{self.campaigns_table}
                WHERE campaign_id = $1 AND user_id = $2
                ''',
                params=[campaign_id, user_id],
            )
            return self._row_to_campaign(row) if row else None

        except Exception as e:
            logger.error(f"Error getting campaign {campaign_id}: {e}")
            raise

    async def list_campaigns(self, user_id: str) -> List[Campaign]:
        """List a user's campaigns, newest first"""
        try:
            rows = await self.db.query(
                f'''
                SELECT * FROM {self.schema}.{self.campaigns_table}
                WHERE user_id = $1
                ORDER BY created_at DESC
                ''',
                params=[user_id],
            )
            return [self._row_to_campaign(row) for row in rows]

        except Exception as e:
            logger.error(f"Error listing campaigns for {user_id}: {e}")
            raise

    async def update_campaign_status(
        self, campaign_id: str, status: CampaignStatus
    ) -> Optional[Campaign]:
        """Unconditionally write campaign status"""
        try:
            row = await self.db.query_row(
                f'''
                UPDATE {self.schema}.{self.campaigns_table}
                SET status = $2, updated_at = $3
                WHERE campaign_id = $1
                RETURNING *
                ''',
                params=[campaign_id, status.value, datetime.now(timezone.utc)],
            )
            return self._row_to_campaign(row) if row else None

        except Exception as e:
            logger.error(f"Error updating status of campaign {campaign_id}: {e}")
            raise

    async def touch_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Bump updated_at without changing anything else"""
        try:
            row = await self.db.query_row(
                f'''
                UPDATE {self.schema}.{self.campaigns_table}
                SET updated_at = $2
                WHERE campaign_id = $1
                RETURNING *
                ''',
                params=[campaign_id, datetime.now(timezone.utc)],
            )
            return self._row_to_campaign(row) if row else None

        except Exception as e:
            logger.error(f"Error touching campaign {campaign_id}: {e}")
            raise

    async def claim_for_dispatch(self, campaign_id: str) -> Optional[Campaign]:
        """Move pending -> processing atomically; None if not pending (or gone)"""
        try:
            row = await self.db.query_row(
                f'''
                UPDATE {self.schema}.{self.campaigns_table}
                SET status = $2, updated_at = $3
                WHERE campaign_id = $1 AND status = $4
                RETURNING *
                ''',
                params=[
                    campaign_id,
                    CampaignStatus.PROCESSING.value,
                    datetime.now(timezone.utc),
                    CampaignStatus.PENDING.value,
                ],
            )
            return self._row_to_campaign(row) if row else None

        except Exception as e:
            logger.error(f"Error claiming campaign {campaign_id} for dispatch: {e}")
            raise

    async def rename_campaign(
        self, campaign_id: str, user_id: str, name: str
    ) -> Optional[Campaign]:
        """Rename an owned campaign"""
        try:
            row = await self.db.query_row(
                f'''
                UPDATE {self.schema}.{self.campaigns_table}
                SET name = $3, updated_at = $4
                WHERE campaign_id = $1 AND user_id = $2
                RETURNING *
                ''',
                params=[campaign_id, user_id, name, datetime.now(timezone.utc)],
            )
            return self._row_to_campaign(row) if row else None

        except Exception as e:
            logger.error(f"Error renaming campaign {campaign_id}: {e}")
            raise

    async def delete_campaign(self, campaign_id: str, user_id: str) -> bool:
        """Delete an owned campaign; contacts go with it (ON DELETE CASCADE)"""
        try:
            deleted = await self.db.execute(
                f'''
                DELETE FROM {self.schema}.{self.campaigns_table}
                WHERE campaign_id = $1 AND user_id = $2
                ''',
                params=[campaign_id, user_id],
            )
            return deleted > 0

        except Exception as e:
            logger.error(f"Error deleting campaign {campaign_id}: {e}")
            raise

    # ====================
    # Contacts
    # ====================

    async def list_contacts(self, campaign_id: str) -> List[Contact]:
        """Contacts of a campaign, newest first"""
        try:
            rows = await self.db.query(
                f'''
                SELECT * FROM {self.schema}.{self.contacts_table}
                WHERE campaign_id = $1
                ORDER BY created_at DESC
                ''',
                params=[campaign_id],
            )
            return [self._row_to_contact(row) for row in rows]

        except Exception as e:
            logger.error(f"Error listing contacts for campaign {campaign_id}: {e}")
            raise

    # ====================
    # Row Conversion
    # ====================

    def _row_to_campaign(self, row: Dict[str, Any]) -> Campaign:
        """Convert database row to Campaign model"""
        return Campaign(
            campaign_id=row["campaign_id"],
            user_id=row["user_id"],
            name=row["name"],
            url=row["url"],
            status=CampaignStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_contact(self, row: Dict[str, Any]) -> Contact:
        """Convert database row to Contact model"""
        fields = {column: row.get(column) for column in CONTACT_COLUMNS}
        return Contact(
            contact_id=row["contact_id"],
            campaign_id=row["campaign_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            **fields,
        )


__all__ = ["CampaignRepository"]
