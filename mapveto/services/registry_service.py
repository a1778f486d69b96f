"""Lookups against the admin, team and master map registries."""
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mapveto.config import get_settings
from mapveto.models.admin import Admin
from mapveto.models.team import Team
from mapveto.models.master_map import Map

logger = logging.getLogger(__name__)


class RegistryService:
    """Read-only access to the records the session engine depends on."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def resolve_admin(self, admin_id: UUID) -> Admin | None:
        result = await self.db.execute(select(Admin).where(Admin.admin_id == admin_id))
        return result.scalar_one_or_none()

    async def resolve_team_by_name(self, name: str) -> Team | None:
        """Find a team by exact, case-sensitive name after trimming."""
        result = await self.db.execute(select(Team).where(Team.name == name.strip()))
        return result.scalars().first()

    async def resolve_map(self, map_id: UUID) -> Map | None:
        result = await self.db.execute(select(Map).where(Map.map_id == map_id))
        return result.scalar_one_or_none()

    async def resolve_maps(self, map_ids: list[UUID]) -> dict[UUID, Map]:
        """Batch fetch master maps keyed by id."""
        if not map_ids:
            return {}
        result = await self.db.execute(select(Map).where(Map.map_id.in_(map_ids)))
        return {game_map.map_id: game_map for game_map in result.scalars().all()}

    def resolve_storage_url(self, storage_ref: str | None) -> str | None:
        """Turn a blob storage reference into a URL, or None if it can't be resolved."""
        if not storage_ref or not self.settings.storage_base_url:
            return None
        return f"{self.settings.storage_base_url.rstrip('/')}/{storage_ref.lstrip('/')}"

    def resolve_map_image_url(self, game_map: Map) -> str:
        """Resolve the display URL for a master map.

        A stored image takes precedence over the raw ``image_url`` field.
        """
        image_url = game_map.image_url or ""
        if game_map.image_storage_id:
            storage_url = self.resolve_storage_url(game_map.image_storage_id)
            if storage_url:
                image_url = storage_url
            else:
                logger.warning(
                    f"Could not resolve storage image {game_map.image_storage_id} for map {game_map.map_id}"
                )
        return image_url
