"""Asset ownership repository.

Ownership rows are written by the group/baseline management screens (not
part of this package); setu only reads them and deletes ghosts.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from setu.core.repository import BaseRepository


class AssetOwnershipRepository(BaseRepository):
    """CRUD for the ``asset_ownership`` table."""

    TABLE = "asset_ownership"

    def find_by_name(self, name: str, asset_type: str = "Group") -> dict[str, Any] | None:
        return self.query_one(
            f"SELECT asset_id, bigfix_id, asset_name, asset_type, created_by_role, created_at "
            f"FROM {self.TABLE} WHERE asset_name = {self.ph(1)} AND asset_type = {self.ph(1)}",
            (name, asset_type),
        )

    def delete_by_name(self, name: str, asset_type: str = "Group") -> int:
        deleted = self.rowcount(
            f"DELETE FROM {self.TABLE} WHERE asset_name = {self.ph(1)} AND asset_type = {self.ph(1)}",
            (name, asset_type),
        )
        self.commit()
        return deleted

    def record(
        self,
        bigfix_id: str,
        name: str,
        *,
        asset_type: str = "Group",
        created_by_role: str = "Windows",
    ) -> None:
        self.insert(
            self.TABLE,
            {
                "bigfix_id": bigfix_id,
                "asset_name": name,
                "asset_type": asset_type,
                "created_by_role": created_by_role,
                "created_at": datetime.now(UTC).isoformat(),
            },
        )
        self.commit()
