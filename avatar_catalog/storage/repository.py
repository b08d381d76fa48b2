"""
Repository pattern for data access.

Handles catalog persistence: assets, avatars, collections, tags and
settings. Every write runs in a single transaction.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .codec import (
    asset_from_row,
    asset_to_row,
    avatar_from_row,
    avatar_to_row,
    collection_from_row,
    encode_bool,
    encode_datetime,
)
from .db import DEFAULT_DB_PATH, get_connection
from .models import Asset, Avatar, Collection
from avatar_catalog.core.compatibility import NotFound
from avatar_catalog.core.selection import CreateNew, Selection, split_selections

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, str] = {
    "currency_preference": "USD",
    "blur_nsfw": "1",
    "darkMode": "1",
}

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS assets (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        creator TEXT NOT NULL,
        description TEXT,
        type TEXT NOT NULL,
        price TEXT,
        currency TEXT DEFAULT 'USD',
        owned_variant TEXT,
        notes TEXT,
        date_added TEXT NOT NULL,
        favorited INTEGER DEFAULT 0,
        nsfw INTEGER DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS asset_tags (
        asset_id INTEGER NOT NULL REFERENCES assets(id) ON DELETE CASCADE,
        tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
        PRIMARY KEY (asset_id, tag_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS avatar_bases (
        name TEXT PRIMARY KEY
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS asset_compatible_avatars (
        asset_id INTEGER NOT NULL REFERENCES assets(id) ON DELETE CASCADE,
        avatar_base TEXT NOT NULL REFERENCES avatar_bases(name),
        PRIMARY KEY (asset_id, avatar_base)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS avatars (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        base TEXT NOT NULL,
        notes TEXT,
        date_added TEXT NOT NULL,
        favorited INTEGER DEFAULT 0,
        is_current INTEGER DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS collections (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT,
        date_created TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS collection_assets (
        collection_id INTEGER NOT NULL REFERENCES collections(id) ON DELETE CASCADE,
        asset_id INTEGER NOT NULL REFERENCES assets(id) ON DELETE CASCADE,
        date_added TEXT NOT NULL,
        PRIMARY KEY (collection_id, asset_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS avatar_collections (
        avatar_id INTEGER NOT NULL REFERENCES avatars(id) ON DELETE CASCADE,
        collection_id INTEGER NOT NULL REFERENCES collections(id) ON DELETE CASCADE,
        date_linked TEXT NOT NULL,
        PRIMARY KEY (avatar_id, collection_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
]


class CatalogRepository:
    """Repository for accessing and managing the asset catalog.

    Returns domain records from models.py; the row representation never
    leaves this package.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def initialize_schema(self) -> None:
        """Create all catalog tables and seed default settings.

        Safe to run repeatedly; existing data and settings are kept.
        """
        conn = get_connection(self.db_path)
        try:
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.executemany(
                "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)",
                list(DEFAULT_SETTINGS.items()),
            )
            conn.commit()
        finally:
            conn.close()

    # Assets

    def add_asset(
        self,
        asset: Asset,
        tags: Optional[Sequence[Selection]] = None,
        compatible: Optional[Sequence[Selection]] = None,
    ) -> Asset:
        """Insert an asset with its tags and compatible avatar bases.

        Tags and bases are picks: Existing refers to a stored tag id or
        base name, CreateNew creates it. When no picks are given, the
        names already on the asset are reused or created.

        Args:
            asset: Asset to insert (its id is ignored)
            tags: Tag picks
            compatible: Avatar base picks

        Returns:
            The stored asset, with its id

        Raises:
            NotFound: If an Existing pick refers to a missing tag or base
        """
        if tags is None:
            tags = [CreateNew(name) for name in asset.tags]
        if compatible is None:
            compatible = [CreateNew(name) for name in asset.compatible_with]

        conn = get_connection(self.db_path)
        try:
            row = asset_to_row(asset)
            columns = ", ".join(row)
            placeholders = ", ".join("?" for _ in row)
            cursor = conn.execute(
                f"INSERT INTO assets ({columns}) VALUES ({placeholders})",
                list(row.values()),
            )
            asset_id = cursor.lastrowid

            for tag_id in self._resolve_tags(conn, tags):
                conn.execute(
                    "INSERT OR IGNORE INTO asset_tags (asset_id, tag_id) VALUES (?, ?)",
                    (asset_id, tag_id),
                )
            for base in self._resolve_bases(conn, compatible):
                conn.execute(
                    "INSERT OR IGNORE INTO asset_compatible_avatars (asset_id, avatar_base) VALUES (?, ?)",
                    (asset_id, base),
                )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.info(f"Added asset {asset_id} ({asset.name})")
        return self.get_asset(asset_id)

    def get_asset(self, asset_id: int) -> Asset:
        """Get a single asset.

        Raises:
            NotFound: If the asset does not exist
        """
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT * FROM assets WHERE id = ?", (asset_id,)).fetchone()
            if row is None:
                raise NotFound("asset", asset_id)
            return self._load_asset(conn, row)
        finally:
            conn.close()

    def list_assets(
        self,
        type: Optional[str] = None,
        favorited: Optional[bool] = None,
    ) -> List[Asset]:
        """List assets, newest first, with optional filtering.

        Args:
            type: Optional filter for an asset type
            favorited: Optional filter on the favorite flag

        Returns:
            List of assets ordered by date added (newest first)
        """
        conn = get_connection(self.db_path)
        try:
            query = "SELECT * FROM assets"
            params: list = []
            conditions = []

            if type:
                conditions.append("type = ?")
                params.append(type)
            if favorited is not None:
                conditions.append("favorited = ?")
                params.append(encode_bool(favorited))

            if conditions:
                query += " WHERE " + " AND ".join(conditions)
            query += " ORDER BY date_added DESC, id DESC"

            return [self._load_asset(conn, row) for row in conn.execute(query, params).fetchall()]
        finally:
            conn.close()

    def update_asset(
        self,
        asset_id: int,
        asset: Asset,
        tags: Optional[Sequence[Selection]] = None,
        compatible: Optional[Sequence[Selection]] = None,
    ) -> Asset:
        """Replace the editable fields of an asset.

        The date added is kept. Tag and base links are replaced only when
        picks are given; None leaves the current links in place.

        Args:
            asset_id: Asset to update
            asset: New field values (its id and date_added are ignored)
            tags: Tag picks replacing the current tags
            compatible: Avatar base picks replacing the current bases

        Returns:
            The updated asset

        Raises:
            NotFound: If the asset, or an Existing pick, does not exist
        """
        row = asset_to_row(asset)
        del row["date_added"]

        conn = get_connection(self.db_path)
        try:
            assignments = ", ".join(f"{column} = ?" for column in row)
            cursor = conn.execute(
                f"UPDATE assets SET {assignments} WHERE id = ?",
                list(row.values()) + [asset_id],
            )
            if cursor.rowcount == 0:
                raise NotFound("asset", asset_id)

            if tags is not None:
                tag_ids = self._resolve_tags(conn, tags)
                conn.execute("DELETE FROM asset_tags WHERE asset_id = ?", (asset_id,))
                conn.executemany(
                    "INSERT OR IGNORE INTO asset_tags (asset_id, tag_id) VALUES (?, ?)",
                    [(asset_id, tag_id) for tag_id in tag_ids],
                )
            if compatible is not None:
                bases = self._resolve_bases(conn, compatible)
                conn.execute("DELETE FROM asset_compatible_avatars WHERE asset_id = ?", (asset_id,))
                conn.executemany(
                    "INSERT OR IGNORE INTO asset_compatible_avatars (asset_id, avatar_base) VALUES (?, ?)",
                    [(asset_id, base) for base in bases],
                )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.info(f"Updated asset {asset_id} ({asset.name})")
        return self.get_asset(asset_id)

    def set_asset_favorite(self, asset_id: int, favorited: bool) -> Asset:
        """Set or clear the favorite flag of an asset."""
        self._update_flag("assets", "asset", asset_id, "favorited", favorited)
        return self.get_asset(asset_id)

    def delete_asset(self, asset_id: int) -> None:
        """Delete an asset and its tag, base and collection links.

        Raises:
            NotFound: If the asset does not exist
        """
        self._delete("assets", "asset", asset_id)

    # Avatars

    def add_avatar(self, avatar: Avatar) -> Avatar:
        """Insert an avatar and register its base.

        Returns:
            The stored avatar, with its id
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute("INSERT OR IGNORE INTO avatar_bases (name) VALUES (?)", (avatar.base,))
            if avatar.is_current:
                conn.execute("UPDATE avatars SET is_current = 0")
            row = avatar_to_row(avatar)
            columns = ", ".join(row)
            placeholders = ", ".join("?" for _ in row)
            cursor = conn.execute(
                f"INSERT INTO avatars ({columns}) VALUES ({placeholders})",
                list(row.values()),
            )
            avatar_id = cursor.lastrowid
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.info(f"Added avatar {avatar_id} ({avatar.name}, {avatar.base})")
        return self.get_avatar(avatar_id)

    def get_avatar(self, avatar_id: int) -> Avatar:
        """Get a single avatar.

        Raises:
            NotFound: If the avatar does not exist
        """
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT * FROM avatars WHERE id = ?", (avatar_id,)).fetchone()
            if row is None:
                raise NotFound("avatar", avatar_id)
            return avatar_from_row(row)
        finally:
            conn.close()

    def list_avatars(self) -> List[Avatar]:
        """List avatars, current avatar first, then by name."""
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM avatars ORDER BY is_current DESC, name, id"
            ).fetchall()
            return [avatar_from_row(row) for row in rows]
        finally:
            conn.close()

    def set_current_avatar(self, avatar_id: int) -> Avatar:
        """Mark one avatar as current; every other avatar is cleared.

        Raises:
            NotFound: If the avatar does not exist
        """
        conn = get_connection(self.db_path)
        try:
            exists = conn.execute("SELECT 1 FROM avatars WHERE id = ?", (avatar_id,)).fetchone()
            if exists is None:
                raise NotFound("avatar", avatar_id)
            conn.execute("UPDATE avatars SET is_current = 0")
            conn.execute("UPDATE avatars SET is_current = 1 WHERE id = ?", (avatar_id,))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return self.get_avatar(avatar_id)

    def update_avatar(self, avatar_id: int, avatar: Avatar) -> Avatar:
        """Replace the name, base, notes and favorite flag of an avatar.

        The current-avatar flag is left alone; use set_current_avatar.

        Raises:
            NotFound: If the avatar does not exist
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute("INSERT OR IGNORE INTO avatar_bases (name) VALUES (?)", (avatar.base,))
            cursor = conn.execute(
                "UPDATE avatars SET name = ?, base = ?, notes = ?, favorited = ? WHERE id = ?",
                (avatar.name, avatar.base, avatar.notes, encode_bool(avatar.favorited), avatar_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("avatar", avatar_id)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.info(f"Updated avatar {avatar_id} ({avatar.name}, {avatar.base})")
        return self.get_avatar(avatar_id)

    def set_avatar_favorite(self, avatar_id: int, favorited: bool) -> Avatar:
        """Set or clear the favorite flag of an avatar."""
        self._update_flag("avatars", "avatar", avatar_id, "favorited", favorited)
        return self.get_avatar(avatar_id)

    def delete_avatar(self, avatar_id: int) -> None:
        """Delete an avatar and its collection links. Its base stays registered.

        Raises:
            NotFound: If the avatar does not exist
        """
        self._delete("avatars", "avatar", avatar_id)

    def list_avatar_bases(self) -> List[str]:
        """All known avatar base names, sorted."""
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("SELECT name FROM avatar_bases ORDER BY name").fetchall()
            return [row["name"] for row in rows]
        finally:
            conn.close()

    def list_tags(self) -> List[str]:
        """All tag names, sorted."""
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("SELECT name FROM tags ORDER BY name").fetchall()
            return [row["name"] for row in rows]
        finally:
            conn.close()

    def find_tag(self, name: str) -> Optional[int]:
        """Id of the tag with this exact name, or None."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT id FROM tags WHERE name = ?", (name,)).fetchone()
            return row["id"] if row is not None else None
        finally:
            conn.close()

    # Collections

    def create_collection(self, name: str, description: Optional[str] = None) -> Collection:
        """Create an empty collection."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "INSERT INTO collections (name, description, date_created) VALUES (?, ?, ?)",
                (name, description, encode_datetime(datetime.now())),
            )
            collection_id = cursor.lastrowid
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info(f"Created collection {collection_id} ({name})")
        return self.get_collection(collection_id)

    def add_asset_to_collection(self, collection_id: int, asset_id: int) -> Collection:
        """Add an asset to a collection. Adding it twice is a no-op.

        Raises:
            NotFound: If the collection or asset does not exist
        """
        self._link(
            "collection_assets", ("collection_id", "asset_id", "date_added"),
            ("collection", collection_id), ("asset", asset_id),
        )
        return self.get_collection(collection_id)

    def link_avatar_to_collection(self, avatar_id: int, collection_id: int) -> Collection:
        """Link an avatar to a collection. Linking it twice is a no-op.

        Raises:
            NotFound: If the avatar or collection does not exist
        """
        self._link(
            "avatar_collections", ("avatar_id", "collection_id", "date_linked"),
            ("avatar", avatar_id), ("collection", collection_id),
        )
        return self.get_collection(collection_id)

    def remove_asset_from_collection(self, collection_id: int, asset_id: int) -> Collection:
        """Remove an asset from a collection. Removing an absent link is a no-op.

        Raises:
            NotFound: If the collection or asset does not exist
        """
        conn = get_connection(self.db_path)
        try:
            for kind, table, entity_id in (("collection", "collections", collection_id),
                                           ("asset", "assets", asset_id)):
                if conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (entity_id,)).fetchone() is None:
                    raise NotFound(kind, entity_id)
            conn.execute(
                "DELETE FROM collection_assets WHERE collection_id = ? AND asset_id = ?",
                (collection_id, asset_id),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info(f"Removed asset {asset_id} from collection {collection_id}")
        return self.get_collection(collection_id)

    def update_collection(
        self,
        collection_id: int,
        name: str,
        description: Optional[str] = None,
    ) -> Collection:
        """Rename a collection and replace its description.

        Raises:
            NotFound: If the collection does not exist
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "UPDATE collections SET name = ?, description = ? WHERE id = ?",
                (name, description, collection_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("collection", collection_id)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return self.get_collection(collection_id)

    def delete_collection(self, collection_id: int) -> None:
        """Delete a collection. Its assets and avatars are kept.

        Raises:
            NotFound: If the collection does not exist
        """
        self._delete("collections", "collection", collection_id)

    def get_collection(self, collection_id: int) -> Collection:
        """Get a collection with its asset and avatar ids.

        Raises:
            NotFound: If the collection does not exist
        """
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM collections WHERE id = ?", (collection_id,)
            ).fetchone()
            if row is None:
                raise NotFound("collection", collection_id)
            return self._load_collection(conn, row)
        finally:
            conn.close()

    def list_collections(self) -> List[Collection]:
        """List collections, newest first."""
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM collections ORDER BY date_created DESC, id DESC"
            ).fetchall()
            return [self._load_collection(conn, row) for row in rows]
        finally:
            conn.close()

    # Settings

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
            return row["value"] if row is not None else default
        finally:
            conn.close()

    def get_settings(self) -> Dict[str, str]:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("SELECT key, value FROM settings").fetchall()
            return {row["key"]: row["value"] for row in rows}
        finally:
            conn.close()

    def set_setting(self, key: str, value: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                "INSERT INTO settings (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, str(value)),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Helpers

    def _load_asset(self, conn, row) -> Asset:
        tags = [
            r["name"] for r in conn.execute(
                """
                SELECT t.name FROM tags t
                JOIN asset_tags at ON at.tag_id = t.id
                WHERE at.asset_id = ?
                ORDER BY t.name
                """,
                (row["id"],),
            ).fetchall()
        ]
        bases = [
            r["avatar_base"] for r in conn.execute(
                """
                SELECT avatar_base FROM asset_compatible_avatars
                WHERE asset_id = ?
                ORDER BY avatar_base
                """,
                (row["id"],),
            ).fetchall()
        ]
        return asset_from_row(row, tags=tags, compatible_with=bases)

    def _load_collection(self, conn, row) -> Collection:
        asset_ids = [
            r["asset_id"] for r in conn.execute(
                "SELECT asset_id FROM collection_assets WHERE collection_id = ? ORDER BY date_added, asset_id",
                (row["id"],),
            ).fetchall()
        ]
        avatar_ids = [
            r["avatar_id"] for r in conn.execute(
                "SELECT avatar_id FROM avatar_collections WHERE collection_id = ? ORDER BY avatar_id",
                (row["id"],),
            ).fetchall()
        ]
        return collection_from_row(row, asset_ids, avatar_ids)

    def _resolve_tags(self, conn, selections: Sequence[Selection]) -> List[int]:
        existing, drafts = split_selections(selections)
        tag_ids = []
        for tag_id in existing:
            if conn.execute("SELECT 1 FROM tags WHERE id = ?", (tag_id,)).fetchone() is None:
                raise NotFound("tag", tag_id)
            tag_ids.append(tag_id)
        for draft in drafts:
            conn.execute("INSERT OR IGNORE INTO tags (name) VALUES (?)", (draft,))
            tag_ids.append(conn.execute("SELECT id FROM tags WHERE name = ?", (draft,)).fetchone()["id"])
        return tag_ids

    def _resolve_bases(self, conn, selections: Sequence[Selection]) -> List[str]:
        existing, drafts = split_selections(selections)
        for base in existing:
            if conn.execute("SELECT 1 FROM avatar_bases WHERE name = ?", (base,)).fetchone() is None:
                raise NotFound("avatar base", base)
        for draft in drafts:
            conn.execute("INSERT OR IGNORE INTO avatar_bases (name) VALUES (?)", (draft,))
        return [str(base) for base in existing] + drafts

    def _update_flag(self, table: str, kind: str, entity_id: int, column: str, value: bool) -> None:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"UPDATE {table} SET {column} = ? WHERE id = ?",
                (encode_bool(value), entity_id),
            )
            if cursor.rowcount == 0:
                raise NotFound(kind, entity_id)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _delete(self, table: str, kind: str, entity_id: int) -> None:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (entity_id,))
            if cursor.rowcount == 0:
                raise NotFound(kind, entity_id)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info(f"Deleted {kind} {entity_id}")

    def _link(self, table: str, columns, left, right) -> None:
        (left_kind, left_id), (right_kind, right_id) = left, right
        conn = get_connection(self.db_path)
        try:
            for kind, entity_id in (left, right):
                source = {"asset": "assets", "avatar": "avatars", "collection": "collections"}[kind]
                if conn.execute(f"SELECT 1 FROM {source} WHERE id = ?", (entity_id,)).fetchone() is None:
                    raise NotFound(kind, entity_id)
            conn.execute(
                f"INSERT OR IGNORE INTO {table} ({', '.join(columns)}) VALUES (?, ?, ?)",
                (left_id, right_id, encode_datetime(datetime.now())),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info(f"Linked {left_kind} {left_id} to {right_kind} {right_id}")


# Global repository instance
_default_repository: Optional[CatalogRepository] = None


def get_repository(db_path: str = DEFAULT_DB_PATH) -> CatalogRepository:
    """Get a repository instance.

    Reuses the same instance while the database path stays the same.

    Args:
        db_path: Path to SQLite database file

    Returns:
        An instance of CatalogRepository
    """
    global _default_repository
    if _default_repository is None or _default_repository.db_path != db_path:
        _default_repository = CatalogRepository(db_path)
    return _default_repository
