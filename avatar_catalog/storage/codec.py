"""
Row encoding and decoding.

The single boundary between SQLite's representation (0/1 integers for
flags, JSON text for lists, ISO-8601 text for timestamps) and the domain
records in models.py. Nothing outside this module sees raw column values.
"""

import json
import sqlite3
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .models import Asset, Avatar, Collection


def encode_bool(value: bool) -> int:
    return 1 if value else 0


def decode_bool(value: Any) -> bool:
    return value in (1, "1", True)


def encode_list(values: Iterable[str]) -> str:
    return json.dumps(list(values))


def decode_list(value: Optional[str]) -> Tuple[str, ...]:
    """Decode a JSON list column.

    Older rows may hold a single bare string rather than a JSON array;
    those decode to a one-element tuple.
    """
    if value is None or value == "":
        return ()
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        return (str(value),)
    if isinstance(decoded, list):
        return tuple(str(item) for item in decoded)
    return (str(decoded),)


def encode_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def decode_datetime(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Decode an ISO-8601 value, returning None when it cannot be parsed.

    datetime values pass through unchanged.
    """
    if isinstance(value, datetime):
        return value
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def asset_to_row(asset: Asset) -> Dict[str, Any]:
    """Encode the scalar asset columns. Tags and bases live in link tables."""
    return {
        "name": asset.name,
        "creator": asset.creator,
        "type": asset.type,
        "description": asset.description,
        "notes": asset.notes,
        "price": asset.price,
        "currency": asset.currency,
        "owned_variant": encode_list(asset.owned_variants),
        "date_added": encode_datetime(asset.date_added or datetime.now()),
        "favorited": encode_bool(asset.favorited),
        "nsfw": encode_bool(asset.nsfw),
    }


def asset_from_row(
    row: sqlite3.Row,
    tags: Sequence[str] = (),
    compatible_with: Sequence[str] = (),
) -> Asset:
    return Asset(
        id=row["id"],
        name=row["name"],
        creator=row["creator"],
        type=row["type"],
        description=row["description"],
        notes=row["notes"],
        price=row["price"],
        currency=row["currency"] or "USD",
        tags=tuple(tags),
        compatible_with=tuple(compatible_with),
        owned_variants=decode_list(row["owned_variant"]),
        date_added=decode_datetime(row["date_added"]),
        favorited=decode_bool(row["favorited"]),
        nsfw=decode_bool(row["nsfw"]),
    )


def avatar_to_row(avatar: Avatar) -> Dict[str, Any]:
    return {
        "name": avatar.name,
        "base": avatar.base,
        "notes": avatar.notes,
        "date_added": encode_datetime(avatar.date_added or datetime.now()),
        "favorited": encode_bool(avatar.favorited),
        "is_current": encode_bool(avatar.is_current),
    }


def avatar_from_row(row: sqlite3.Row) -> Avatar:
    return Avatar(
        id=row["id"],
        name=row["name"],
        base=row["base"],
        notes=row["notes"],
        date_added=decode_datetime(row["date_added"]),
        favorited=decode_bool(row["favorited"]),
        is_current=decode_bool(row["is_current"]),
    )


def collection_from_row(
    row: sqlite3.Row,
    asset_ids: List[int],
    avatar_ids: List[int],
) -> Collection:
    return Collection(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        date_created=decode_datetime(row["date_created"]),
        asset_ids=tuple(asset_ids),
        avatar_ids=tuple(avatar_ids),
    )
