"""
Data models for storage layer.

Defines catalog entities as they flow between storage and the core units.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class Asset:
    """A catalogued avatar asset (clothing, prop, texture, ...).

    Price is kept exactly as the user entered it; parsing happens in the
    spend report, never at storage time.
    """
    name: str
    creator: str
    type: str
    id: Optional[int] = None
    price: Optional[str] = None
    currency: str = "USD"
    tags: Tuple[str, ...] = ()
    compatible_with: Tuple[str, ...] = ()
    owned_variants: Tuple[str, ...] = ()
    date_added: Optional[datetime] = None
    favorited: bool = False
    nsfw: bool = False
    description: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Avatar:
    """An avatar built on a named avatar base."""
    name: str
    base: str
    id: Optional[int] = None
    favorited: bool = False
    is_current: bool = False
    date_added: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Collection:
    """A named group of assets, optionally linked to avatars."""
    name: str
    id: Optional[int] = None
    description: Optional[str] = None
    date_created: Optional[datetime] = None
    asset_ids: Tuple[int, ...] = ()
    avatar_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class CompatibilityFact:
    """Known compatibility between a source and a target avatar base.

    Directional: a fact for (A, B) says nothing about (B, A).
    Ratings are one of "no", "partial", "mostly", "yes".
    """
    bone_structure: str
    materials: str
    animations: str
    notes: str = ""
