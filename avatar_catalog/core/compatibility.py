"""
Compatibility resolution between assets and avatars.

Resolves an overall status plus a per-aspect breakdown for either an
asset checked against an avatar, or one avatar base checked against
another using a sparse, directional matrix of known facts.

Resolution Rules:
1. Asset to avatar - binary, driven by the asset's compatible bases
2. Avatar to avatar - matrix lookup, worst aspect wins
3. Missing matrix entry - unknown, never treated as incompatible
"""

from dataclasses import dataclass
from enum import Enum
from typing import Collection, Iterable, List, Mapping, Optional, Sequence, Tuple

from avatar_catalog.storage.models import Asset, Avatar, CompatibilityFact


class CompatibilityStatus(Enum):
    """Status of a single aspect or of the overall result."""
    YES = "yes"
    MOSTLY = "mostly"
    PARTIAL = "partial"
    NO = "no"
    UNKNOWN = "unknown"  # No data for this pair
    INFO = "info"        # Informational, never rated


# Rating scale from worst to best
RATINGS = (
    CompatibilityStatus.NO,
    CompatibilityStatus.PARTIAL,
    CompatibilityStatus.MOSTLY,
    CompatibilityStatus.YES,
)


class CompatibilityMode(Enum):
    """What is being checked."""
    ASSET_TO_AVATAR = "asset-to-avatar"
    AVATAR_TO_AVATAR = "avatar-to-avatar"


CompatibilityMatrix = Mapping[str, Mapping[str, CompatibilityFact]]


class NotFound(LookupError):
    """Raised when a referenced asset or avatar does not exist."""
    def __init__(self, kind: str, entity_id: int):
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


@dataclass(frozen=True)
class AspectResult:
    """One rated (or informational) dimension of a compatibility check."""
    aspect: str
    status: CompatibilityStatus
    message: str


@dataclass(frozen=True)
class CompatibilityResult:
    """Resolved compatibility for a single pair."""
    mode: CompatibilityMode
    overall: CompatibilityStatus
    details: Tuple[AspectResult, ...]

    def aspect(self, name: str) -> Optional[AspectResult]:
        """Get the detail for a named aspect, if present."""
        for detail in self.details:
            if detail.aspect == name:
                return detail
        return None

    @property
    def summary(self) -> str:
        """Headline sentence for the overall status."""
        asset_mode = self.mode == CompatibilityMode.ASSET_TO_AVATAR
        if self.overall == CompatibilityStatus.YES:
            return ("This asset is compatible with your avatar!" if asset_mode
                    else "These avatars have excellent compatibility!")
        if self.overall == CompatibilityStatus.MOSTLY:
            return ("This asset is mostly compatible with your avatar with minor adjustments needed."
                    if asset_mode
                    else "These avatars have good compatibility with minor adjustments needed.")
        if self.overall == CompatibilityStatus.PARTIAL:
            return ("This asset has partial compatibility and will require significant adjustments."
                    if asset_mode
                    else "These avatars have partial compatibility and will require "
                         "significant work to port assets between them.")
        if self.overall == CompatibilityStatus.NO:
            return ("This asset is not compatible with your avatar." if asset_mode
                    else "These avatars are not compatible for asset sharing.")
        return "Compatibility is unknown - you may need to test manually."


@dataclass(frozen=True)
class TransferRating:
    """One row of the asset transfer reference table."""
    asset_type: str
    level: str  # "High", "Medium" or "Low"
    note: str


def overall_status(fact: CompatibilityFact) -> CompatibilityStatus:
    """Resolve the overall status of a fact, worst aspect wins.

    Compatibility is only as good as its weakest dimension, so the result
    does not depend on which aspect holds the worst rating. Notes never
    take part.

    Args:
        fact: Stored compatibility fact

    Returns:
        NO, PARTIAL, MOSTLY or YES

    Raises:
        ValueError: If a stored rating is not on the rating scale
    """
    statuses = [_rating(fact.bone_structure), _rating(fact.materials), _rating(fact.animations)]
    if CompatibilityStatus.NO in statuses:
        return CompatibilityStatus.NO
    if CompatibilityStatus.PARTIAL in statuses:
        return CompatibilityStatus.PARTIAL
    if CompatibilityStatus.MOSTLY in statuses:
        return CompatibilityStatus.MOSTLY
    return CompatibilityStatus.YES


def resolve(
    mode: CompatibilityMode,
    matrix: CompatibilityMatrix,
    source,
    target: str,
    *,
    self_pair_compatible: bool = True,
) -> CompatibilityResult:
    """Resolve compatibility for a pair.

    Pure: the matrix is read, never modified.

    Args:
        mode: ASSET_TO_AVATAR or AVATAR_TO_AVATAR
        matrix: Sparse source base -> target base -> fact mapping
        source: The asset's compatible bases (asset mode) or the source
            avatar base (avatar mode)
        target: The target avatar base
        self_pair_compatible: Treat identical bases with no explicit fact
            as fully compatible (avatar mode only)

    Returns:
        CompatibilityResult with overall status and per-aspect details
    """
    if mode == CompatibilityMode.ASSET_TO_AVATAR:
        return _resolve_asset(source, target)
    return _resolve_avatars(matrix, source, target, self_pair_compatible)


def check_compatibility(
    mode: CompatibilityMode,
    matrix: CompatibilityMatrix,
    assets: Iterable[Asset],
    avatars: Iterable[Avatar],
    source_id: int,
    target_id: int,
    *,
    self_pair_compatible: bool = True,
) -> CompatibilityResult:
    """Look up the referenced entities and resolve their compatibility.

    Existence is checked before any resolution so that a missing id is
    reported as NotFound instead of silently resolving to unknown.

    Args:
        mode: ASSET_TO_AVATAR or AVATAR_TO_AVATAR
        matrix: Compatibility facts to resolve against
        assets: Current asset snapshot
        avatars: Current avatar snapshot
        source_id: Asset id (asset mode) or source avatar id (avatar mode)
        target_id: Target avatar id
        self_pair_compatible: See resolve()

    Returns:
        CompatibilityResult for the pair

    Raises:
        NotFound: If any referenced id is absent
    """
    avatars_by_id = {avatar.id: avatar for avatar in avatars}
    target = avatars_by_id.get(target_id)

    if mode == CompatibilityMode.ASSET_TO_AVATAR:
        asset = next((a for a in assets if a.id == source_id), None)
        if asset is None:
            raise NotFound("asset", source_id)
        if target is None:
            raise NotFound("avatar", target_id)
        return resolve(mode, matrix, asset.compatible_with, target.base)

    source = avatars_by_id.get(source_id)
    if source is None:
        raise NotFound("avatar", source_id)
    if target is None:
        raise NotFound("avatar", target_id)
    return resolve(
        mode, matrix, source.base, target.base,
        self_pair_compatible=self_pair_compatible,
    )


def compatible_assets(assets: Iterable[Asset], avatar_base: str) -> List[Asset]:
    """Assets that list the given avatar base as compatible (exact match)."""
    return [asset for asset in assets if avatar_base in asset.compatible_with]


def transfer_table(result: CompatibilityResult) -> List[TransferRating]:
    """Build the asset transfer reference table for an avatar-to-avatar result.

    Returns an empty table for asset checks and for incompatible pairs.
    """
    if (result.mode != CompatibilityMode.AVATAR_TO_AVATAR or
            result.overall == CompatibilityStatus.NO):
        return []

    animations = result.aspect("Animations")
    materials = result.aspect("Materials")
    animation_status = animations.status if animations else CompatibilityStatus.UNKNOWN
    materials_status = materials.status if materials else CompatibilityStatus.UNKNOWN

    return [
        TransferRating(
            asset_type="Clothing",
            level=_level(result.overall),
            note=("Clothing should transfer with minimal adjustments"
                  if result.overall == CompatibilityStatus.YES
                  else "May require resizing and bone weight adjustments"),
        ),
        TransferRating(
            asset_type="Props/Accessories",
            level="High",
            note="Usually transferable with minor position adjustments",
        ),
        TransferRating(
            asset_type="Animations",
            level=_level(animation_status),
            note=("Animations should work without modification"
                  if animation_status == CompatibilityStatus.YES
                  else "May require retargeting or significant adjustment"),
        ),
        TransferRating(
            asset_type="Materials/Textures",
            level="High" if materials_status == CompatibilityStatus.YES else "Medium",
            note="UV maps may differ, requiring texture adjustments",
        ),
    ]


def _rating(value: str) -> CompatibilityStatus:
    status = CompatibilityStatus(value)
    if status not in RATINGS:
        raise ValueError(f"Not a compatibility rating: {value!r}")
    return status


def _level(status: CompatibilityStatus) -> str:
    if status == CompatibilityStatus.YES:
        return "High"
    if status == CompatibilityStatus.MOSTLY:
        return "Medium"
    return "Low"


def _resolve_asset(compatible_with: Collection[str], avatar_base: str) -> CompatibilityResult:
    """Asset compatibility is binary on the avatar base.

    File format and material system are always reported compatible; only
    the base and rigging depend on the match.
    """
    direct = avatar_base in compatible_with
    conditional = CompatibilityStatus.YES if direct else CompatibilityStatus.PARTIAL

    details = (
        AspectResult(
            aspect="Avatar Base",
            status=conditional,
            message=(f"Asset is designed for {avatar_base}." if direct
                     else f"Asset was not specifically designed for {avatar_base}, "
                          "but may work with adjustments."),
        ),
        AspectResult(
            aspect="File Format",
            status=CompatibilityStatus.YES,
            message="Unity package format is compatible with your avatar.",
        ),
        AspectResult(
            aspect="Animation Rigging",
            status=conditional,
            message=("Animation rigging is fully compatible." if direct
                     else "Animation rigging may require manual adjustments."),
        ),
        AspectResult(
            aspect="Material System",
            status=CompatibilityStatus.YES,
            message="Materials use standard shader and are compatible.",
        ),
    )
    return CompatibilityResult(
        mode=CompatibilityMode.ASSET_TO_AVATAR,
        overall=conditional,
        details=details,
    )


def _resolve_avatars(
    matrix: CompatibilityMatrix,
    source_base: str,
    target_base: str,
    self_pair_compatible: bool,
) -> CompatibilityResult:
    fact = matrix.get(source_base, {}).get(target_base)

    if fact is None and self_pair_compatible and source_base == target_base:
        fact = CompatibilityFact(
            bone_structure="yes",
            materials="yes",
            animations="yes",
            notes="Same avatar base",
        )

    if fact is None:
        return CompatibilityResult(
            mode=CompatibilityMode.AVATAR_TO_AVATAR,
            overall=CompatibilityStatus.UNKNOWN,
            details=(
                AspectResult(
                    aspect="Compatibility Data",
                    status=CompatibilityStatus.UNKNOWN,
                    message=(f"No specific compatibility data between {source_base} "
                             f"and {target_base} is available."),
                ),
                AspectResult(
                    aspect="General Advice",
                    status=CompatibilityStatus.INFO,
                    message=("You may need to manually test compatibility or check "
                             "the avatar documentation."),
                ),
            ),
        )

    bones = _rating(fact.bone_structure)
    materials = _rating(fact.materials)
    animations = _rating(fact.animations)

    details = (
        AspectResult("Bone Structure", bones, _graded_message("Bone structures", bones)),
        AspectResult(
            "Materials",
            materials,
            "Materials are fully compatible." if materials == CompatibilityStatus.YES
            else "Materials may require adjustment.",
        ),
        AspectResult("Animations", animations, _graded_message("Animations", animations)),
        AspectResult("Notes", CompatibilityStatus.INFO, fact.notes),
    )
    return CompatibilityResult(
        mode=CompatibilityMode.AVATAR_TO_AVATAR,
        overall=overall_status(fact),
        details=details,
    )


def _graded_message(subject: str, status: CompatibilityStatus) -> str:
    if status == CompatibilityStatus.YES:
        return f"{subject} are fully compatible."
    if status == CompatibilityStatus.MOSTLY:
        return f"{subject} are mostly compatible with minor adjustments needed."
    if status == CompatibilityStatus.PARTIAL:
        return f"{subject} have partial compatibility, significant adjustments required."
    return f"{subject} are incompatible."
