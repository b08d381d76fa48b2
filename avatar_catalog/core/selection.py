"""
Existing-or-new selections for multi-select inputs.

A pick list of tags or avatar bases lets the user choose existing values
or type new ones. Each pick is either Existing (refers to a stored value)
or CreateNew (a draft to be created), so no sentinel string ever has to
be filtered out of the chosen values.
"""

from dataclasses import dataclass
from typing import Iterable, List, Tuple, Union


@dataclass(frozen=True)
class Existing:
    """Pick of a value that is already stored."""
    id: Union[int, str]


@dataclass(frozen=True)
class CreateNew:
    """Pick of a value that must be created first."""
    draft: str


Selection = Union[Existing, CreateNew]


def split_selections(
    selections: Iterable[Selection],
) -> Tuple[List[Union[int, str]], List[str]]:
    """Split picks into existing ids and new drafts.

    Order is preserved, duplicates are dropped, and blank drafts are
    ignored. Drafts are stripped of surrounding whitespace.

    Args:
        selections: Picks in the order the user made them

    Returns:
        Tuple of (existing ids, new drafts)

    Raises:
        TypeError: If a pick is neither Existing nor CreateNew
    """
    existing: List[Union[int, str]] = []
    drafts: List[str] = []

    for selection in selections:
        if isinstance(selection, Existing):
            if selection.id not in existing:
                existing.append(selection.id)
        elif isinstance(selection, CreateNew):
            draft = selection.draft.strip()
            if draft and draft not in drafts:
                drafts.append(draft)
        else:
            raise TypeError(f"Unsupported selection: {selection!r}")

    return existing, drafts
