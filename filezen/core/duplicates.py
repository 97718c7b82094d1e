"""Size-based duplicate grouping.

Files are grouped by exact byte size only. Two different files of equal size
are reported as probable duplicates; content is never compared.
"""

import logging
from typing import Dict, List, Sequence

from .models import DuplicateGroup, FileRecord
from .exceptions import ValidationError


logger = logging.getLogger(__name__)


def group_id_for_size(size: int) -> str:
    return f"size-{size}"


def find_duplicate_groups(records: Sequence[FileRecord]) -> List[DuplicateGroup]:
    """
    Group records that share an identical byte size.

    Args:
        records: Records from one scan

    Returns:
        One group per size with at least two members, ordered by first appearance
    """
    by_size: Dict[int, List[FileRecord]] = {}
    for record in records:
        by_size.setdefault(record.size, []).append(record)

    groups = [
        DuplicateGroup(
            id=group_id_for_size(size),
            size=size,
            files=[record.name for record in members],
            paths=[record.relative_path for record in members],
        )
        for size, members in by_size.items()
        if len(members) > 1
    ]

    logger.info(f"Found {len(groups)} probable duplicate group(s) among {len(records)} files")
    return groups


def resolve_group(groups: Sequence[DuplicateGroup], group_id: str, resolved: bool = True) -> DuplicateGroup:
    """
    Set the caller-controlled resolved flag on a group.

    Raises:
        ValidationError: If no group has the given id
    """
    for group in groups:
        if group.id == group_id:
            group.resolved = resolved
            return group
    raise ValidationError(f"Unknown duplicate group: {group_id}")
