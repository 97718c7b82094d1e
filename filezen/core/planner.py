"""Move planning for FileZen.

The plan is the only hand-off between what the user selected and what the
executor performs. Operations are produced only for selected files whose
category is known.
"""

import logging
from typing import Collection, Dict, List, Mapping, Optional, Sequence

from .models import Category, FileRecord, MoveOperation
from .exceptions import ValidationError


logger = logging.getLogger(__name__)

SORT_FIELDS = ("name", "size", "last_modified")
SORT_DIRECTIONS = ("asc", "desc")


def plan_moves(records: Sequence[FileRecord], selection: Collection[str],
               categories: Optional[Mapping[str, Category]] = None) -> List[MoveOperation]:
    """
    Build the ordered list of moves for a selection.

    Args:
        records: Categorized records from the last scan
        selection: Selected file names
        categories: Optional caller-verified name-to-category assignments that
            take precedence over each record's own category

    Returns:
        Move operations in record order
    """
    selected = set(selection)
    categories = categories or {}
    operations = []

    for record in records:
        if record.name not in selected:
            continue

        category = Category.from_label(categories.get(record.name, record.category))
        if category is None or category is Category.UNKNOWN:
            continue

        operations.append(MoveOperation(
            ref=record.ref,
            name=record.name,
            source_relative_path=record.relative_path,
            target_category=category,
        ))

    logger.info(f"Planned {len(operations)} move(s) from {len(selected)} selected name(s)")
    return operations


def default_selection(records: Sequence[FileRecord]) -> List[str]:
    """Names of every record with a known category, in record order."""
    return list(dict.fromkeys(
        record.name for record in records if record.category is not Category.UNKNOWN
    ))


def sort_records(records: Sequence[FileRecord], field: str = "last_modified",
                 direction: str = "desc") -> List[FileRecord]:
    """
    Sort records for display.

    Raises:
        ValidationError: For an unknown field or direction
    """
    if field not in SORT_FIELDS:
        raise ValidationError(f"Invalid sort field: {field}. Valid fields: {list(SORT_FIELDS)}")
    if direction not in SORT_DIRECTIONS:
        raise ValidationError(f"Invalid sort direction: {direction}")

    if field == "name":
        key = lambda record: record.name.lower()
    else:
        key = lambda record: getattr(record, field)

    return sorted(records, key=key, reverse=(direction == "desc"))


def category_stats(records: Sequence[FileRecord]) -> Dict[str, int]:
    """Count records per category label, omitting empty categories."""
    counts: Dict[str, int] = {}
    for record in records:
        counts[record.category.value] = counts.get(record.category.value, 0) + 1
    return counts


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format."""
    if size_bytes < 1024:
        return f"{size_bytes}B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f}KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f}MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f}GB"
