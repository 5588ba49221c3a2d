"""Label index loader for flat ``"<relative-path> <class-id>"`` files."""

from __future__ import annotations

from pathlib import Path
from typing import NamedTuple

from loguru import logger

from edge_training.errors import DataError, ResourceIOError


class LabelEntry(NamedTuple):
    """One labelled image.

    image: Image path relative to the split's image folder.
    class_id: Integer class id, not yet range-checked.
    line: 1-based line number in the label file, for diagnostics.
    """

    image: str
    class_id: int
    line: int


def load_label_index(path: Path) -> list[LabelEntry]:
    """Parse a label file into an ordered list of entries.

    Blank lines are skipped; every other line must hold exactly two
    whitespace-separated fields.  The class id range is checked later by
    :func:`edge_training.data.dataset.encode_label`.

    Raises:
        ResourceIOError: If the file is missing or unreadable.
        DataError: If a line is malformed.
    """
    try:
        text = path.read_text()
    except (OSError, UnicodeDecodeError) as e:
        raise ResourceIOError(
            f"Cannot read label file: {e}", resource=str(path)
        ) from e

    entries: list[LabelEntry] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        fields = line.split()
        if len(fields) != 2:
            raise DataError(
                f"Expected '<path> <class-id>', got {len(fields)} field(s): {line!r}",
                resource=f"{path}:{lineno}",
            )
        image, class_str = fields
        try:
            class_id = int(class_str)
        except ValueError as e:
            raise DataError(
                f"Class id is not an integer: {class_str!r}",
                resource=f"{path}:{lineno}",
            ) from e
        entries.append(LabelEntry(image=image, class_id=class_id, line=lineno))

    logger.debug(f"Loaded {len(entries)} label entries from {path}")
    return entries
