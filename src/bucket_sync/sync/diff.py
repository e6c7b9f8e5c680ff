"""Key-set diffing between two bucket listings."""

import logging
from collections.abc import Iterable

from bucket_sync.sync.tasks.task_types import ObjectKey

logger = logging.getLogger(__name__)


def missing_keys(source: Iterable[ObjectKey], dest: Iterable[ObjectKey]) -> set[ObjectKey]:
    """Keys present in ``source`` and absent from ``dest``, compared by exact name only."""
    source_set = set(source)
    dest_set = set(dest)
    missing = source_set - dest_set
    logger.info(
        f"Diffed {len(source_set):,} source keys against {len(dest_set):,} destination keys: "
        f"{len(missing):,} missing"
    )
    return missing
