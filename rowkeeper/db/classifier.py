from __future__ import annotations

from .helpers import MISSING
from .models import Record, RecordStatus


def classify(record: Record, force_delete: bool = False) -> RecordStatus:
    """
    Work out what a write has to do for ``record``.

    Only columns present in the snapshot are compared. A snapshot column the
    record no longer carries counts as a change; a column added after the
    snapshot was taken does not.
    """
    if force_delete:
        return RecordStatus.DELETED

    if record.original_values is None:
        return RecordStatus.NEW

    for name, original in record.original_values.items():
        if record.values.get(name, MISSING) != original:
            return RecordStatus.UPDATED

    return RecordStatus.UNCHANGED
