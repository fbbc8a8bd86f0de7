from __future__ import annotations

import logging
from typing import Any

from ..db.store import DirectoryStore
from ..models.directory_record import DirectoryRecord
from ..models.staging_item import EDITABLE_FIELDS, StagingItem, StagingStatus
from ..rules.normalizer import DEFAULT_FLOOR

"""Manual review actions on staged (review / reject) items.

    review_needed --approve--> done      (one live record `t_bulk_<item id>`)
    rejected      --approve--> done
    review_needed --reject---> rejected
    review_needed / rejected --edit--> same status, content replaced
    any           --delete---> removed
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ReviewError",
    "approve",
    "cleanup_staging",
    "delete",
    "edit",
    "reject",
]


class ReviewError(Exception):
    """Missing staging item or a transition its status does not allow."""
    pass


def _load(store: DirectoryStore, item_id: str) -> StagingItem:
    item = store.get_staging_item(item_id)
    if item is None:
        raise ReviewError(f"staging item not found: {item_id}")
    return item


def approve(store: DirectoryStore, item_id: str) -> DirectoryRecord:
    """Promote a staged item to the live directory and mark it done.

    The record id is derived from the item id, so approving twice cannot
    create a second live record.
    """
    item = _load(store, item_id)
    if item.status is StagingStatus.DONE:
        raise ReviewError(f"already approved: {item_id}")
    if item.lat == 0 or item.lng == 0:
        raise ReviewError(f"no coordinates to register: {item_id} (edit lat/lng first)")

    record = DirectoryRecord(
        id=f"t_bulk_{item.id}",
        name=item.name,
        address=item.address,
        lat=item.lat,
        lng=item.lng,
        floor=item.floor or DEFAULT_FLOOR,
        note=f"Bulk Upload Reviewed (Origin: {item.reason})",
    )
    store.bulk_insert_records([record])
    store.update_staging_item(item.id, status=StagingStatus.DONE)
    logger.info(f"approved {item.id} -> {record.id}")
    return record


def reject(store: DirectoryStore, item_id: str) -> StagingItem:
    item = _load(store, item_id)
    if item.status is not StagingStatus.REVIEW_NEEDED:
        raise ReviewError(f"cannot reject item in status {item.status.value}: {item_id}")
    updated = store.update_staging_item(item.id, status=StagingStatus.REJECTED)
    logger.info(f"rejected {item.id}")
    return updated


def edit(store: DirectoryStore, item_id: str, **fields: Any) -> StagingItem:
    """Replace name/address/lat/lng/floor of a pending item.

    None values are ignored so CLI options can be passed through as they are.
    """
    item = _load(store, item_id)
    if item.status is StagingStatus.DONE:
        raise ReviewError(f"cannot edit approved item: {item_id}")

    changes = {k: v for k, v in fields.items() if v is not None}
    unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
    if unknown:
        raise ReviewError(f"not editable: {', '.join(unknown)}")
    if not changes:
        return item
    if "lat" in changes:
        changes["lat"] = float(changes["lat"])
    if "lng" in changes:
        changes["lng"] = float(changes["lng"])
    if "floor" in changes:
        changes["floor"] = int(changes["floor"])

    updated = store.update_staging_item(item.id, **changes)
    logger.info(f"edited {item.id}: {', '.join(sorted(changes))}")
    return updated


def delete(store: DirectoryStore, item_id: str) -> None:
    if not store.delete_staging_item(item_id):
        raise ReviewError(f"staging item not found: {item_id}")
    logger.info(f"deleted {item_id}")


def cleanup_staging(store: DirectoryStore, upload_id: str | None = None) -> int:
    """Delete the staging items of one upload, or every done item when no upload is given."""
    if upload_id is not None:
        items = store.list_staging_items(upload_id=upload_id)
    else:
        items = store.list_staging_items(status=StagingStatus.DONE)
    removed = sum(1 for item in items if store.delete_staging_item(item.id))
    logger.info(f"staging cleanup upload={upload_id or '-'} removed={removed}")
    return removed
