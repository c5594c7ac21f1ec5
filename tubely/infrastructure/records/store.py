"""
Video record persistence.

The pipeline only needs two things from the record store: read a record
to check who owns it, and write back the uploaded artifact's URL or
object reference. Any backend implementing the RecordStore protocol will
do; the in-memory store below backs local development and tests.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from ...core.media.errors import RecordNotFound, RecordStoreFault
from ...core.media.models import VideoRecord
from ...core.media.pipeline import RecordStore

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """
    Dict-backed record store.

    Records are copied on the way in and out so callers can't mutate
    stored state without going through update_record.
    """

    def __init__(self) -> None:
        self._records: dict[UUID, VideoRecord] = {}
        logger.info("Initialized in-memory record store")

    def create_record(self, user_id: str, title: str, description: str = "") -> VideoRecord:
        record = VideoRecord(user_id=user_id, title=title, description=description)
        self._records[record.id] = record
        logger.debug("Created record", extra={"record_id": str(record.id)})
        return record.copy()

    def get_record(self, record_id: UUID) -> VideoRecord:
        record = self._records.get(record_id)
        if record is None:
            raise RecordNotFound("Couldn't find video")
        return record.copy()

    def update_record(self, record: VideoRecord) -> VideoRecord:
        if record.id not in self._records:
            raise RecordStoreFault(f"Record {record.id} does not exist")

        stored = record.copy(updated_at=datetime.now(timezone.utc))
        self._records[record.id] = stored
        return stored.copy()


def create_record_store() -> RecordStore:
    return InMemoryRecordStore()
