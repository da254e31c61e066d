import logging
from typing import Iterable, Iterator, List, Optional

from .config import settings
from .schemas import ConversionRecord

logger = logging.getLogger(__name__)


class ConversionHistory:
    """Caller-owned, in-memory list of recent conversions, newest first.

    Records are immutable, so renaming replaces the stored record with a
    copy carrying the new title.
    """

    def __init__(self, limit: Optional[int] = None):
        self.limit = settings.history_limit if limit is None else limit
        self._records: List[ConversionRecord] = []

    def add(self, record: ConversionRecord) -> None:
        self._records.insert(0, record)
        del self._records[self.limit:]

    def extend(self, records: Iterable[ConversionRecord]) -> int:
        count = 0
        for record in records:
            self.add(record)
            count += 1
        logger.debug(f"Added {count} records to history")
        return count

    def get(self, record_id: str) -> Optional[ConversionRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def rename(self, record_id: str, title: str) -> Optional[ConversionRecord]:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                renamed = record.model_copy(update={"title": title.strip() or None})
                self._records[index] = renamed
                return renamed
        return None

    def remove(self, record_id: str) -> bool:
        before = len(self._records)
        self._records = [record for record in self._records if record.id != record_id]
        return len(self._records) < before

    def clear(self) -> None:
        self._records.clear()

    def records(self) -> List[ConversionRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ConversionRecord]:
        return iter(list(self._records))
