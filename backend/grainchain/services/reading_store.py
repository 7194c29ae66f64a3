"""
Reading Store: last humidity / moisture / storage-condition reading per subject.
Any caller may write any subject; a write replaces the whole triple.
"""
import logging

from grainchain.db import ledger_session
from grainchain.models import Reading
from grainchain.utils import require_unsigned

logger = logging.getLogger(__name__)

EMPTY_READING = {"humidity": 0, "moisture_content": 0, "storage_conditions": 0}


def _reading_to_dict(row: Reading) -> dict:
    return {
        "humidity": row.humidity,
        "moisture_content": row.moisture_content,
        "storage_conditions": row.storage_conditions,
    }


class ReadingStore:

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def write(self, subject: str, humidity: int, moisture: int, storage_condition: int) -> None:
        """
        Upsert the reading for ``subject``. No authorization and no range rules;
        values only have to fit an unsigned SQL integer.
        """
        for name, value in (("humidity", humidity), ("moisture", moisture), ("storage_condition", storage_condition)):
            require_unsigned(name, value)
        with ledger_session(self._session_factory) as db:
            row = db.get(Reading, subject)
            if row is None:
                row = Reading(subject=subject)
                db.add(row)
            row.humidity = humidity
            row.moisture_content = moisture
            row.storage_conditions = storage_condition
        logger.info("reading_written", extra={"subject": subject})

    def read(self, subject: str) -> dict:
        """Return the last reading, or all zeros if ``subject`` was never written."""
        with ledger_session(self._session_factory) as db:
            row = db.get(Reading, subject)
            return _reading_to_dict(row) if row else dict(EMPTY_READING)
