"""
Persistence collaborator. Records are opaque JSON payloads keyed by id; the
engine inserts one per resolved spin, hand, coup and closed session.
"""
import logging
import threading
from datetime import datetime, timezone

from sqlalchemy import select

from ..models import GameRecord
from ..schemas import GameRecordSchema

logger = logging.getLogger(__name__)


def _dedupe(record_id, exists):
    """Ids are timestamp based; a second record in the same millisecond gets a numeric suffix."""
    candidate = record_id
    n = 1
    while exists(candidate):
        n += 1
        candidate = f"{record_id}_{n}"
    return candidate


class InMemoryRecordStore:

    def __init__(self):
        self._records = {}
        self._lock = threading.Lock()

    def insert(self, record_id, record_type, user_id, game_id, payload):
        with self._lock:
            record_id = _dedupe(record_id, self._records.__contains__)
            self._records[record_id] = {
                'id': record_id,
                'record_type': record_type,
                'user_id': user_id,
                'game_id': game_id,
                'payload': payload,
                'created_at': datetime.now(timezone.utc).isoformat(),
            }
        logger.debug("Stored %s record %s", record_type, record_id)
        return record_id

    def get(self, record_id):
        with self._lock:
            return self._records.get(record_id)

    def history(self, user_id, record_type=None, limit=50):
        with self._lock:
            rows = [r for r in self._records.values()
                    if r['user_id'] == user_id and (record_type is None or r['record_type'] == record_type)]
        return list(reversed(rows))[:limit]

    def __len__(self):
        return len(self._records)


class SqlRecordStore:

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._lock = threading.Lock()

    def insert(self, record_id, record_type, user_id, game_id, payload):
        with self._lock, self.session_factory.begin() as session:
            record_id = _dedupe(record_id, lambda rid: session.get(GameRecord, rid) is not None)
            session.add(GameRecord(id=record_id, record_type=record_type, user_id=user_id,
                                   game_id=game_id, payload=payload))
        logger.debug("Stored %s record %s", record_type, record_id)
        return record_id

    def get(self, record_id):
        with self.session_factory() as session:
            record = session.get(GameRecord, record_id)
            return GameRecordSchema().dump(record) if record else None

    def history(self, user_id, record_type=None, limit=50):
        with self.session_factory() as session:
            query = select(GameRecord).where(GameRecord.user_id == user_id)
            if record_type is not None:
                query = query.where(GameRecord.record_type == record_type)
            rows = session.execute(
                query.order_by(GameRecord.created_at.desc(), GameRecord.id.desc()).limit(limit)
            ).scalars().all()
            return GameRecordSchema(many=True).dump(rows)
