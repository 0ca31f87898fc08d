"""
Repository for the data sync status register
"""

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from deckworthy.models import SyncLog
from deckworthy.utils import now_utc


class SyncLogRepository:
    def __init__(self, session):
        self.session = session

    def record(self, source, status, records, error=None):
        """Overwrite the status row of a source"""
        values = {
            "last_sync_at": now_utc(),
            "status": status,
            "records_updated": records,
            "error_message": error,
        }
        stmt = sqlite_insert(SyncLog).values(source=source, **values)
        stmt = stmt.on_conflict_do_update(index_elements=[SyncLog.source], set_=values)
        try:
            self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def get(self, source):
        return self.session.get(SyncLog, source)

    def get_all(self):
        """Status rows, most recent sync first"""
        stmt = select(SyncLog).order_by(SyncLog.last_sync_at.desc())
        return [entry.to_dict() for entry in self.session.execute(stmt).scalars()]
