"""
Model: SyncLog
Status register with one row per data source, overwritten on every run.
"""

from deckworthy.db import db, to_dict
from deckworthy.utils import isoformat


class SyncLog(db.Model):
    __tablename__ = "data_sync_log"

    source = db.Column(db.String, primary_key=True)  # 'steam' | 'protondb' | 'itad'
    last_sync_at = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20))  # 'success' | 'failed'
    error_message = db.Column(db.Text)
    records_updated = db.Column(db.Integer, default=0)

    def to_dict(self):
        data = to_dict(self)
        data["last_sync_at"] = isoformat(self.last_sync_at)
        return data
