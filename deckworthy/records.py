"""
Plain records passed between the upstream services, the repositories and the jobs
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class GameRecord:
    app_id: int
    name: str
    short_description: Optional[str] = None
    header_image_url: Optional[str] = None
    steam_url: Optional[str] = None
    release_date: Optional[str] = None
    developers: Optional[List[str]] = None
    publishers: Optional[List[str]] = None
    genres: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    is_free: bool = False

    def to_row(self):
        return asdict(self)


@dataclass
class RatingRecord:
    app_id: int
    tier: str
    confidence: Optional[str] = None
    score: Optional[float] = None
    total_reports: int = 0
    trending_tier: Optional[str] = None

    def to_row(self):
        return asdict(self)


@dataclass
class PriceRecord:
    app_id: int
    store: str
    price_usd: float
    discount_percent: int = 0
    is_on_sale: bool = False
    sale_end_date: Optional[datetime] = None
    url: Optional[str] = None

    def to_row(self):
        return asdict(self)


@dataclass
class SyncProgress:
    """Reported after each id of a bulk run"""
    current: int
    total: int
    app_id: int
    outcome: str  # 'success' | 'skipped' | 'failed'


@dataclass
class SyncResult:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    duration: Optional[float] = None  # seconds
    errors: List[str] = field(default_factory=list)

    @property
    def processed(self):
        return self.success + self.failed + self.skipped

    def to_dict(self):
        return {
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration": self.duration,
        }
