"""
Duplicate check-in detection.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from config import config
from db import crud

logger = logging.getLogger(__name__)


class CheckinDeduplicator:
    """
    Guards against double-submitted check-ins.

    ``is_duplicate`` looks back ``window_minutes`` from the incoming
    timestamp (both ends inclusive); ``has_already_checked_in`` ignores time
    entirely. The check-in flow asks the first question before the second.
    """

    def __init__(self, db: Session, window_minutes: Optional[int] = None):
        self.db = db
        self.window = timedelta(
            minutes=config.DUPLICATE_CHECKIN_WINDOW_MINUTES if window_minutes is None else window_minutes
        )

    def is_duplicate(self, route_id: str, passenger_id: str, checkin_type: str, timestamp: datetime) -> bool:
        count = crud.count_checkins_between(
            self.db,
            route_id,
            passenger_id,
            checkin_type,
            window_start=timestamp - self.window,
            window_end=timestamp,
        )
        if count:
            logger.info(
                f"[Dedup] {checkin_type} for passenger {passenger_id} on route {route_id} "
                f"already recorded within {self.window}"
            )
        return count > 0

    def has_already_checked_in(self, route_id: str, passenger_id: str, checkin_type: str) -> bool:
        return crud.checkin_exists(self.db, route_id, passenger_id, checkin_type)
