"""
Schedule validation.

Venue conflict rules belong to the venue-management collaborator, so the
lifecycle controller only calls a validator. The default implementation
uses the matches table itself: a venue cannot host two non-terminal
matches at the same date and time.
"""

import logging
from datetime import date, time
from typing import Optional

from sqlalchemy.orm import Session

from bracketeer.db.models import Match
from bracketeer.exceptions import SchedulingConflictError
from bracketeer.match_statuses import get_status_group

logger = logging.getLogger(__name__)


class ScheduleValidator:
    """Accept every slot. Subclass and override check() to add rules."""

    def check(
        self,
        session: Session,
        match: Match,
        venue_id: Optional[int],
        scheduled_date: Optional[date],
        scheduled_time: Optional[time],
    ) -> None:
        return None


class VenueAvailabilityValidator(ScheduleValidator):
    """Reject a slot already taken at the same venue."""

    def check(self, session, match, venue_id, scheduled_date, scheduled_time) -> None:
        if venue_id is None or scheduled_date is None or scheduled_time is None:
            return

        clash = session.query(Match).filter(
            Match.venue_id == venue_id,
            Match.scheduled_date == scheduled_date,
            Match.scheduled_time == scheduled_time,
            Match.id != match.id,
            Match.status.notin_(get_status_group("terminal")),
        ).first()

        if clash is not None:
            logger.info(
                "Venue %s already booked at %s %s by match %s",
                venue_id, scheduled_date, scheduled_time, clash.id,
            )
            raise SchedulingConflictError(
                f"Venue {venue_id} is already booked on {scheduled_date} at {scheduled_time}",
                {"venue_id": venue_id, "conflicting_match_id": clash.id},
            )


default_validator = VenueAvailabilityValidator()
