"""
Read-only match queries across the brackets of a tournament.

- get_match_schedule(): the order of play for a tournament, optionally
  for one day, earliest slot first
- get_player_matches(): every match a player takes part in, alone or as
  either member of a pair, most recent slot first

Matches without a date or time sort after scheduled ones.
"""

from datetime import date
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from bracketeer.db.models import Bracket, Entrant, Match


def get_match_schedule(
    session: Session,
    tournament_id: int,
    on_date: Optional[date] = None,
) -> list[Match]:
    """
    Matches of a tournament ordered by scheduled date and time.

    Args:
        session: Database session
        tournament_id: External tournament id shared by its categories
        on_date: Only matches scheduled on this day
    """
    query = (
        session.query(Match)
        .join(Bracket, Match.bracket_id == Bracket.id)
        .filter(Bracket.tournament_id == tournament_id)
    )
    if on_date is not None:
        query = query.filter(Match.scheduled_date == on_date)

    return query.order_by(
        Match.scheduled_date.is_(None),
        Match.scheduled_date,
        Match.scheduled_time.is_(None),
        Match.scheduled_time,
        Match.bracket_id,
        Match.match_number,
        Match.id,
    ).all()


def get_player_matches(
    session: Session,
    player_id: int,
    tournament_id: Optional[int] = None,
) -> list[Match]:
    """Matches where the player is an entrant or an entrant's partner."""
    entrant_ids = select(Entrant.id).where(
        or_(Entrant.player_id == player_id, Entrant.partner_id == player_id)
    )

    query = session.query(Match).filter(
        or_(Match.entrant1_id.in_(entrant_ids), Match.entrant2_id.in_(entrant_ids))
    )
    if tournament_id is not None:
        query = query.join(Bracket, Match.bracket_id == Bracket.id).filter(
            Bracket.tournament_id == tournament_id
        )

    return query.order_by(
        Match.scheduled_date.is_(None),
        Match.scheduled_date.desc(),
        Match.scheduled_time.is_(None),
        Match.scheduled_time.desc(),
        Match.id.desc(),
    ).all()
