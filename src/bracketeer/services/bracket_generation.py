"""
Bracket generation service: seeding, topology and match materialization.

generate_bracket() turns the eligible entrants of a category into a
bracket row plus its first match rows:

1. **Seeding**: orders entrants with the requested method. Random seeding
   always runs from an explicit seed (the caller's, or a freshly drawn
   one) and the seed is stored on the bracket so the draw is reproducible.
2. **Topology**: the bracket format builds its node graph (elimination) or
   fixture table (round robin). Byes resolve during the build.
3. **Materialization**: one 'scheduled' match per pairing whose two
   entrants are known. Bye nodes never get a match; nodes with a single
   known entrant get theirs later from the advancement engine.
4. **Locking**: every entrant of the category is stamped locked_at, after
   which identity and seeding attributes can no longer change.

Everything happens in the caller's transaction: if any step fails,
nothing is persisted.

Usage:
    from bracketeer.services.bracket_generation import generate_bracket

    with get_session() as session:
        bracket = generate_bracket(session, category_id, "single_elimination", "ranking")
"""

import logging
import random
from dataclasses import dataclass
from time import perf_counter
from typing import Optional

from sqlalchemy.orm import Session

from bracketeer.brackets import FORMATS
from bracketeer.config import settings as app_settings
from bracketeer.db.models import Bracket, Category, Entrant, Match, utc_now
from bracketeer.exceptions import (
    BracketExistsError,
    CategoryNotFoundError,
    InsufficientEntrantsError,
    InvalidEntrantError,
)
from bracketeer.seeding import seed_entrants

logger = logging.getLogger(__name__)

# Upper bound for generated random seeds (fits a 32-bit signed column)
MAX_RANDOM_SEED = 2**31 - 1


@dataclass
class BracketGenerationStats:
    """Statistics from generating one bracket."""

    bracket_id: Optional[int] = None
    bracket_type: str = ""
    entrants: int = 0
    ineligible_skipped: int = 0
    total_rounds: int = 0
    matches_created: int = 0
    elapsed_seconds: float = 0.0

    def summary(self) -> str:
        return (
            f"Generated {self.bracket_type} bracket {self.bracket_id}: "
            f"{self.entrants} entrants ({self.ineligible_skipped} ineligible skipped), "
            f"{self.total_rounds} rounds, {self.matches_created} matches created "
            f"in {self.elapsed_seconds:.2f}s"
        )


def build_bracket_settings(category: Category) -> dict:
    """Settings frozen onto the bracket at generation time."""
    return {
        "best_of": category.best_of or app_settings.default_best_of,
        "grand_final_reset": app_settings.grand_final_reset,
        "win_points": app_settings.round_robin_win_points,
        "loss_points": app_settings.round_robin_loss_points,
    }


def _check_play_format(category: Category, entrants: list[Entrant]) -> None:
    # Doubles categories seed fixed pairs; singles entrants have no partner
    for entrant in entrants:
        if (entrant.partner_id is not None) != category.is_pairs:
            raise InvalidEntrantError(
                f"Entrant {entrant.id} does not fit {category.play_format} category {category.id}",
                {"entrant_id": entrant.id, "play_format": category.play_format},
            )


def generate_bracket(
    session: Session,
    category_id: int,
    bracket_type: str,
    seeding_method: str,
    seed: Optional[int] = None,
    overrides: Optional[dict] = None,
) -> Bracket:
    """
    Generate the bracket for a category.

    Args:
        session: Database session (the caller owns the transaction)
        category_id: Category to generate for
        bracket_type: 'single_elimination', 'double_elimination' or 'round_robin'
        seeding_method: 'ranking', 'manual', 'random' or 'regional'
        seed: Random seed for the 'random' method; drawn if omitted
        overrides: Bracket settings that replace the defaults
                   (e.g. {"grand_final_reset": False})

    Returns:
        The new Bracket (flushed, with its matches)

    Raises:
        CategoryNotFoundError: unknown category
        BracketExistsError: the category already has a bracket
        UnknownBracketTypeError / UnknownSeedingMethodError: bad arguments
        InsufficientEntrantsError: fewer than two eligible entrants
        InvalidEntrantError: a pair in a singles category, or a lone
            player in a doubles category
    """
    start = perf_counter()
    stats = BracketGenerationStats(bracket_type=bracket_type)

    category = session.get(Category, category_id)
    if category is None:
        raise CategoryNotFoundError(f"Category {category_id} not found")

    existing = session.query(Bracket).filter(Bracket.category_id == category_id).first()
    if existing is not None:
        raise BracketExistsError(
            f"Category {category_id} already has bracket {existing.id}",
            {"bracket_id": existing.id},
        )

    bracket_format = FORMATS.get(bracket_type)

    roster = session.query(Entrant).filter(
        Entrant.category_id == category_id,
    ).order_by(Entrant.id).all()
    eligible = [e for e in roster if e.is_eligible]
    stats.ineligible_skipped = len(roster) - len(eligible)
    _check_play_format(category, eligible)

    if len(eligible) < bracket_format.min_entrants:
        raise InsufficientEntrantsError(
            f"Category {category_id} has {len(eligible)} eligible entrants; "
            f"{bracket_type} needs at least {bracket_format.min_entrants}",
            {"eligible": len(eligible)},
        )

    random_seed = None
    rng = None
    if seeding_method == "random":
        random_seed = seed if seed is not None else random.SystemRandom().randint(0, MAX_RANDOM_SEED)
        rng = random.Random(random_seed)

    ordered = seed_entrants(eligible, seeding_method, rng)
    entrant_ids = [e.id for e in ordered]

    bracket_settings = build_bracket_settings(category)
    bracket_settings.update(overrides or {})

    topology = bracket_format.build(entrant_ids, bracket_settings)

    bracket = Bracket(
        category_id=category.id,
        tournament_id=category.tournament_id,
        name=f"{category.name} - {bracket_type.replace('_', ' ').title()}",
        bracket_type=bracket_type,
        seeding_method=seeding_method,
        random_seed=random_seed,
        total_rounds=topology.total_rounds,
        current_round=topology.current_round(),
        is_complete=False,
        bracket_data=topology.to_dict(),
        seeding_data=[
            {"seed": number, "entrant_id": entrant_id}
            for number, entrant_id in enumerate(entrant_ids, start=1)
        ],
        settings=bracket_settings,
        generated_at=utc_now(),
    )
    session.add(bracket)
    session.flush()

    for pairing in topology.playable_pairings():
        session.add(Match(
            bracket_id=bracket.id,
            stage=pairing.stage,
            round_number=pairing.round,
            position=pairing.position,
            round_label=pairing.label,
            match_number=pairing.number,
            entrant1_id=pairing.entrant1,
            entrant2_id=pairing.entrant2,
            status="scheduled",
        ))
        stats.matches_created += 1

    locked_at = utc_now()
    for entrant in roster:
        entrant.locked_at = locked_at

    session.flush()

    stats.bracket_id = bracket.id
    stats.entrants = len(entrant_ids)
    stats.total_rounds = topology.total_rounds
    stats.elapsed_seconds = perf_counter() - start
    logger.info(stats.summary())

    return bracket
