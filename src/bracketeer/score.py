"""
Match score model and parsing.

A Score is an ordered list of set scores plus two flags:
- walkover: the match was decided because an entrant failed to appear
- retired: the match was decided because an entrant withdrew mid-play

Exactly one winner-determination path is active per score. Without a flag
the winner is whoever first takes a strict majority of sets (2 of 3, 3 of
5). With a flag the winner is the explicit ``winner_slot`` and set counts
are informational only.

Slots are 1 (the match's first entrant) and 2 (the second entrant).

Scores arrive in three shapes, all accepted by coerce_score():
- Score instances
- API payloads: {"sets": [{"a": 6, "b": 4}], "walkover": false,
  "retired": false, "winner": null}
- Score strings: "6-4 3-6 7-6(5)", "W/O", "6-4 2-1 RET"
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from bracketeer.exceptions import InvalidScoreError


class ScoreParseError(InvalidScoreError):
    """Raised when a score string cannot be parsed."""
    pass


@dataclass
class SetScore:
    """
    A single set.

    Attributes:
        a: Games won by the slot 1 entrant
        b: Games won by the slot 2 entrant
        tb_a: Slot 1 tiebreak points (if the set went to a tiebreak)
        tb_b: Slot 2 tiebreak points
    """
    a: int
    b: int
    tb_a: Optional[int] = None
    tb_b: Optional[int] = None

    @property
    def is_tiebreak(self) -> bool:
        return self.tb_a is not None and self.tb_b is not None

    @property
    def winner_slot(self) -> Optional[int]:
        """Slot that took the set, or None while level."""
        if self.a > self.b:
            return 1
        if self.b > self.a:
            return 2
        return None

    def to_dict(self) -> dict:
        data = {"a": self.a, "b": self.b}
        if self.is_tiebreak:
            data["tb_a"] = self.tb_a
            data["tb_b"] = self.tb_b
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SetScore":
        try:
            return cls(
                a=int(data["a"]),
                b=int(data["b"]),
                tb_a=_optional_int(data.get("tb_a")),
                tb_b=_optional_int(data.get("tb_b")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidScoreError(f"Malformed set score: {data!r}") from exc

    def __str__(self) -> str:
        if self.is_tiebreak:
            # Show the loser's tiebreak score (convention)
            tb_score = self.tb_b if self.a > self.b else self.tb_a
            return f"{self.a}-{self.b}({tb_score})"
        return f"{self.a}-{self.b}"


@dataclass
class Score:
    """
    Complete score of one match.

    Attributes:
        sets: Set scores in play order
        walkover: Decided by walkover (sets must be empty)
        retired: Decided by retirement (sets hold the partial score)
        winner_slot: Explicit winner, required when a flag is set and
                     forbidden otherwise
    """
    sets: list[SetScore] = field(default_factory=list)
    walkover: bool = False
    retired: bool = False
    winner_slot: Optional[int] = None

    @property
    def is_flagged(self) -> bool:
        return self.walkover or self.retired

    def sets_won(self) -> tuple[int, int]:
        """Sets taken by slot 1 and slot 2."""
        won_a = sum(1 for s in self.sets if s.winner_slot == 1)
        won_b = sum(1 for s in self.sets if s.winner_slot == 2)
        return won_a, won_b

    def validate(self) -> None:
        """
        Check the score is structurally sound.

        Raises:
            InvalidScoreError: negative games, conflicting flags, a walkover
                               with sets, or a winner slot on the wrong path
        """
        for s in self.sets:
            if s.a < 0 or s.b < 0:
                raise InvalidScoreError(f"Negative games in set {s}")
            if (s.tb_a is not None and s.tb_a < 0) or (s.tb_b is not None and s.tb_b < 0):
                raise InvalidScoreError(f"Negative tiebreak points in set {s}")

        if self.walkover and self.retired:
            raise InvalidScoreError("A score cannot be both a walkover and a retirement")
        if self.walkover and self.sets:
            raise InvalidScoreError("A walkover score cannot contain sets")

        if self.is_flagged:
            if self.winner_slot not in (1, 2):
                raise InvalidScoreError(
                    "Walkover and retirement scores need an explicit winner (1 or 2)"
                )
        elif self.winner_slot is not None:
            raise InvalidScoreError(
                "An explicit winner is only allowed on walkover or retirement scores"
            )

    def decide(self, best_of: int) -> int:
        """
        Determine the winning slot of a finished match.

        Flagged scores return the explicit winner. Otherwise sets are
        counted in order: the first slot to reach a strict majority of
        ``best_of`` wins, and no further sets may follow.

        Raises:
            InvalidScoreError: no winner can be determined
        """
        self.validate()
        if self.is_flagged:
            return self.winner_slot

        needed = best_of // 2 + 1
        won = {1: 0, 2: 0}
        for index, s in enumerate(self.sets):
            slot = s.winner_slot
            if slot is None:
                raise InvalidScoreError(f"Set {index + 1} ({s}) has no winner")
            won[slot] += 1
            if won[slot] == needed:
                if index != len(self.sets) - 1:
                    raise InvalidScoreError(
                        f"Sets recorded after the match was decided in set {index + 1}"
                    )
                return slot

        raise InvalidScoreError(
            f"No entrant reached {needed} sets in a best of {best_of} "
            f"(score {self.to_display_string() or 'empty'})"
        )

    def to_display_string(self) -> str:
        """Convert to display format like '6-4 7-6(5)'."""
        if self.walkover:
            return "W/O"
        parts = [str(s) for s in self.sets]
        if self.retired:
            parts.append("RET")
        return " ".join(parts)

    def to_payload(self) -> dict:
        """Structured form stored on the match row."""
        return {
            "sets": [s.to_dict() for s in self.sets],
            "walkover": self.walkover,
            "retired": self.retired,
            "winner": self.winner_slot,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "Score":
        if not isinstance(payload, dict):
            raise InvalidScoreError(f"Score payload must be an object, got {type(payload).__name__}")
        raw_sets = payload.get("sets") or []
        if not isinstance(raw_sets, list):
            raise InvalidScoreError("Score 'sets' must be a list")
        return cls(
            sets=[SetScore.from_dict(s) for s in raw_sets],
            walkover=bool(payload.get("walkover", False)),
            retired=bool(payload.get("retired", False)),
            winner_slot=_optional_int(payload.get("winner")),
        )

    def __repr__(self) -> str:
        return f"<Score({self.to_display_string()}, winner={self.winner_slot})>"


ScoreInput = Union[Score, dict, str, None]


def coerce_score(value: ScoreInput) -> Score:
    """Accept a Score, a payload dict or a score string."""
    if value is None:
        return Score()
    if isinstance(value, Score):
        return value
    if isinstance(value, dict):
        return Score.from_payload(value)
    if isinstance(value, str):
        return parse_score(value)
    raise InvalidScoreError(f"Unsupported score type: {type(value).__name__}")


def parse_score(score_str: str, winner_slot: Optional[int] = None) -> Score:
    """
    Parse a score string into a Score.

    Handles:
    - Regular sets: "6-4 6-3"
    - Tiebreaks: "7-6(5)" or "7-6(7-5)"
    - Super tiebreaks: "10-8" or "[10-8]"
    - Retirements: "6-4 2-1 RET"
    - Walkovers: "W/O"

    Args:
        score_str: Raw score string
        winner_slot: Explicit winner; required for walkovers and retirements

    Raises:
        ScoreParseError: If the score cannot be parsed

    Examples:
        >>> parse_score("6-4 6-3")
        <Score(6-4 6-3, winner=None)>

        >>> parse_score("6-4 2-1 RET", winner_slot=1)
        <Score(6-4 2-1 RET, winner=1)>
    """
    if not score_str or not score_str.strip():
        raise ScoreParseError("Empty score string")

    score = score_str.strip()
    original = score

    if _is_walkover(score):
        if winner_slot is None:
            raise ScoreParseError(f"Walkover score '{original}' needs an explicit winner")
        return Score(walkover=True, winner_slot=winner_slot)

    is_retired, score = _extract_retirement(score)
    if is_retired and winner_slot is None:
        raise ScoreParseError(f"Retirement score '{original}' needs an explicit winner")

    set_strings = _split_sets(score)
    if not set_strings:
        raise ScoreParseError(f"Could not parse score: {original}")

    sets = [_parse_set(set_str) for set_str in set_strings]

    return Score(
        sets=sets,
        retired=is_retired,
        winner_slot=winner_slot if is_retired else None,
    )


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidScoreError(f"Expected an integer, got {value!r}") from exc


def _is_walkover(score: str) -> bool:
    """Check if score indicates a walkover."""
    return score.lower().strip() in ("w/o", "wo", "walkover", "w.o.", "w.o")


def _extract_retirement(score: str) -> tuple[bool, str]:
    """
    Check for and remove retirement indicator.

    Returns:
        (is_retired, cleaned_score)
    """
    retirement_patterns = [
        r"\s*ret\.?\s*$",
        r"\s*retired\.?\s*$",
        r"\s*\(ret\)\.?\s*$",
    ]

    for pattern in retirement_patterns:
        if re.search(pattern, score, re.IGNORECASE):
            cleaned = re.sub(pattern, "", score, flags=re.IGNORECASE)
            return True, cleaned.strip()

    return False, score


def _split_sets(score: str) -> list[str]:
    """Split score string into individual set strings."""
    # Remove any brackets around super tiebreaks first
    score = re.sub(r"\[(\d+-\d+)\]", r"\1", score)

    sets = []
    for part in score.split():
        if not re.match(r"^\d+-\d+(\(\d+(-\d+)?\))?$", part):
            raise ScoreParseError(f"Could not parse set '{part}' in '{score}'")
        sets.append(part)
    return sets


def _parse_set(set_str: str) -> SetScore:
    """
    Parse a single set string.

    Handles:
    - "6-4" (regular set)
    - "7-6(5)" (tiebreak, loser's score shown)
    - "7-6(7-5)" (tiebreak, both scores shown)
    """
    tb_match = re.match(r"^(\d+)-(\d+)\((\d+)(?:-(\d+))?\)$", set_str)

    if tb_match:
        games_a = int(tb_match.group(1))
        games_b = int(tb_match.group(2))
        tb_first = int(tb_match.group(3))
        tb_second = tb_match.group(4)

        if tb_second:
            tb_a = tb_first
            tb_b = int(tb_second)
        else:
            # Only loser's score given; the winner has at least 7
            # (or 2 more than the loser)
            tb_loser = tb_first
            if games_a > games_b:
                tb_b = tb_loser
                tb_a = max(7, tb_loser + 2)
            else:
                tb_a = tb_loser
                tb_b = max(7, tb_loser + 2)

        return SetScore(a=games_a, b=games_b, tb_a=tb_a, tb_b=tb_b)

    regular_match = re.match(r"^(\d+)-(\d+)$", set_str)
    if regular_match:
        return SetScore(a=int(regular_match.group(1)), b=int(regular_match.group(2)))

    raise ScoreParseError(f"Could not parse set: {set_str}")
