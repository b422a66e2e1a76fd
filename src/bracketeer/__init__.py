"""
Bracketeer - Tournament bracket generation and match progression

Turns a roster of eligible entrants into a seeded competition (single
elimination, double elimination or round robin) and advances winners
match by match until a champion is determined.

Main components:
- seeding: Entrant ordering (ranking, manual, random, regional)
- brackets: Topology builders and the format registry
- score: Score model, best-of-N rules and score-string parsing
- services: Bracket generation, match lifecycle and advancement
- signals: Post-commit outbound signals (round/bracket/tournament complete)
- db: SQLAlchemy models and session management
- web: FastAPI JSON API
- engine: BracketEngine facade, one transaction per operation
"""

__version__ = "1.0.0"
