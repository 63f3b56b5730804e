"""Model registration module used by alembic autogeneration."""

from courtside.models.db.league import League, Season  # noqa: F401
from courtside.models.db.match import Match  # noqa: F401
from courtside.models.db.player import MatchHistoryEntry, Player, Registration  # noqa: F401
from courtside.models.db.playoff import PlayoffConfig  # noqa: F401
