# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from arena.models.match import Match  # noqa: F401
from arena.models.match_confirmation import MatchConfirmation  # noqa: F401
from arena.models.match_participation import MatchParticipation  # noqa: F401
from arena.models.participant import Participant  # noqa: F401
from arena.models.team import Team  # noqa: F401
from arena.models.tournament import Tournament, TournamentAdmin  # noqa: F401
from arena.models.user import AppUser  # noqa: F401
