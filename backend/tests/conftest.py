import itertools
import os
from datetime import date

# Configure before the app module reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ["AUTO_FINALIZE_ENABLED"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine, select  # noqa: E402

from arena.database import get_session  # noqa: E402
from arena.main import app  # noqa: E402
from arena.models.participant import Participant  # noqa: E402
from arena.models.team import Team, composition_hash  # noqa: E402
from arena.models.tournament import AdminRole, Tournament, TournamentAdmin, TournamentStatus  # noqa: E402
from arena.models.user import AppUser, UserRole  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables dropped after every test, so names and ids never leak between tests
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

_names = itertools.count(1)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    import arena.models  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place for the entire duration,
    so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_user(session: Session):
    def _make(display_name: str, role: str = UserRole.player.value) -> AppUser:
        user = AppUser(display_name=display_name, role=role)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_tournament(session: Session, make_user):
    """Open tournament owned by a fresh organizer unless told otherwise."""

    def _make(owner: AppUser = None, **settings) -> Tournament:
        if owner is None:
            owner = make_user("Organizer", UserRole.tournament_admin.value)
        values = {
            "name": f"Tournament {next(_names)}",
            "start_date": date(2026, 3, 1),
            "end_date": date(2026, 3, 31),
            "status": TournamentStatus.open.value,
            "created_by": owner.id,
        }
        values.update(settings)
        tournament = Tournament(**values)
        session.add(tournament)
        session.flush()
        session.add(TournamentAdmin(tournament_id=tournament.id, user_id=owner.id, role=AdminRole.owner.value))
        session.commit()
        session.refresh(tournament)
        return tournament

    return _make


@pytest.fixture
def register(session: Session):
    def _register(tournament: Tournament, *users: AppUser) -> list:
        rows = [Participant(tournament_id=tournament.id, user_id=u.id) for u in users]
        session.add_all(rows)
        session.commit()
        for row in rows:
            session.refresh(row)
        return rows

    return _register


@pytest.fixture
def make_team(session: Session):
    """Static team; members are registered on the fly when needed."""

    def _make(tournament: Tournament, name: str, *members: AppUser) -> Team:
        team = Team(
            tournament_id=tournament.id,
            name=name,
            composition_hash=composition_hash(m.id for m in members),
        )
        session.add(team)
        session.commit()
        session.refresh(team)
        for member in members:
            participant = session.exec(
                select(Participant).where(
                    Participant.tournament_id == tournament.id,
                    Participant.user_id == member.id,
                )
            ).first()
            if participant is None:
                participant = Participant(tournament_id=tournament.id, user_id=member.id)
            participant.team_id = team.id
            session.add(participant)
        session.commit()
        return team

    return _make


@pytest.fixture
def engine():
    """The shared in-memory engine, for code that opens its own sessions."""
    return test_engine
