import pytest

from .factories import (
    ConferenceFactory,
    UserFactory,
    ConferenceAdminMembershipFactory,
    SubmissionFactory,
)


@pytest.fixture(autouse=True)
def export_root(settings, tmp_path):
    """Keep temp XLSX files of every test inside its own tmp dir."""
    root = tmp_path / "exports"
    settings.REPORT_EXPORT_ROOT = str(root)
    return root


@pytest.fixture
def conference(db):
    """Create and return a Conference via factory."""
    return ConferenceFactory.create()


@pytest.fixture
def user(db):
    """Create and return a user via factory."""
    return UserFactory.create()


@pytest.fixture
def conference_admin(db, conference):
    """Staff user with a membership for `conference`."""
    return ConferenceAdminMembershipFactory.create(conference=conference).user


@pytest.fixture
def submission(db, conference):
    """Create and return a Submission via factory."""
    return SubmissionFactory.create(conference=conference)
