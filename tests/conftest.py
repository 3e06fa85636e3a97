import pytest

from energy_advisor.db import init_db


@pytest.fixture
def db_path(tmp_path):
    """A fresh SQLite database with the schema applied."""
    path = tmp_path / "test.db"
    init_db(path)
    return path
