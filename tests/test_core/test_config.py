"""Tests for application settings."""

from qrvault.config import Settings


def make(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestSettings:
    def test_deployed_runtime_detection(self):
        assert make(environment="dev", railway_environment="").is_deployed_runtime is False
        assert make(environment="dev", railway_environment="production").is_deployed_runtime is True
        assert make(environment="prod", railway_environment="").is_deployed_runtime is True

    def test_base_url_trailing_slash(self):
        assert make(app_base_url="https://qr.example.test/").base_url == "https://qr.example.test"

    def test_database_url_override(self):
        config = make(DATABASE_URL="sqlite+aiosqlite:///qr.db")
        assert config.database_url == "sqlite+aiosqlite:///qr.db"

    def test_database_url_from_parts(self):
        config = make(
            DATABASE_URL="",
            db_user="u",
            db_password="p",
            db_host="db",
            db_port=5433,
            db_name="qr",
        )
        assert config.database_url == "postgresql+asyncpg://u:p@db:5433/qr"
