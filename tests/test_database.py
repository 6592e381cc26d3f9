from shared.database import normalize_database_url


def test_plain_postgres_urls_get_asyncpg_driver():
    assert normalize_database_url("postgresql://u:p@db:5432/app") == "postgresql+asyncpg://u:p@db:5432/app"
    assert normalize_database_url("postgres://u:p@db/app") == "postgresql+asyncpg://u:p@db/app"


def test_explicit_driver_is_kept():
    url = "postgresql+asyncpg://u:p@db/app"
    assert normalize_database_url(url) == url
