"""Create the token media tables in the configured database."""

from sqlalchemy.engine import make_url

from src.tokenmedia.config import load_config


def masked_database_url(database_url: str) -> str:
    password = make_url(database_url).password
    if not password:
        return database_url
    return database_url.replace(f":{password}@", ":***@", 1)


def main() -> None:
    config = load_config()
    print(f"Database initialized: {masked_database_url(config.settings.database_url)}")


if __name__ == "__main__":
    main()
