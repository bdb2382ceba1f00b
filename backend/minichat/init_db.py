from minichat.core.database import engine, init_db
from minichat.core.logging_config import configure_logging, get_logger


def main():
    configure_logging()
    init_db(bind=engine)
    get_logger(__name__).info("Database tables created", url=str(engine.url))


if __name__ == "__main__":
    main()
