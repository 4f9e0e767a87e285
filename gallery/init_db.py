from .models import database
from .models import imageModel, metadataModel  # noqa: F401
from .utils.logging import logger


def main():
    logger.info("Creating database tables...")
    database.Base.metadata.create_all(bind=database.engine)
    logger.info("Database tables created successfully!")


if __name__ == "__main__":
    main()
