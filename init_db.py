from app.backend.src.core.config import get_settings
from app.backend.src.db import get_engine
from app.backend.src.models import *  # noqa
from app.backend.src.models.base import Base


def init_db():
    engine = get_engine()
    print(f"Connecting to {get_settings().database_url}")
    Base.metadata.create_all(bind=engine)
    print("Report tables created.")


if __name__ == "__main__":
    init_db()
