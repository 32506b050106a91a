from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import get_settings

settings = get_settings()

connect_args = {}
if settings.database.url.startswith("sqlite"):
    # Sessions are also opened from background jobs
    connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.database.url,
    echo=settings.database.echo,
    connect_args=connect_args,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
