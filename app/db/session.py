from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.core.config import settings

# pool_pre_ping drops connections PostgreSQL closed while idle, before a
# webhook or sweep picks them up.
engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

# Requests get one session each; the webhook executor and the sweep open
# their own from this factory.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
