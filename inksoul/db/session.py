from sqlmodel import SQLModel, create_engine, Session, select
from inksoul.core.config import settings

# check_same_thread is needed for SQLite, remove for PostgreSQL
connect_args = {"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {}
engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)

def get_session():
    with Session(engine) as session:
        yield session

def seed_order_counter(session: Session):
    from inksoul.models.order import OrderCounter, ORDER_COUNTER_NAME

    counter = session.exec(select(OrderCounter).where(OrderCounter.name == ORDER_COUNTER_NAME)).first()
    if not counter:
        session.add(OrderCounter(name=ORDER_COUNTER_NAME, value=0))
        session.commit()

def create_db_and_tables(bind=None):
    bind = bind or engine
    SQLModel.metadata.create_all(bind)
    with Session(bind) as session:
        seed_order_counter(session)
