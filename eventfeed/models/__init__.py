from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from ..core import DATABASE_URL

engine = create_async_engine(DATABASE_URL, future=True, echo=False)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()

if engine.dialect.name == 'sqlite':
    # sqlite leaves foreign keys off per connection, cascades depend on them
    @event.listens_for(engine.sync_engine, 'connect')
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

# Import models to register tables
from .users import User  # noqa: F401,E402
from .session_tokens import SessionToken  # noqa: F401,E402
from .events import Event  # noqa: F401,E402
from .reactions import EventReaction  # noqa: F401,E402


async def init_models():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
