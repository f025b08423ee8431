from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from multi_tenant.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,
    echo=settings.echo_sql,
)

# Tenant lookups made by the middleware read column values after the session
# closes, so instances must not expire on commit.
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
