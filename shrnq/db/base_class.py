from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Consistent constraint names across SQLite and PostgreSQL.
convention = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_N_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata_obj = MetaData(naming_convention=convention)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models in the application.
    It includes a shared MetaData object with a naming convention.
    """

    metadata = metadata_obj
