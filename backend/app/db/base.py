"""Database base class."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models.

    Models register themselves on import; import ``app.models`` before
    calling ``Base.metadata.create_all``.
    """

    pass
