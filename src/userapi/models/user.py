from sqlalchemy import Column, Integer, Text

from ..database import Base


class User(Base):
    """SQLAlchemy model for application users.

    Usernames are not unique and passwords are stored as given.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(Text, nullable=False)
    password = Column(Text, nullable=False)
    age = Column(Integer, nullable=False)
