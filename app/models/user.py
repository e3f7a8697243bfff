from sqlalchemy import Column, String, Boolean
from .base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="external")  # admin, manager, developer, tester, external
    is_active = Column(Boolean, default=True)

    @property
    def is_operator(self) -> bool:
        return self.role in ("admin", "manager")
