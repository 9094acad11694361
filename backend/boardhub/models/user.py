"""User profile model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from boardhub.db.base import BaseModel


class Profile(BaseModel):
    """Profile for a user authenticated by the hosted identity provider.

    The primary key is the provider's subject id, so it is assigned from the
    token claims rather than generated.
    """

    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    def __repr__(self) -> str:
        return f"<Profile {self.email}>"
