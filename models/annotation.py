from dataclasses import dataclass
from typing import Union
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


@dataclass(frozen=True)
class UserAuthor:
    user_id: int


@dataclass(frozen=True)
class GuestAuthor:
    name: str


Author = Union[UserAuthor, GuestAuthor]


class Annotation(Base):
    __tablename__ = 'annotations'
    __table_args__ = (
        # Exactly one of user_id / guest_name identifies the author
        CheckConstraint('(user_id IS NULL) <> (guest_name IS NULL)', name='ck_annotations_single_author'),
        Index('idx_annotations_page_file', 'share_page_id', 'file_index'),
    )

    id = Column(Integer, primary_key=True)
    share_page_id = Column(Integer, ForeignKey('share_pages.id', ondelete='CASCADE'), nullable=False)
    file_index = Column(Integer, nullable=False)
    user_id = Column(Integer, nullable=True)
    guest_name = Column(String(100), nullable=True)
    content = Column(Text, nullable=False)
    position_x = Column(Integer, nullable=False, default=0, server_default='0')
    position_y = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime, nullable=False, default=func.now(), server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), server_default=func.now(), onupdate=func.now())

    share_page = relationship("SharePage", back_populates="annotations")

    @property
    def author(self) -> Author:
        if self.user_id is not None:
            return UserAuthor(self.user_id)
        return GuestAuthor(self.guest_name)

    @author.setter
    def author(self, value: Author):
        if isinstance(value, UserAuthor):
            self.user_id = value.user_id
            self.guest_name = None
        elif isinstance(value, GuestAuthor):
            self.user_id = None
            self.guest_name = value.name
        else:
            raise TypeError(f"Unsupported annotation author: {value!r}")
