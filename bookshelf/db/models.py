from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Authority(Base):
    __tablename__ = "authority_master"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)


class Account(Base):
    __tablename__ = "account_master"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    authority_id: Mapped[int] = mapped_column(Integer, ForeignKey("authority_master.id"), nullable=False)

    authority: Mapped["Authority"] = relationship()


class Category(Base):
    __tablename__ = "category_master"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)


class Format(Base):
    __tablename__ = "format_master"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)


class Book(Base):
    __tablename__ = "book"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    isbn: Mapped[str] = mapped_column(String(20), nullable=False)
    category_id: Mapped[int] = mapped_column(Integer, ForeignKey("category_master.id"), nullable=False)
    format_id: Mapped[int] = mapped_column(Integer, ForeignKey("format_master.id"), nullable=False)

    category: Mapped["Category"] = relationship()
    format: Mapped["Format"] = relationship()
