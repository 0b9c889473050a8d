from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class FormatOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class BookIn(BaseModel):
    title: str = Field(min_length=3, max_length=50)
    isbn: str = Field(min_length=10, max_length=20)
    category_id: int
    format_id: int


class BookOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    isbn: str
    category: CategoryOut
    format: FormatOut


class BookPage(BaseModel):
    content: list[BookOut]
    page: int
    size: int
    total_elements: int
    total_pages: int


class AccountOut(BaseModel):
    id: int
    username: str
    authority: str
