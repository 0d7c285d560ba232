from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class FormModel(Base):
    __tablename__ = "forms"

    id = Column(String, primary_key=True)
    user_id = Column(String, index=True)
    title = Column(String)
    description = Column(Text)
    status = Column(String, default="draft")
    fields_json = Column(Text)
    settings_json = Column(Text)
    theme_json = Column(Text)
    response_count = Column(Integer, default=0)
    created_at = Column(DateTime)
    updated_at = Column(DateTime, index=True)


class ResponseModel(Base):
    __tablename__ = "responses"

    id = Column(String, primary_key=True)
    form_id = Column(String, index=True)
    user_id = Column(String, index=True)
    answers_json = Column(Text)
    metadata_json = Column(Text)
    status = Column(String, default="completed")
    submitted_at = Column(DateTime)


class DraftModel(Base):
    __tablename__ = "drafts"

    id = Column(String, primary_key=True)
    form_id = Column(String, index=True)
    user_id = Column(String)
    form_data_json = Column(Text)
    metadata_json = Column(Text)
    updated_at = Column(DateTime)


class FileModel(Base):
    __tablename__ = "files"

    id = Column(String, primary_key=True)
    form_id = Column(String, index=True)
    original_name = Column(String)
    stored_path = Column(Text)
    content_type = Column(String)
    size = Column(Integer)
    created_at = Column(DateTime)
