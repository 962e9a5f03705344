from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Float, Text, ForeignKey
from .db import Base


class User(Base):
	__tablename__ = "users"
	id = Column(String(64), primary_key=True)
	email = Column(String(256), unique=True, index=True, nullable=False)
	password_hash = Column(String(256), nullable=False)
	credits = Column(Integer, default=10, nullable=False)
	# Stats are only touched by the submission flow
	total_assessments = Column(Integer, default=0, nullable=False)
	average_speed_score = Column(Integer, default=0, nullable=False)
	best_speed_score = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Assessment(Base):
	__tablename__ = "assessments"
	# Written once per submission, never updated
	id = Column(String(64), primary_key=True)
	user_id = Column(String(64), ForeignKey("users.id"), index=True, nullable=False)
	passage = Column(Text, nullable=False)
	questions_json = Column(Text, nullable=False)  # snapshot including correct answers
	user_answers_json = Column(Text, nullable=False)
	reading_time_seconds = Column(Float, nullable=False)
	question_time_seconds = Column(Float, nullable=False)
	total_time_seconds = Column(Float, nullable=False)
	accuracy = Column(Float, nullable=False)
	speed_score = Column(Integer, nullable=False)
	words_per_minute = Column(Integer, nullable=False)
	retention_rate = Column(Float, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
