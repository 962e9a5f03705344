from __future__ import annotations
from typing import Any, List, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

from .auth import CurrentUser, get_current_user
from ..content import content_provider
from ..settings import settings
from ..store import MemoryStore, Store, get_fallback_store, get_store
from ..submission import SubmissionOrchestrator


router = APIRouter(prefix="/assessment", tags=["assessment"])


class SubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_answers: List[Any] = Field(alias="userAnswers")
    # Strict so booleans and numeric strings are rejected instead of coerced
    reading_time_seconds: Union[StrictInt, StrictFloat] = Field(alias="readingTimeSeconds")
    question_time_seconds: Union[StrictInt, StrictFloat] = Field(alias="questionTimeSeconds")
    passage_index: StrictInt = Field(default=0, alias="passageIndex")


@router.get("/content")
async def get_content(index: int = 0, user: CurrentUser = Depends(get_current_user)):
    # Correct answers never leave the server
    return content_provider.get_content(index)


@router.post("/submit")
async def submit(
    req: SubmitRequest,
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(get_store),
    fallback: MemoryStore = Depends(get_fallback_store),
):
    orchestrator = SubmissionOrchestrator(content_provider, store, fallback, settings.persistence_timeout_seconds)
    return await orchestrator.submit(
        user.user_id,
        req.user_answers,
        req.reading_time_seconds,
        req.question_time_seconds,
        req.passage_index,
    )
