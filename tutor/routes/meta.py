# tutor/routes/meta.py
from fastapi import APIRouter

from tutor.utils.catalog import LANGUAGES, TOPICS

router = APIRouter()


@router.get("/languages")
async def get_languages():
    return LANGUAGES


@router.get("/topics")
async def get_topics():
    return TOPICS
