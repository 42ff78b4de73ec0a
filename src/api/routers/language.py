"""
Language recommendation endpoint — which local model suits a language pair.
"""

import logging

from fastapi import APIRouter, HTTPException

from lingo_engine.recommendations import build_recommendation
from schemas.requests import LanguageRecommendationBody

router = APIRouter(tags=["Language"])
logger = logging.getLogger("lingo.api.language")


@router.post("/language-recommendation")
async def language_recommendation(body: LanguageRecommendationBody):
    if not body.native_language or not body.target_language:
        raise HTTPException(status_code=400, detail="주언어와 배울언어를 모두 선택해주세요")
    return build_recommendation(body.native_language, body.target_language, body.filter_type)
