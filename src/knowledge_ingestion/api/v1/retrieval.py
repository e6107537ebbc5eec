"""Retrieval endpoints."""

from fastapi import APIRouter, Depends, status

from knowledge_ingestion.config import get_settings
from knowledge_ingestion.dependencies import get_retrieval_service
from knowledge_ingestion.models.retrieval import RetrievalRequest, RetrievalResponse
from knowledge_ingestion.services.retrieval_service import RetrievalService

router = APIRouter(prefix="/retrieval", tags=["retrieval"])


@router.post("/search", response_model=RetrievalResponse, status_code=status.HTTP_200_OK)
async def search(
    body: RetrievalRequest,
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    """
    Retrieve the most relevant chunk contents for a query.

    top_k and score_threshold fall back to RETRIEVAL_DEFAULT_TOP_K and
    RETRIEVAL_DEFAULT_SCORE_THRESHOLD when omitted.
    """
    defaults = get_settings().retrieval
    results = await retrieval.retrieve(
        collection_id=body.collection_id,
        query=body.query,
        top_k=body.top_k if body.top_k is not None else defaults.default_top_k,
        score_threshold=(
            body.score_threshold
            if body.score_threshold is not None
            else defaults.default_score_threshold
        ),
        search_options=body.search_options,
    )
    return RetrievalResponse(results=results, count=len(results))
