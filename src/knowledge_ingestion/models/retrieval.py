"""Retrieval request, options and result models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SearchMode(str, Enum):
    """How the vector store ranks candidate chunks."""

    VECTOR = "Vector"
    FULL_TEXT = "FullText"
    HYBRID = "Hybrid"


class FullTextSearchType(str, Enum):
    """Full-text ranking function used by the vector store."""

    TS_RANK = "TsRank"
    TS_RANK_CD = "TsRankCd"


class RetrievalSearchOptions(BaseModel):
    """Search mode and full-text tuning for a retrieval request."""

    search_mode: SearchMode = Field(SearchMode.VECTOR, description="Ranking mode")
    text_weight: float = Field(
        0.3, ge=0.0, le=1.0, description="Weight of the text score in hybrid mode"
    )
    full_text_search_type: FullTextSearchType = Field(FullTextSearchType.TS_RANK)
    full_text_language: str = Field("english", min_length=1)
    full_text_normalization: int = Field(32, ge=0, description="Rank normalization bitmask")
    full_text_minimum_score: Optional[float] = Field(
        None, ge=0.0, description="Minimum text score in FullText/Hybrid modes"
    )
    include_neighbors: int = Field(
        0, ge=0, description="Neighbouring chunks to merge on each side of a hit"
    )

    @property
    def uses_vector(self) -> bool:
        return self.search_mode in (SearchMode.VECTOR, SearchMode.HYBRID)

    @property
    def uses_full_text(self) -> bool:
        return self.search_mode in (SearchMode.FULL_TEXT, SearchMode.HYBRID)


class NeighborChunk(BaseModel):
    """A chunk adjacent to a search hit."""

    content: str = ""
    position: int = 0


class RetrievalChunk(BaseModel):
    """A single search hit and the score used to rank it."""

    document_id: Optional[str] = None
    score: float = Field(0.0, description="Vector similarity, 0.0-1.0")
    text_score: Optional[float] = Field(None, description="Full-text rank (FullText/Hybrid only)")
    content: Optional[str] = None
    position: Optional[int] = None
    neighbors: List[NeighborChunk] = Field(default_factory=list)
    relevance: float = Field(0.0, description="Effective score after mode fusion")

    @property
    def merged_content(self) -> Optional[str]:
        """Hit content joined with its neighbours in positional order."""
        if not self.neighbors or self.position is None:
            return self.content
        parts = [(n.position, n.content) for n in self.neighbors if n.content]
        if self.content:
            parts.append((self.position, self.content))
        parts.sort(key=lambda p: p[0])
        return "\n".join(text for _, text in parts)


class RetrievalRequest(BaseModel):
    """Request body for the retrieval search endpoint."""

    collection_id: str = Field(..., description="Collection to search")
    query: str = Field(..., description="Natural language query")
    top_k: Optional[int] = Field(None, description="Maximum results (defaults from settings)")
    score_threshold: Optional[float] = Field(
        None, description="Minimum effective score (defaults from settings)"
    )
    search_options: Optional[RetrievalSearchOptions] = None


class RetrievalResponse(BaseModel):
    """Response body for the retrieval search endpoint."""

    results: List[str] = Field(default_factory=list)
    count: int = 0
