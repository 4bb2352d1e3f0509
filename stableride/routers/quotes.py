"""
Quotes router: POST /api/quotes (price a trip without booking it)
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stableride.database import get_db
from stableride.schemas.schemas import QuoteRequest, QuoteResponse
from stableride.services.quotes import build_quote

router = APIRouter(prefix="/api/quotes", tags=["Quotes"])


@router.post("", response_model=QuoteResponse)
async def create_quote(payload: QuoteRequest, db: AsyncSession = Depends(get_db)):
    quote = await build_quote(db, payload)
    return QuoteResponse(**quote)
