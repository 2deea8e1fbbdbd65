from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..schemas import CategoryList
from ..services import categories as category_service

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", response_model=CategoryList)
async def list_categories(session: AsyncSession = Depends(get_session)):
    categories = await category_service.list_categories(session)
    return {"results": len(categories), "categories": categories}
