from typing import List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import transaction
from ..exceptions import BadRequestError, NotFoundError
from ..models import Category, Event
from ..schemas import CategoryRequest, CategoryResponse


async def list_categories(session: AsyncSession, active_only: bool = True) -> List[CategoryResponse]:
    stmt = (
        select(Category)
        .order_by(Category.created_at.desc(), Category.category_id.desc())
        .execution_options(populate_existing=True)
    )
    if active_only:
        stmt = stmt.where(Category.is_active.is_(True))
    rows = (await session.execute(stmt)).scalars().all()
    return [CategoryResponse.model_validate(row) for row in rows]


async def _load_category(category_id: int, session: AsyncSession) -> Category:
    stmt = select(Category).where(Category.category_id == category_id).execution_options(populate_existing=True)
    category = (await session.execute(stmt)).scalar_one_or_none()
    if not category:
        raise NotFoundError("No category found with that ID")
    return category


async def _check_name_free(name: str, session: AsyncSession, exclude_id: int = None):
    stmt = select(Category.category_id).where(Category.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Category.category_id != exclude_id)
    if (await session.execute(stmt)).first():
        raise BadRequestError("A category with that name already exists")


async def get_category(category_id: int, session: AsyncSession) -> CategoryResponse:
    return CategoryResponse.model_validate(await _load_category(category_id, session))


async def create_category(req: CategoryRequest, session: AsyncSession) -> CategoryResponse:
    async with transaction(session, "Create category"):
        await _check_name_free(req.name, session)
        category = Category(**req.model_dump())
        session.add(category)
        await session.flush()
    return CategoryResponse.model_validate(category)


async def update_category(category_id: int, req: CategoryRequest, session: AsyncSession) -> CategoryResponse:
    async with transaction(session, "Update category"):
        category = await _load_category(category_id, session)
        await _check_name_free(req.name, session, exclude_id=category_id)
        for field, value in req.model_dump().items():
            setattr(category, field, value)
    return CategoryResponse.model_validate(category)


async def delete_category(category_id: int, session: AsyncSession):
    async with transaction(session, "Delete category"):
        category = await _load_category(category_id, session)
        # Events outlive their category
        await session.execute(
            update(Event)
            .where(Event.category_id == category_id)
            .values(category_id=None)
            .execution_options(synchronize_session=False)
        )
        await session.delete(category)


async def toggle_category_status(category_id: int, session: AsyncSession) -> bool:
    async with transaction(session, "Toggle category status"):
        category = await _load_category(category_id, session)
        category.is_active = not category.is_active
        is_active = category.is_active
    return is_active
