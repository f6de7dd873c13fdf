"""API endpoints for Sales Agents."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select, func, and_, or_

from app.models.commission import SalesAgent
from app.schemas.sales_agent import (
    SalesAgentCreate, SalesAgentUpdate, SalesAgentResponse, SalesAgentListResponse,
)
from app.api.deps import DB, Page

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_agent_or_404(db, agent_id: UUID) -> SalesAgent:
    agent = await db.get(SalesAgent, agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Sales agent not found")
    return agent


async def _ensure_code_free(db, agent_code: str, exclude_id: Optional[UUID] = None) -> None:
    query = select(SalesAgent.id).where(SalesAgent.agent_code == agent_code)
    if exclude_id:
        query = query.where(SalesAgent.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Agent code {agent_code} already exists"
        )


@router.post("", response_model=SalesAgentResponse, status_code=status.HTTP_201_CREATED)
async def create_sales_agent(
    agent_in: SalesAgentCreate,
    db: DB,
):
    """Create a new sales agent."""
    await _ensure_code_free(db, agent_in.agent_code)

    agent = SalesAgent(**agent_in.model_dump())
    db.add(agent)
    await db.commit()
    await db.refresh(agent)

    logger.info(f"Sales agent {agent.agent_code} created")
    return agent


@router.get("", response_model=SalesAgentListResponse)
async def list_sales_agents(
    db: DB,
    page: Page,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
):
    """List sales agents."""
    query = select(SalesAgent)
    count_query = select(func.count(SalesAgent.id))

    filters = []
    if is_active is not None:
        filters.append(SalesAgent.is_active == is_active)
    if search:
        filters.append(or_(
            SalesAgent.name.ilike(f"%{search}%"),
            SalesAgent.agent_code.ilike(f"%{search}%"),
        ))

    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(SalesAgent.name).offset(page.skip).limit(page.limit)
    result = await db.execute(query)

    return SalesAgentListResponse(
        items=[SalesAgentResponse.model_validate(a) for a in result.scalars().all()],
        total=total,
        skip=page.skip,
        limit=page.limit,
    )


@router.get("/{agent_id}", response_model=SalesAgentResponse)
async def get_sales_agent(
    agent_id: UUID,
    db: DB,
):
    return await _get_agent_or_404(db, agent_id)


@router.put("/{agent_id}", response_model=SalesAgentResponse)
async def update_sales_agent(
    agent_id: UUID,
    agent_in: SalesAgentUpdate,
    db: DB,
):
    agent = await _get_agent_or_404(db, agent_id)
    update_data = agent_in.model_dump(exclude_unset=True)

    if update_data.get("agent_code") and update_data["agent_code"] != agent.agent_code:
        await _ensure_code_free(db, update_data["agent_code"], exclude_id=agent.id)

    for field, value in update_data.items():
        setattr(agent, field, value)

    await db.commit()
    await db.refresh(agent)
    return agent


@router.delete("/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_sales_agent(
    agent_id: UUID,
    db: DB,
):
    """Deactivate a sales agent. Existing commission shares are kept."""
    agent = await _get_agent_or_404(db, agent_id)
    agent.is_active = False
    await db.commit()
    logger.info(f"Sales agent {agent.agent_code} deactivated")
