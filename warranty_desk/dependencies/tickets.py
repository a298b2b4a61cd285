from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from warranty_desk.tickets.query import TicketQueryEngine
from warranty_desk.tickets.service import TicketWorkflowService


async def get_workflow_service(request: Request) -> TicketWorkflowService:
    service = getattr(request.app.state, "workflow_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket workflow service is not configured")
    return service


async def get_query_engine(request: Request) -> TicketQueryEngine:
    engine = getattr(request.app.state, "query_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Ticket query engine is not configured")
    return engine


WorkflowServiceDep = Annotated[TicketWorkflowService, Depends(get_workflow_service)]
QueryEngineDep = Annotated[TicketQueryEngine, Depends(get_query_engine)]
