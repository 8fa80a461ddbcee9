"""Client read endpoints used when choosing what to invoice."""

from datetime import date

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core.exceptions import NotFoundError


def create_clients_router(services: dict) -> APIRouter:
    router = APIRouter()

    client_svc = services["client"]

    @router.get("/clients/{client_id}/projects")
    def list_projects(request: Request, client_id: int, active_only: bool = Query(False)):
        if client_svc.get_by_id(client_id) is None:
            raise NotFoundError("client", client_id)
        projects = client_svc.list_projects(client_id, active_only=active_only)
        return success_response(
            [p.model_dump(mode="json") for p in projects],
            getattr(request.state, "request_id", None),
        ).model_dump(mode="json")

    @router.get("/clients/{client_id}/uninvoiced-summary")
    def uninvoiced_summary(
        request: Request,
        client_id: int,
        up_to_date: date | None = Query(None),
    ):
        summary = client_svc.uninvoiced_summary(client_id, up_to_date)
        return success_response(
            [s.model_dump(mode="json") for s in summary],
            getattr(request.state, "request_id", None),
        ).model_dump(mode="json")

    return router
