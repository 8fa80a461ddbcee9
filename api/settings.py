"""Settings endpoints: company details and the invoice counter."""

from fastapi import APIRouter, Request

from api.base import success_response
from core.models import SettingsUpdate


def create_settings_router(services: dict) -> APIRouter:
    router = APIRouter()

    settings_svc = services["settings"]

    @router.get("/settings")
    def get_settings(request: Request):
        return success_response(
            settings_svc.get().model_dump(mode="json"),
            getattr(request.state, "request_id", None),
        ).model_dump(mode="json")

    @router.put("/settings")
    def update_settings(request: Request, body: SettingsUpdate):
        return success_response(
            settings_svc.update(body).model_dump(mode="json"),
            getattr(request.state, "request_id", None),
        ).model_dump(mode="json")

    return router
