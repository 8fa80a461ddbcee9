"""Time entry and expense endpoints."""

from fastapi import APIRouter, Request

from api.base import success_response
from core.exceptions import NotFoundError
from core.models import (
    ExpenseCreate, ExpenseUpdate,
    TimeEntryCreate, TimeEntryUpdate,
)


def create_tracking_router(services: dict) -> APIRouter:
    router = APIRouter()

    time_svc = services["time_entry"]
    expense_svc = services["expense"]

    def respond(request: Request, data):
        return success_response(
            data, getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Time entries
    # -------------------------------------------------------------------------

    @router.post("/time-entries", status_code=201)
    def create_time_entry(request: Request, body: TimeEntryCreate):
        return respond(request, time_svc.create(body).model_dump(mode="json"))

    @router.get("/time-entries/{entry_id}")
    def get_time_entry(request: Request, entry_id: int):
        entry = time_svc.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError("time entry", entry_id)
        return respond(request, entry.model_dump(mode="json"))

    @router.put("/time-entries/{entry_id}")
    def update_time_entry(request: Request, entry_id: int, body: TimeEntryUpdate):
        return respond(request, time_svc.update(entry_id, body).model_dump(mode="json"))

    @router.delete("/time-entries/{entry_id}")
    def delete_time_entry(request: Request, entry_id: int):
        time_svc.delete(entry_id)
        return respond(request, {"deleted": True, "id": entry_id})

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @router.post("/expenses", status_code=201)
    def create_expense(request: Request, body: ExpenseCreate):
        return respond(request, expense_svc.create(body).model_dump(mode="json"))

    @router.get("/expenses/{expense_id}")
    def get_expense(request: Request, expense_id: int):
        expense = expense_svc.get_by_id(expense_id)
        if expense is None:
            raise NotFoundError("expense", expense_id)
        return respond(request, expense.model_dump(mode="json"))

    @router.put("/expenses/{expense_id}")
    def update_expense(request: Request, expense_id: int, body: ExpenseUpdate):
        return respond(request, expense_svc.update(expense_id, body).model_dump(mode="json"))

    @router.delete("/expenses/{expense_id}")
    def delete_expense(request: Request, expense_id: int):
        expense_svc.delete(expense_id)
        return respond(request, {"deleted": True, "id": expense_id})

    return router
