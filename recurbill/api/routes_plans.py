from fastapi import APIRouter, Response, status

from recurbill.api.dependencies import PlanServiceDep
from recurbill.models import schemas

router = APIRouter()


@router.post("/", response_model=schemas.PlanOut, status_code=status.HTTP_201_CREATED)
def create_plan(data: schemas.PlanCreate, svc: PlanServiceDep):
    return svc.create(data.name, data.price, data.recurrence)


@router.get("/", response_model=list[schemas.PlanOut])
def list_plans(svc: PlanServiceDep):
    return svc.list_plans()


@router.get("/{plan_id}", response_model=schemas.PlanOut)
def get_plan(plan_id: int, svc: PlanServiceDep):
    return svc.get(plan_id)


@router.get("/{plan_id}/clients/count", response_model=schemas.PlanClientsCountOut)
def count_plan_clients(plan_id: int, svc: PlanServiceDep):
    return schemas.PlanClientsCountOut(plan_id=plan_id, clients=svc.clients_count(plan_id))


@router.patch("/{plan_id}", response_model=schemas.PlanOut)
def update_plan(plan_id: int, data: schemas.PlanUpdate, svc: PlanServiceDep):
    return svc.update(plan_id, data.model_dump(exclude_unset=True))


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_plan(plan_id: int, svc: PlanServiceDep) -> Response:
    """Delete a plan. Refused while any client is subscribed to it."""
    svc.remove(plan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
