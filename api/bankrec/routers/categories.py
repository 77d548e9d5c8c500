from typing import Literal
from fastapi import APIRouter, Depends

from bankrec.deps import Services, get_services
from bankrec.schemas.categories import CategoryOut


router = APIRouter(prefix="/api/v1/categories", tags=["categories"])


@router.get("/", response_model=list[CategoryOut])
def list_categories(kind: Literal["income", "expenditure"] | None = None, svc: Services = Depends(get_services)):
    return svc.reference.list_categories(kind)
