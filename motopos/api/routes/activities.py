from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from motopos.db.database import get_db
from motopos.models.sales import Activity, ActivityEntityType
from motopos.schemas.catalog import ActivityOut

router = APIRouter(prefix="/activities", tags=["Activities"])


@router.get("", response_model=list[ActivityOut])
def list_activities(
    entity_type: ActivityEntityType | None = None,
    entity_id: int | None = None,
    invoice_id: int | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    query = select(Activity).order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit)
    if entity_type is not None:
        query = query.where(Activity.entity_type == entity_type)
    if entity_id is not None:
        query = query.where(Activity.entity_id == entity_id)
    if invoice_id is not None:
        query = query.where(Activity.invoice_id == invoice_id)
    return list(db.scalars(query).all())
