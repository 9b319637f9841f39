from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from motopos.db.database import get_db
from motopos.schemas.statistics import DashboardOut, LowStockOut, MostSoldOut, TopCustomerOut
from motopos.services import statistics

router = APIRouter(prefix="/statistics", tags=["Statistics"])


@router.get("/dashboard", response_model=DashboardOut)
def dashboard(db: Session = Depends(get_db)):
    return statistics.dashboard(db)


@router.get("/low-stock", response_model=LowStockOut)
def low_stock(
    limit: int = Query(default=statistics.LOW_STOCK_LIMIT, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return statistics.low_stock(db, limit)


@router.get("/most-sold", response_model=list[MostSoldOut])
def most_sold(
    limit: int = Query(default=statistics.RANKING_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return statistics.most_sold_products(db, limit)


@router.get("/top-customers", response_model=list[TopCustomerOut])
def top_customers(
    limit: int = Query(default=statistics.RANKING_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return statistics.top_customers(db, limit)
