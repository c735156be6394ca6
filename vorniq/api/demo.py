import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import desc
from vorniq.db.session import get_db
from vorniq.core.auth import require_admin
from vorniq.core.helpers import commit_or_400
from vorniq.models.models import DemoRequest, User
from vorniq.schemas.schemas import DemoRequestCreate, DemoRequestResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/demo-requests", tags=["demo"])


@router.post("", response_model=DemoRequestResponse)
def create_demo_request(data: DemoRequestCreate, db: Session = Depends(get_db)):
    demo = DemoRequest(
        name=data.name,
        email=data.email,
        company=data.company,
        phone=data.phone,
        message=data.message,
        services=", ".join(data.services) if data.services else None,
    )
    db.add(demo)
    commit_or_400(db, "store demo request")
    db.refresh(demo)
    logger.info("Demo requested by %s (%s)", demo.email, demo.company or "no company")
    return demo


@router.get("", response_model=list[DemoRequestResponse])
def list_demo_requests(limit: int = Query(100, ge=1, le=500), user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return db.query(DemoRequest).order_by(desc(DemoRequest.created_at), desc(DemoRequest.id)).limit(limit).all()
