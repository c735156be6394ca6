from datetime import date, datetime
from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from vorniq.db.session import get_db
from vorniq.core.auth import require_module
from vorniq.core.helpers import (
    require_fields, parse_enum, parse_date, parse_datetime, parse_float, parse_int,
    iso, money, search_filter, commit_or_400, get_or_404,
)
from vorniq.models.models import (
    Customer, Lead, LeadStage, FollowUp, FollowUpStatus, Priority,
    Communication, CommunicationDirection, CommunicationStatus, User
)
from vorniq.services.analytics import conversion_rate

router = APIRouter(prefix="/api/crm", tags=["crm"])

crm_user = require_module("crm")

CLOSED_STAGES = [LeadStage.CLOSED_WON, LeadStage.CLOSED_LOST]
QUALIFIED_STAGES = [LeadStage.QUALIFIED, LeadStage.PROPOSAL, LeadStage.NEGOTIATION, LeadStage.CLOSED_WON]


def _serialize_customer(c):
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "company": c.company,
        "job_title": c.job_title,
        "address": c.address,
        "city": c.city,
        "country": c.country,
        "website": c.website,
        "source": c.source,
        "tags": c.tags,
        "notes": c.notes,
        "created_at": iso(c.created_at),
        "updated_at": iso(c.updated_at),
    }


def _serialize_lead(l):
    return {
        "id": l.id,
        "name": l.name,
        "email": l.email,
        "phone": l.phone,
        "company": l.company,
        "job_title": l.job_title,
        "source": l.source,
        "value": money(l.value),
        "probability": l.probability or 0,
        "stage": l.stage.value if l.stage else None,
        "assigned_to": l.assigned_to,
        "customer_id": l.customer_id,
        "next_follow_up": iso(l.next_follow_up),
        "tags": l.tags,
        "notes": l.notes,
        "created_at": iso(l.created_at),
        "updated_at": iso(l.updated_at),
    }


def _serialize_follow_up(f):
    return {
        "id": f.id,
        "lead_id": f.lead_id,
        "lead_name": f.lead.name if f.lead else None,
        "customer_id": f.customer_id,
        "customer_name": f.customer.name if f.customer else None,
        "title": f.title,
        "type": f.type,
        "description": f.description,
        "due_date": iso(f.due_date),
        "status": f.status.value if f.status else None,
        "priority": f.priority.value if f.priority else None,
        "assigned_to": f.assigned_to,
        "notes": f.notes,
        "completed_at": iso(f.completed_at),
        "created_at": iso(f.created_at),
    }


def _serialize_communication(c):
    return {
        "id": c.id,
        "lead_id": c.lead_id,
        "customer_id": c.customer_id,
        "type": c.type,
        "subject": c.subject,
        "content": c.content,
        "direction": c.direction.value if c.direction else None,
        "scheduled_at": iso(c.scheduled_at),
        "status": c.status.value if c.status else None,
        "created_at": iso(c.created_at),
    }


@router.get("/stats")
def get_crm_stats(user: User = Depends(crm_user), db: Session = Depends(get_db)):
    total_customers = db.query(func.count(Customer.id)).scalar() or 0
    total_leads = db.query(func.count(Lead.id)).scalar() or 0
    active_leads = db.query(func.count(Lead.id)).filter(Lead.stage.notin_(CLOSED_STAGES)).scalar() or 0
    won_leads = db.query(func.count(Lead.id)).filter(Lead.stage == LeadStage.CLOSED_WON).scalar() or 0
    pending_followups = db.query(func.count(FollowUp.id)).filter(
        FollowUp.status == FollowUpStatus.PENDING,
        FollowUp.due_date >= date.today()
    ).scalar() or 0

    return {
        "total_customers": total_customers,
        "active_leads": active_leads,
        "pending_followups": pending_followups,
        "conversion_rate": conversion_rate(won_leads, total_leads),
    }


@router.get("/customers")
def list_customers(
    search: str = Query(None),
    source: str = Query(None),
    user: User = Depends(crm_user),
    db: Session = Depends(get_db)
):
    q = db.query(Customer)
    if search:
        q = q.filter(search_filter(search, Customer.name, Customer.email, Customer.company))
    if source:
        q = q.filter(Customer.source == source)
    customers = q.order_by(desc(Customer.created_at), desc(Customer.id)).all()
    return [_serialize_customer(c) for c in customers]


@router.post("/customers")
def create_customer(data: dict = Body(...), user: User = Depends(crm_user), db: Session = Depends(get_db)):
    require_fields(data, "name")
    customer = Customer(
        name=data["name"],
        email=data.get("email"),
        phone=data.get("phone"),
        company=data.get("company"),
        job_title=data.get("job_title"),
        address=data.get("address"),
        city=data.get("city"),
        country=data.get("country"),
        website=data.get("website"),
        source=data.get("source"),
        tags=data.get("tags"),
        notes=data.get("notes"),
    )
    db.add(customer)
    commit_or_400(db, "create customer")
    db.refresh(customer)
    return _serialize_customer(customer)


@router.get("/customers/{customer_id}")
def get_customer(customer_id: int, user: User = Depends(crm_user), db: Session = Depends(get_db)):
    customer = get_or_404(db, Customer, customer_id, "Customer")
    leads = db.query(Lead).filter(Lead.customer_id == customer_id).order_by(desc(Lead.created_at)).all()
    communications = db.query(Communication).filter(
        Communication.customer_id == customer_id
    ).order_by(desc(Communication.created_at)).limit(20).all()

    result = _serialize_customer(customer)
    result["leads"] = [_serialize_lead(l) for l in leads]
    result["communications"] = [_serialize_communication(c) for c in communications]
    return result


@router.put("/customers/{customer_id}")
def update_customer(customer_id: int, data: dict = Body(...), user: User = Depends(crm_user), db: Session = Depends(get_db)):
    customer = get_or_404(db, Customer, customer_id, "Customer")
    if "name" in data:
        require_fields(data, "name")

    fields = ["name", "email", "phone", "company", "job_title", "address", "city",
              "country", "website", "source", "tags", "notes"]
    for f in fields:
        if f in data:
            setattr(customer, f, data[f])

    commit_or_400(db, f"update customer {customer_id}")
    db.refresh(customer)
    return _serialize_customer(customer)


@router.delete("/customers/{customer_id}")
def delete_customer(customer_id: int, user: User = Depends(crm_user), db: Session = Depends(get_db)):
    customer = get_or_404(db, Customer, customer_id, "Customer")
    db.delete(customer)
    commit_or_400(db, f"delete customer {customer_id}")
    return {"ok": True, "deleted": customer_id}


@router.get("/leads")
def list_leads(
    search: str = Query(None),
    stage: str = Query(None),
    source: str = Query(None),
    assigned_to: str = Query(None),
    user: User = Depends(crm_user),
    db: Session = Depends(get_db)
):
    q = db.query(Lead)
    if search:
        q = q.filter(search_filter(search, Lead.name, Lead.email, Lead.company))
    if stage:
        q = q.filter(Lead.stage == parse_enum(LeadStage, stage, "stage"))
    if source:
        q = q.filter(Lead.source == source)
    if assigned_to:
        q = q.filter(Lead.assigned_to == assigned_to)
    leads = q.order_by(desc(Lead.created_at), desc(Lead.id)).all()
    return [_serialize_lead(l) for l in leads]


def _apply_lead_fields(lead, data):
    fields = ["name", "email", "phone", "company", "job_title", "source",
              "assigned_to", "tags", "notes"]
    for f in fields:
        if f in data:
            setattr(lead, f, data[f])
    if "value" in data:
        lead.value = parse_float(data["value"], "value", 0)
    if "probability" in data:
        lead.probability = parse_int(data["probability"], "probability", 0)
    if "stage" in data:
        lead.stage = parse_enum(LeadStage, data["stage"], "stage", LeadStage.NEW)
    if "customer_id" in data:
        lead.customer_id = parse_int(data["customer_id"], "customer_id")
    if "next_follow_up" in data:
        lead.next_follow_up = parse_date(data["next_follow_up"], "next_follow_up")


@router.post("/leads")
def create_lead(data: dict = Body(...), user: User = Depends(crm_user), db: Session = Depends(get_db)):
    require_fields(data, "name")
    lead = Lead(stage=LeadStage.NEW, value=0, probability=0)
    _apply_lead_fields(lead, data)
    db.add(lead)
    commit_or_400(db, "create lead")
    db.refresh(lead)
    return _serialize_lead(lead)


@router.get("/leads/{lead_id}")
def get_lead(lead_id: int, user: User = Depends(crm_user), db: Session = Depends(get_db)):
    lead = get_or_404(db, Lead, lead_id, "Lead")
    follow_ups = db.query(FollowUp).filter(FollowUp.lead_id == lead_id).order_by(FollowUp.due_date).all()
    result = _serialize_lead(lead)
    result["follow_ups"] = [_serialize_follow_up(f) for f in follow_ups]
    return result


@router.put("/leads/{lead_id}")
def update_lead(lead_id: int, data: dict = Body(...), user: User = Depends(crm_user), db: Session = Depends(get_db)):
    lead = get_or_404(db, Lead, lead_id, "Lead")
    if "name" in data:
        require_fields(data, "name")
    _apply_lead_fields(lead, data)
    commit_or_400(db, f"update lead {lead_id}")
    db.refresh(lead)
    return _serialize_lead(lead)


@router.delete("/leads/{lead_id}")
def delete_lead(lead_id: int, user: User = Depends(crm_user), db: Session = Depends(get_db)):
    lead = get_or_404(db, Lead, lead_id, "Lead")
    db.delete(lead)
    commit_or_400(db, f"delete lead {lead_id}")
    return {"ok": True, "deleted": lead_id}


@router.get("/funnel")
def get_sales_funnel(user: User = Depends(crm_user), db: Session = Depends(get_db)):
    rows = db.query(
        Lead.stage, func.count(Lead.id), func.coalesce(func.sum(Lead.value), 0)
    ).group_by(Lead.stage).all()
    by_stage = {stage: (count, value) for stage, count, value in rows}

    funnel = []
    for stage in LeadStage:
        if stage in by_stage:
            count, value = by_stage[stage]
            funnel.append({"stage": stage.value, "count": count, "value": float(value)})
    return funnel


@router.get("/conversion-metrics")
def get_conversion_metrics(user: User = Depends(crm_user), db: Session = Depends(get_db)):
    total = db.query(func.count(Lead.id)).scalar() or 0
    qualified = db.query(func.count(Lead.id)).filter(Lead.stage.in_(QUALIFIED_STAGES)).scalar() or 0
    won = db.query(func.count(Lead.id)).filter(Lead.stage == LeadStage.CLOSED_WON).scalar() or 0
    lost = db.query(func.count(Lead.id)).filter(Lead.stage == LeadStage.CLOSED_LOST).scalar() or 0
    total_value = db.query(func.coalesce(func.sum(Lead.value), 0)).scalar() or 0
    won_value = db.query(func.coalesce(func.sum(Lead.value), 0)).filter(
        Lead.stage == LeadStage.CLOSED_WON
    ).scalar() or 0

    return {
        "total_leads": total,
        "qualified_leads": qualified,
        "won_leads": won,
        "lost_leads": lost,
        "conversion_rate": conversion_rate(won, total),
        "total_value": float(total_value),
        "won_value": float(won_value),
    }


@router.get("/follow-ups")
def list_follow_ups(
    status: str = Query(None),
    priority: str = Query(None),
    lead_id: int = Query(None),
    customer_id: int = Query(None),
    user: User = Depends(crm_user),
    db: Session = Depends(get_db)
):
    q = db.query(FollowUp)
    if status:
        q = q.filter(FollowUp.status == parse_enum(FollowUpStatus, status, "status"))
    if priority:
        q = q.filter(FollowUp.priority == parse_enum(Priority, priority, "priority"))
    if lead_id:
        q = q.filter(FollowUp.lead_id == lead_id)
    if customer_id:
        q = q.filter(FollowUp.customer_id == customer_id)
    follow_ups = q.order_by(FollowUp.due_date, FollowUp.id).all()
    return [_serialize_follow_up(f) for f in follow_ups]


@router.post("/follow-ups")
def create_follow_up(data: dict = Body(...), user: User = Depends(crm_user), db: Session = Depends(get_db)):
    require_fields(data, "title", "due_date")
    follow_up = FollowUp(
        lead_id=parse_int(data.get("lead_id"), "lead_id"),
        customer_id=parse_int(data.get("customer_id"), "customer_id"),
        title=data["title"],
        type=data.get("type", "call"),
        description=data.get("description"),
        due_date=parse_date(data["due_date"], "due_date"),
        status=parse_enum(FollowUpStatus, data.get("status"), "status", FollowUpStatus.PENDING),
        priority=parse_enum(Priority, data.get("priority"), "priority", Priority.MEDIUM),
        assigned_to=data.get("assigned_to"),
        notes=data.get("notes"),
    )
    db.add(follow_up)
    commit_or_400(db, "create follow-up")
    db.refresh(follow_up)
    return _serialize_follow_up(follow_up)


@router.put("/follow-ups/{follow_up_id}")
def update_follow_up(follow_up_id: int, data: dict = Body(...), user: User = Depends(crm_user), db: Session = Depends(get_db)):
    follow_up = get_or_404(db, FollowUp, follow_up_id, "Follow-up")
    for f in ["title", "type", "description", "assigned_to", "notes"]:
        if f in data:
            setattr(follow_up, f, data[f])
    if "due_date" in data:
        require_fields(data, "due_date")
        follow_up.due_date = parse_date(data["due_date"], "due_date")
    if "status" in data:
        follow_up.status = parse_enum(FollowUpStatus, data["status"], "status", FollowUpStatus.PENDING)
    if "priority" in data:
        follow_up.priority = parse_enum(Priority, data["priority"], "priority", Priority.MEDIUM)

    commit_or_400(db, f"update follow-up {follow_up_id}")
    db.refresh(follow_up)
    return _serialize_follow_up(follow_up)


@router.post("/follow-ups/{follow_up_id}/complete")
def complete_follow_up(follow_up_id: int, data: dict = Body(default={}), user: User = Depends(crm_user), db: Session = Depends(get_db)):
    follow_up = get_or_404(db, FollowUp, follow_up_id, "Follow-up")
    follow_up.status = FollowUpStatus.COMPLETED
    follow_up.completed_at = datetime.utcnow()
    if data.get("notes"):
        follow_up.notes = data["notes"]
    commit_or_400(db, f"complete follow-up {follow_up_id}")
    db.refresh(follow_up)
    return _serialize_follow_up(follow_up)


@router.delete("/follow-ups/{follow_up_id}")
def delete_follow_up(follow_up_id: int, user: User = Depends(crm_user), db: Session = Depends(get_db)):
    follow_up = get_or_404(db, FollowUp, follow_up_id, "Follow-up")
    db.delete(follow_up)
    commit_or_400(db, f"delete follow-up {follow_up_id}")
    return {"ok": True, "deleted": follow_up_id}


@router.get("/communications")
def list_communications(
    search: str = Query(None),
    type: str = Query(None),
    direction: str = Query(None),
    lead_id: int = Query(None),
    customer_id: int = Query(None),
    user: User = Depends(crm_user),
    db: Session = Depends(get_db)
):
    q = db.query(Communication)
    if search:
        q = q.filter(search_filter(search, Communication.subject, Communication.content))
    if type:
        q = q.filter(Communication.type == type)
    if direction:
        q = q.filter(Communication.direction == parse_enum(CommunicationDirection, direction, "direction"))
    if lead_id:
        q = q.filter(Communication.lead_id == lead_id)
    if customer_id:
        q = q.filter(Communication.customer_id == customer_id)
    communications = q.order_by(desc(Communication.created_at), desc(Communication.id)).all()
    return [_serialize_communication(c) for c in communications]


@router.post("/communications")
def create_communication(data: dict = Body(...), user: User = Depends(crm_user), db: Session = Depends(get_db)):
    require_fields(data, "type")
    if not data.get("lead_id") and not data.get("customer_id"):
        raise HTTPException(status_code=400, detail="A communication needs a lead_id or customer_id")
    communication = Communication(
        lead_id=parse_int(data.get("lead_id"), "lead_id"),
        customer_id=parse_int(data.get("customer_id"), "customer_id"),
        type=data["type"],
        subject=data.get("subject"),
        content=data.get("content"),
        direction=parse_enum(CommunicationDirection, data.get("direction"), "direction", CommunicationDirection.OUTGOING),
        scheduled_at=parse_datetime(data.get("scheduled_at"), "scheduled_at"),
        status=parse_enum(CommunicationStatus, data.get("status"), "status", CommunicationStatus.COMPLETED),
    )
    db.add(communication)
    commit_or_400(db, "log communication")
    db.refresh(communication)
    return _serialize_communication(communication)


@router.delete("/communications/{communication_id}")
def delete_communication(communication_id: int, user: User = Depends(crm_user), db: Session = Depends(get_db)):
    communication = get_or_404(db, Communication, communication_id, "Communication")
    db.delete(communication)
    commit_or_400(db, f"delete communication {communication_id}")
    return {"ok": True, "deleted": communication_id}


@router.get("/recent-activities")
def get_recent_activities(user: User = Depends(crm_user), db: Session = Depends(get_db)):
    leads = db.query(Lead).order_by(desc(Lead.created_at), desc(Lead.id)).limit(5).all()
    customers = db.query(Customer).order_by(desc(Customer.created_at), desc(Customer.id)).limit(5).all()

    activities = []
    for l in leads:
        activities.append({
            "type": "lead",
            "id": l.id,
            "title": f"New lead: {l.name}",
            "description": l.company or l.email,
            "stage": l.stage.value if l.stage else None,
            "created_at": l.created_at,
        })
    for c in customers:
        activities.append({
            "type": "customer",
            "id": c.id,
            "title": f"New customer: {c.name}",
            "description": c.company or c.email,
            "created_at": c.created_at,
        })
    activities.sort(key=lambda a: a["created_at"] or datetime.min, reverse=True)
    for a in activities:
        a["created_at"] = iso(a["created_at"])
    return activities[:10]
