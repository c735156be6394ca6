import logging
from datetime import date, timedelta
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import SQLAlchemyError
from vorniq.core.config import APP_NAME, PAYMENT_KEY_ID, CORS_ORIGINS, ADMIN_EMAIL, ADMIN_PASSWORD, warn_missing_settings
from vorniq.core.log_config import configure_logging
from vorniq.db.session import engine
from vorniq.models.base import Base
from vorniq.models.models import (
    User, Role, TaxSetting, Customer, Lead, LeadStage, Employee, Product, Supplier,
    Revenue, Expense, BankAccount, BankTransaction, TransactionType,
)
from vorniq.schemas.schemas import PublicConfig
from vorniq.api import auth, crm, hrm, sim, accounting, dashboard, roles, demo

configure_logging()
logger = logging.getLogger("vorniq")

app = FastAPI(title=f"{APP_NAME} ERP", version="0.1.0")


class NoCacheMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        return response


app.add_middleware(NoCacheMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(crm.router)
app.include_router(hrm.router)
app.include_router(sim.router)
app.include_router(accounting.router)
app.include_router(dashboard.router)
app.include_router(roles.router)
app.include_router(demo.router)


@app.on_event("startup")
def startup():
    warn_missing_settings()
    Base.metadata.create_all(bind=engine)
    _seed_defaults()


DEFAULT_TAX_SETTINGS = [
    ("GST 18%", 18, "GST"),
    ("GST 12%", 12, "GST"),
    ("GST 5%", 5, "GST"),
    ("GST 0%", 0, "GST"),
    ("TDS 10%", 10, "TDS"),
]


def _seed_defaults():
    from vorniq.db.session import SessionLocal
    from vorniq.core.auth import ADMIN_ROLE, hash_password
    from vorniq.services.access import ensure_default_access
    db = SessionLocal()
    try:
        ensure_default_access(db)

        if db.query(User).count() == 0:
            admin_role = db.query(Role).filter(Role.name == ADMIN_ROLE).first()
            db.add(User(
                username="admin",
                email=ADMIN_EMAIL,
                first_name="Admin",
                last_name="User",
                hashed_password=hash_password(ADMIN_PASSWORD),
                role_id=admin_role.id,
            ))
            logger.info("Seeded admin user %s", ADMIN_EMAIL)

        if db.query(TaxSetting).count() == 0:
            db.add_all([TaxSetting(name=n, rate=r, type=t, is_active=True) for n, r, t in DEFAULT_TAX_SETTINGS])

        if db.query(Customer).count() == 0:
            _seed_demo_data(db)

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Seeding default data failed")
    finally:
        db.close()


def _seed_demo_data(db):
    today = date.today()
    db.add_all([
        Customer(name="Acme Industries", email="contact@acme.example", company="Acme Industries",
                 city="Mumbai", country="India", source="website"),
        Customer(name="Beta Retail", email="hello@beta.example", company="Beta Retail",
                 city="Pune", country="India", source="referral"),
    ])
    db.add_all([
        Lead(name="Ravi Kumar", company="Acme Industries", email="ravi@acme.example",
             value=250000, probability=20, stage=LeadStage.NEW, source="website"),
        Lead(name="Priya Shah", company="Beta Retail", email="priya@beta.example",
             value=180000, probability=60, stage=LeadStage.QUALIFIED, source="referral"),
    ])

    supplier = Supplier(name="Prime Components", contact_person="Anil Mehta", city="Delhi")
    db.add(supplier)
    db.flush()
    db.add_all([
        Product(name="Wireless Router", sku="NET-001", category="Networking", price=3499, cost_price=2600,
                stock_quantity=42, min_stock_level=10, max_stock_level=100, supplier_id=supplier.id),
        Product(name="Office Chair", sku="FUR-014", category="Furniture", price=7999, cost_price=5200,
                stock_quantity=4, min_stock_level=5, max_stock_level=40, supplier_id=supplier.id),
    ])

    db.add_all([
        Employee(employee_id="EMP001", first_name="Neha", last_name="Verma", email="neha@vorniq.example",
                 department="Engineering", position="Software Engineer", salary=85000,
                 hire_date=today - timedelta(days=400)),
        Employee(employee_id="EMP002", first_name="Arjun", last_name="Rao", email="arjun@vorniq.example",
                 department="Sales", position="Account Executive", salary=60000,
                 hire_date=today - timedelta(days=12)),
    ])

    db.add_all([
        Revenue(source="Product Sales", description="Router batch order", amount=52000, date=today - timedelta(days=3),
                payment_method="bank_transfer"),
        Expense(category="Rent", description="Office rent", amount=45000, date=today - timedelta(days=5),
                payment_method="bank_transfer"),
    ])

    account = BankAccount(name="Operating Account", bank_name="HDFC Bank", account_number="XXXX4521",
                          current_balance=257000, reconciled_balance=250000)
    db.add(account)
    db.flush()
    db.add_all([
        BankTransaction(bank_account_id=account.id, date=today - timedelta(days=3), description="NEFT credit",
                        amount=52000, type=TransactionType.CREDIT, balance=302000),
        BankTransaction(bank_account_id=account.id, date=today - timedelta(days=5), description="Rent debit",
                        amount=45000, type=TransactionType.DEBIT, balance=257000),
    ])
    logger.info("Seeded demo business data")


@app.get("/api/config", response_model=PublicConfig)
def get_config():
    return PublicConfig(app_name=APP_NAME, payment_key_id=PAYMENT_KEY_ID)


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=5000)
