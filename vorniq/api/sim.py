import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from vorniq.db.session import get_db
from vorniq.core.auth import require_module
from vorniq.core.helpers import (
    require_fields, parse_enum, parse_date, parse_float, parse_int,
    iso, money, search_filter, commit_or_400, get_or_404,
)
from vorniq.models.models import (
    Supplier, Product, Quotation, QuotationStatus, Invoice, InvoiceStatus, PaymentStatus,
    PurchaseOrder, PurchaseOrderStatus, StockMovement, MovementType, StockAlert, AlertType, User
)
from vorniq.services.finance import invoice_total

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sim", tags=["sim"])

sim_user = require_module("sim")


def _serialize_supplier(s):
    return {
        "id": s.id,
        "name": s.name,
        "contact_person": s.contact_person,
        "email": s.email,
        "phone": s.phone,
        "city": s.city,
        "address": s.address,
        "created_at": iso(s.created_at),
    }


def _stock_status(p):
    qty = p.stock_quantity or 0
    if qty == 0:
        return "out_of_stock"
    if qty <= (p.min_stock_level or 0):
        return "low_stock"
    if p.max_stock_level and qty > p.max_stock_level:
        return "overstock"
    return "in_stock"


def _serialize_product(p):
    return {
        "id": p.id,
        "name": p.name,
        "sku": p.sku,
        "description": p.description,
        "category": p.category,
        "price": money(p.price),
        "cost_price": money(p.cost_price),
        "stock_quantity": p.stock_quantity or 0,
        "min_stock_level": p.min_stock_level or 0,
        "max_stock_level": p.max_stock_level or 0,
        "unit_of_measure": p.unit_of_measure,
        "is_active": bool(p.is_active),
        "supplier_id": p.supplier_id,
        "supplier_name": p.supplier.name if p.supplier else None,
        "stock_status": _stock_status(p),
        "created_at": iso(p.created_at),
        "updated_at": iso(p.updated_at),
    }


def _serialize_quotation(q):
    return {
        "id": q.id,
        "quote_number": q.quote_number,
        "customer_name": q.customer_name,
        "customer_email": q.customer_email,
        "customer_phone": q.customer_phone,
        "customer_address": q.customer_address,
        "quote_date": iso(q.quote_date),
        "valid_until": iso(q.valid_until),
        "subtotal": money(q.subtotal),
        "tax_amount": money(q.tax_amount),
        "discount_amount": money(q.discount_amount),
        "total_amount": money(q.total_amount),
        "status": q.status.value if q.status else None,
        "notes": q.notes,
        "created_at": iso(q.created_at),
    }


def _serialize_invoice(i):
    return {
        "id": i.id,
        "invoice_number": i.invoice_number,
        "customer_name": i.customer_name,
        "customer_email": i.customer_email,
        "customer_phone": i.customer_phone,
        "customer_address": i.customer_address,
        "invoice_date": iso(i.invoice_date),
        "due_date": iso(i.due_date),
        "subtotal": money(i.subtotal),
        "tax_amount": money(i.tax_amount),
        "discount_amount": money(i.discount_amount),
        "total_amount": money(i.total_amount),
        "paid_amount": money(i.paid_amount),
        "balance_due": round(money(i.total_amount) - money(i.paid_amount), 2),
        "status": i.status.value if i.status else None,
        "payment_status": i.payment_status.value if i.payment_status else None,
        "notes": i.notes,
        "created_at": iso(i.created_at),
    }


def _serialize_purchase_order(po):
    return {
        "id": po.id,
        "po_number": po.po_number,
        "supplier_id": po.supplier_id,
        "supplier_name": po.supplier_name or (po.supplier.name if po.supplier else None),
        "order_date": iso(po.order_date),
        "expected_delivery_date": iso(po.expected_delivery_date),
        "subtotal": money(po.subtotal),
        "tax_amount": money(po.tax_amount),
        "total_amount": money(po.total_amount),
        "status": po.status.value if po.status else None,
        "notes": po.notes,
        "created_at": iso(po.created_at),
    }


def _serialize_movement(m):
    return {
        "id": m.id,
        "product_id": m.product_id,
        "product_name": m.product.name if m.product else None,
        "movement_type": m.movement_type.value if m.movement_type else None,
        "quantity": m.quantity,
        "reference_type": m.reference_type,
        "reference_id": m.reference_id,
        "notes": m.notes,
        "created_by": m.created_by,
        "created_at": iso(m.created_at),
    }


def _serialize_alert(a):
    return {
        "id": a.id,
        "product_id": a.product_id,
        "product_name": a.product.name if a.product else None,
        "alert_type": a.alert_type.value if a.alert_type else None,
        "current_stock": a.current_stock,
        "threshold_value": a.threshold_value,
        "is_active": bool(a.is_active),
        "severity": "critical" if a.alert_type == AlertType.OUT_OF_STOCK else "warning",
        "created_at": iso(a.created_at),
    }


def _alert_for(product):
    """Alert type and threshold a product currently warrants, or None."""
    qty = product.stock_quantity or 0
    if qty == 0:
        return AlertType.OUT_OF_STOCK, product.min_stock_level or 0
    if qty <= (product.min_stock_level or 0):
        return AlertType.LOW_STOCK, product.min_stock_level or 0
    if product.max_stock_level and qty > product.max_stock_level:
        return AlertType.OVERSTOCK, product.max_stock_level
    return None


def _sync_alerts(db: Session, product):
    active = db.query(StockAlert).filter(StockAlert.product_id == product.id, StockAlert.is_active == True).all()
    wanted = _alert_for(product) if product.is_active else None
    for alert in active:
        if wanted is None or alert.alert_type != wanted[0]:
            alert.is_active = False
        else:
            alert.current_stock = product.stock_quantity or 0
            wanted = None
    if wanted is not None:
        db.add(StockAlert(
            product_id=product.id,
            alert_type=wanted[0],
            current_stock=product.stock_quantity or 0,
            threshold_value=wanted[1],
            is_active=True,
        ))


def _movement_delta(movement_type: MovementType, quantity: int) -> int:
    if movement_type == MovementType.OUT:
        return -abs(quantity)
    if movement_type == MovementType.IN:
        return abs(quantity)
    return quantity


def _apply_stock_change(db: Session, product, movement_type: MovementType, quantity: int):
    delta = _movement_delta(movement_type, quantity)
    new_qty = (product.stock_quantity or 0) + delta
    if new_qty < 0:
        raise HTTPException(status_code=400, detail=f"Insufficient stock for {product.name}: {product.stock_quantity or 0} available")
    product.stock_quantity = new_qty
    _sync_alerts(db, product)


@router.get("/stats")
def get_sim_stats(user: User = Depends(sim_user), db: Session = Depends(get_db)):
    month_start = date.today().replace(day=1)
    total_products = db.query(func.count(Product.id)).filter(Product.is_active == True).scalar() or 0
    low_stock_count = db.query(func.count(Product.id)).filter(
        Product.is_active == True,
        Product.stock_quantity <= Product.min_stock_level,
        Product.stock_quantity > 0
    ).scalar() or 0
    monthly_revenue = db.query(func.coalesce(func.sum(Invoice.paid_amount), 0)).filter(
        Invoice.payment_status == PaymentStatus.PAID,
        Invoice.invoice_date >= month_start
    ).scalar() or 0
    pending_orders_count = db.query(func.count(PurchaseOrder.id)).filter(
        PurchaseOrder.status == PurchaseOrderStatus.PENDING
    ).scalar() or 0

    return {
        "total_products": total_products,
        "low_stock_count": low_stock_count,
        "monthly_revenue": float(monthly_revenue),
        "pending_orders_count": pending_orders_count,
    }


@router.get("/suppliers")
def list_suppliers(search: str = Query(None), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    q = db.query(Supplier)
    if search:
        q = q.filter(search_filter(search, Supplier.name, Supplier.contact_person, Supplier.email))
    return [_serialize_supplier(s) for s in q.order_by(Supplier.name).all()]


@router.post("/suppliers")
def create_supplier(data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    require_fields(data, "name")
    supplier = Supplier(
        name=data["name"],
        contact_person=data.get("contact_person"),
        email=data.get("email"),
        phone=data.get("phone"),
        city=data.get("city"),
        address=data.get("address"),
    )
    db.add(supplier)
    commit_or_400(db, "create supplier")
    db.refresh(supplier)
    return _serialize_supplier(supplier)


@router.put("/suppliers/{supplier_id}")
def update_supplier(supplier_id: int, data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    supplier = get_or_404(db, Supplier, supplier_id, "Supplier")
    if "name" in data:
        require_fields(data, "name")
    for f in ["name", "contact_person", "email", "phone", "city", "address"]:
        if f in data:
            setattr(supplier, f, data[f])
    commit_or_400(db, f"update supplier {supplier_id}")
    db.refresh(supplier)
    return _serialize_supplier(supplier)


@router.delete("/suppliers/{supplier_id}")
def delete_supplier(supplier_id: int, user: User = Depends(sim_user), db: Session = Depends(get_db)):
    supplier = get_or_404(db, Supplier, supplier_id, "Supplier")
    db.delete(supplier)
    commit_or_400(db, f"delete supplier {supplier_id}")
    return {"ok": True, "deleted": supplier_id}


@router.get("/products")
def list_products(
    search: str = Query(None),
    category: str = Query(None),
    supplier_id: int = Query(None),
    include_inactive: bool = Query(False),
    user: User = Depends(sim_user),
    db: Session = Depends(get_db)
):
    q = db.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active == True)
    if search:
        q = q.filter(search_filter(search, Product.name, Product.sku, Product.description))
    if category:
        q = q.filter(Product.category == category)
    if supplier_id:
        q = q.filter(Product.supplier_id == supplier_id)
    products = q.order_by(desc(Product.created_at), desc(Product.id)).all()
    return [_serialize_product(p) for p in products]


def _apply_product_fields(product, data):
    for f in ["name", "sku", "description", "category", "unit_of_measure"]:
        if f in data:
            setattr(product, f, data[f])
    for f in ["price", "cost_price"]:
        if f in data:
            setattr(product, f, parse_float(data[f], f, 0))
    for f in ["min_stock_level", "max_stock_level"]:
        if f in data:
            setattr(product, f, parse_int(data[f], f, 0))
    if "supplier_id" in data:
        product.supplier_id = parse_int(data["supplier_id"], "supplier_id")
    if "is_active" in data:
        product.is_active = bool(data["is_active"])
    if (product.price or 0) < 0 or (product.cost_price or 0) < 0:
        raise HTTPException(status_code=400, detail="Prices cannot be negative")


@router.post("/products")
def create_product(data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    require_fields(data, "name", "sku")
    if db.query(Product).filter(Product.sku == data["sku"]).first():
        raise HTTPException(status_code=400, detail="SKU already exists")
    stock = parse_int(data.get("stock_quantity"), "stock_quantity", 0)
    if stock < 0:
        raise HTTPException(status_code=400, detail="Stock quantity cannot be negative")

    product = Product(price=0, cost_price=0, min_stock_level=0, max_stock_level=0,
                      unit_of_measure="pcs", is_active=True, stock_quantity=stock)
    _apply_product_fields(product, data)
    db.add(product)
    db.flush()
    if stock:
        db.add(StockMovement(product_id=product.id, movement_type=MovementType.IN, quantity=stock,
                             reference_type="opening", notes="Opening stock", created_by=user.id))
    _sync_alerts(db, product)
    commit_or_400(db, "create product")
    db.refresh(product)
    return _serialize_product(product)


@router.get("/products/{product_id}")
def get_product(product_id: int, user: User = Depends(sim_user), db: Session = Depends(get_db)):
    product = get_or_404(db, Product, product_id, "Product")
    movements = db.query(StockMovement).filter(
        StockMovement.product_id == product_id
    ).order_by(desc(StockMovement.created_at), desc(StockMovement.id)).limit(20).all()
    result = _serialize_product(product)
    result["movements"] = [_serialize_movement(m) for m in movements]
    return result


@router.put("/products/{product_id}")
def update_product(product_id: int, data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    product = get_or_404(db, Product, product_id, "Product")
    for f in ["name", "sku"]:
        if f in data:
            require_fields(data, f)
    if "sku" in data and db.query(Product).filter(Product.sku == data["sku"], Product.id != product_id).first():
        raise HTTPException(status_code=400, detail="SKU already exists")
    _apply_product_fields(product, data)
    _sync_alerts(db, product)
    commit_or_400(db, f"update product {product_id}")
    db.refresh(product)
    return _serialize_product(product)


@router.delete("/products/{product_id}")
def delete_product(product_id: int, user: User = Depends(sim_user), db: Session = Depends(get_db)):
    product = get_or_404(db, Product, product_id, "Product")
    product.is_active = False
    _sync_alerts(db, product)
    commit_or_400(db, f"deactivate product {product_id}")
    return {"ok": True, "deleted": product_id}


@router.get("/quotations")
def list_quotations(
    search: str = Query(None),
    status: str = Query(None),
    user: User = Depends(sim_user),
    db: Session = Depends(get_db)
):
    q = db.query(Quotation)
    if search:
        q = q.filter(search_filter(search, Quotation.quote_number, Quotation.customer_name, Quotation.customer_email))
    if status:
        q = q.filter(Quotation.status == parse_enum(QuotationStatus, status, "status"))
    quotations = q.order_by(desc(Quotation.created_at), desc(Quotation.id)).all()
    return [_serialize_quotation(x) for x in quotations]


def _apply_document_amounts(doc, data):
    for f in ["subtotal", "tax_amount", "discount_amount"]:
        if f in data:
            setattr(doc, f, parse_float(data[f], f, 0))
    if data.get("total_amount") not in (None, ""):
        doc.total_amount = parse_float(data["total_amount"], "total_amount", 0)
    elif any(f in data for f in ["subtotal", "tax_amount", "discount_amount"]):
        doc.total_amount = invoice_total(doc.subtotal, doc.tax_amount, doc.discount_amount)


def _apply_quotation_fields(quotation, data):
    for f in ["quote_number", "customer_name", "customer_email", "customer_phone", "customer_address", "notes"]:
        if f in data:
            setattr(quotation, f, data[f])
    for f in ["quote_date", "valid_until"]:
        if f in data:
            setattr(quotation, f, parse_date(data[f], f))
    if "status" in data:
        quotation.status = parse_enum(QuotationStatus, data["status"], "status", QuotationStatus.DRAFT)
    _apply_document_amounts(quotation, data)


@router.post("/quotations")
def create_quotation(data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    require_fields(data, "quote_number")
    quotation = Quotation(status=QuotationStatus.DRAFT, quote_date=date.today(),
                          subtotal=0, tax_amount=0, discount_amount=0, total_amount=0)
    _apply_quotation_fields(quotation, data)
    db.add(quotation)
    commit_or_400(db, "create quotation")
    db.refresh(quotation)
    return _serialize_quotation(quotation)


@router.put("/quotations/{quotation_id}")
def update_quotation(quotation_id: int, data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    quotation = get_or_404(db, Quotation, quotation_id, "Quotation")
    _apply_quotation_fields(quotation, data)
    commit_or_400(db, f"update quotation {quotation_id}")
    db.refresh(quotation)
    return _serialize_quotation(quotation)


@router.delete("/quotations/{quotation_id}")
def delete_quotation(quotation_id: int, user: User = Depends(sim_user), db: Session = Depends(get_db)):
    quotation = get_or_404(db, Quotation, quotation_id, "Quotation")
    db.delete(quotation)
    commit_or_400(db, f"delete quotation {quotation_id}")
    return {"ok": True, "deleted": quotation_id}


@router.get("/invoices")
def list_invoices(
    search: str = Query(None),
    status: str = Query(None),
    payment_status: str = Query(None),
    user: User = Depends(sim_user),
    db: Session = Depends(get_db)
):
    q = db.query(Invoice)
    if search:
        q = q.filter(search_filter(search, Invoice.invoice_number, Invoice.customer_name, Invoice.customer_email))
    if status:
        q = q.filter(Invoice.status == parse_enum(InvoiceStatus, status, "status"))
    if payment_status:
        q = q.filter(Invoice.payment_status == parse_enum(PaymentStatus, payment_status, "payment_status"))
    invoices = q.order_by(desc(Invoice.created_at), desc(Invoice.id)).all()
    return [_serialize_invoice(i) for i in invoices]


INVOICE_AMOUNT_FIELDS = ["subtotal", "tax_amount", "discount_amount", "total_amount", "paid_amount"]


def _apply_invoice_fields(invoice, data):
    for f in ["invoice_number", "customer_name", "customer_email", "customer_phone", "customer_address", "notes"]:
        if f in data:
            setattr(invoice, f, data[f])
    for f in ["invoice_date", "due_date"]:
        if f in data:
            setattr(invoice, f, parse_date(data[f], f))
    if "status" in data:
        invoice.status = parse_enum(InvoiceStatus, data["status"], "status", InvoiceStatus.DRAFT)
    _apply_document_amounts(invoice, data)
    if "paid_amount" in data:
        invoice.paid_amount = parse_float(data["paid_amount"], "paid_amount", 0)
    if "payment_status" in data:
        invoice.payment_status = parse_enum(PaymentStatus, data["payment_status"], "payment_status", PaymentStatus.PENDING)
    elif any(f in data for f in INVOICE_AMOUNT_FIELDS):
        if (invoice.paid_amount or 0) <= 0:
            invoice.payment_status = PaymentStatus.PENDING
        elif invoice.paid_amount < (invoice.total_amount or 0):
            invoice.payment_status = PaymentStatus.PARTIAL
        else:
            invoice.payment_status = PaymentStatus.PAID
    if (invoice.paid_amount or 0) < 0:
        raise HTTPException(status_code=400, detail="Paid amount cannot be negative")


@router.post("/invoices")
def create_invoice(data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    require_fields(data, "invoice_number")
    if db.query(Invoice).filter(Invoice.invoice_number == data["invoice_number"]).first():
        raise HTTPException(status_code=400, detail="Invoice number already exists")
    invoice = Invoice(status=InvoiceStatus.DRAFT, payment_status=PaymentStatus.PENDING, invoice_date=date.today(),
                      subtotal=0, tax_amount=0, discount_amount=0, total_amount=0, paid_amount=0)
    _apply_invoice_fields(invoice, data)
    db.add(invoice)
    commit_or_400(db, "create invoice")
    db.refresh(invoice)
    return _serialize_invoice(invoice)


@router.get("/invoices/{invoice_id}")
def get_invoice(invoice_id: int, user: User = Depends(sim_user), db: Session = Depends(get_db)):
    return _serialize_invoice(get_or_404(db, Invoice, invoice_id, "Invoice"))


@router.put("/invoices/{invoice_id}")
def update_invoice(invoice_id: int, data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    invoice = get_or_404(db, Invoice, invoice_id, "Invoice")
    _apply_invoice_fields(invoice, data)
    commit_or_400(db, f"update invoice {invoice_id}")
    db.refresh(invoice)
    return _serialize_invoice(invoice)


@router.delete("/invoices/{invoice_id}")
def delete_invoice(invoice_id: int, user: User = Depends(sim_user), db: Session = Depends(get_db)):
    invoice = get_or_404(db, Invoice, invoice_id, "Invoice")
    db.delete(invoice)
    commit_or_400(db, f"delete invoice {invoice_id}")
    return {"ok": True, "deleted": invoice_id}


@router.get("/purchase-orders")
def list_purchase_orders(
    search: str = Query(None),
    status: str = Query(None),
    supplier_id: int = Query(None),
    user: User = Depends(sim_user),
    db: Session = Depends(get_db)
):
    q = db.query(PurchaseOrder)
    if search:
        q = q.filter(search_filter(search, PurchaseOrder.po_number, PurchaseOrder.supplier_name))
    if status:
        q = q.filter(PurchaseOrder.status == parse_enum(PurchaseOrderStatus, status, "status"))
    if supplier_id:
        q = q.filter(PurchaseOrder.supplier_id == supplier_id)
    orders = q.order_by(desc(PurchaseOrder.created_at), desc(PurchaseOrder.id)).all()
    return [_serialize_purchase_order(po) for po in orders]


def _apply_purchase_order_fields(db: Session, po, data):
    for f in ["po_number", "supplier_name", "notes"]:
        if f in data:
            setattr(po, f, data[f])
    if "supplier_id" in data:
        po.supplier_id = parse_int(data["supplier_id"], "supplier_id")
        if po.supplier_id and not data.get("supplier_name"):
            supplier = get_or_404(db, Supplier, po.supplier_id, "Supplier")
            po.supplier_name = supplier.name
    for f in ["order_date", "expected_delivery_date"]:
        if f in data:
            setattr(po, f, parse_date(data[f], f))
    if "status" in data:
        po.status = parse_enum(PurchaseOrderStatus, data["status"], "status", PurchaseOrderStatus.DRAFT)
    for f in ["subtotal", "tax_amount"]:
        if f in data:
            setattr(po, f, parse_float(data[f], f, 0))
    if data.get("total_amount") not in (None, ""):
        po.total_amount = parse_float(data["total_amount"], "total_amount", 0)
    elif "subtotal" in data or "tax_amount" in data:
        po.total_amount = invoice_total(po.subtotal, po.tax_amount)


@router.post("/purchase-orders")
def create_purchase_order(data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    require_fields(data, "po_number")
    po = PurchaseOrder(status=PurchaseOrderStatus.DRAFT, order_date=date.today(), subtotal=0, tax_amount=0, total_amount=0)
    _apply_purchase_order_fields(db, po, data)
    db.add(po)
    commit_or_400(db, "create purchase order")
    db.refresh(po)
    return _serialize_purchase_order(po)


@router.put("/purchase-orders/{po_id}")
def update_purchase_order(po_id: int, data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    po = get_or_404(db, PurchaseOrder, po_id, "Purchase order")
    _apply_purchase_order_fields(db, po, data)
    commit_or_400(db, f"update purchase order {po_id}")
    db.refresh(po)
    return _serialize_purchase_order(po)


@router.delete("/purchase-orders/{po_id}")
def delete_purchase_order(po_id: int, user: User = Depends(sim_user), db: Session = Depends(get_db)):
    po = get_or_404(db, PurchaseOrder, po_id, "Purchase order")
    db.delete(po)
    commit_or_400(db, f"delete purchase order {po_id}")
    return {"ok": True, "deleted": po_id}


@router.get("/stock-movements")
def list_stock_movements(
    product_id: int = Query(None),
    movement_type: str = Query(None),
    user: User = Depends(sim_user),
    db: Session = Depends(get_db)
):
    q = db.query(StockMovement)
    if product_id:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type:
        q = q.filter(StockMovement.movement_type == parse_enum(MovementType, movement_type, "movement_type"))
    movements = q.order_by(desc(StockMovement.created_at), desc(StockMovement.id)).all()
    return [_serialize_movement(m) for m in movements]


@router.post("/stock-movements")
def create_stock_movement(data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    require_fields(data, "product_id", "movement_type", "quantity")
    product = get_or_404(db, Product, parse_int(data["product_id"], "product_id"), "Product")
    movement_type = parse_enum(MovementType, data["movement_type"], "movement_type")
    quantity = parse_int(data["quantity"], "quantity")
    if quantity == 0 or (movement_type != MovementType.ADJUSTMENT and quantity < 0):
        raise HTTPException(status_code=400, detail="Quantity must be positive")

    _apply_stock_change(db, product, movement_type, quantity)
    movement = StockMovement(
        product_id=product.id,
        movement_type=movement_type,
        quantity=quantity,
        reference_type=data.get("reference_type"),
        reference_id=parse_int(data.get("reference_id"), "reference_id"),
        notes=data.get("notes"),
        created_by=user.id,
    )
    db.add(movement)
    commit_or_400(db, f"record {movement_type.value} movement for product {product.id}")
    db.refresh(movement)
    return _serialize_movement(movement)


@router.delete("/stock-movements/{movement_id}")
def delete_stock_movement(movement_id: int, user: User = Depends(sim_user), db: Session = Depends(get_db)):
    movement = get_or_404(db, StockMovement, movement_id, "Stock movement")
    product = db.query(Product).filter(Product.id == movement.product_id).first()
    if product is not None:
        # stock must equal the net of the remaining movements
        _apply_stock_change(db, product, MovementType.ADJUSTMENT,
                            -_movement_delta(movement.movement_type, movement.quantity))
    db.delete(movement)
    commit_or_400(db, f"delete stock movement {movement_id}")
    return {"ok": True, "deleted": movement_id}


@router.post("/stock/adjust")
def adjust_stock(data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    require_fields(data, "product_id", "adjustment")
    product = get_or_404(db, Product, parse_int(data["product_id"], "product_id"), "Product")
    adjustment = parse_int(data["adjustment"], "adjustment")
    if adjustment == 0:
        raise HTTPException(status_code=400, detail="Adjustment cannot be zero")

    _apply_stock_change(db, product, MovementType.ADJUSTMENT, adjustment)
    db.add(StockMovement(
        product_id=product.id,
        movement_type=MovementType.ADJUSTMENT,
        quantity=adjustment,
        reference_type="manual_adjustment",
        notes=data.get("notes"),
        created_by=user.id,
    ))
    commit_or_400(db, f"adjust stock for product {product.id}")
    db.refresh(product)
    logger.info("Stock for %s adjusted by %d to %d", product.sku, adjustment, product.stock_quantity)
    return _serialize_product(product)


@router.get("/stock-alerts")
def list_stock_alerts(alert_type: str = Query(None), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    q = db.query(StockAlert).filter(StockAlert.is_active == True)
    if alert_type:
        q = q.filter(StockAlert.alert_type == parse_enum(AlertType, alert_type, "alert_type"))
    alerts = q.order_by(desc(StockAlert.created_at), desc(StockAlert.id)).all()
    return [_serialize_alert(a) for a in alerts]


@router.post("/stock-alerts")
def create_stock_alert(data: dict = Body(...), user: User = Depends(sim_user), db: Session = Depends(get_db)):
    require_fields(data, "product_id", "alert_type")
    product = get_or_404(db, Product, parse_int(data["product_id"], "product_id"), "Product")
    alert = StockAlert(
        product_id=product.id,
        alert_type=parse_enum(AlertType, data["alert_type"], "alert_type"),
        current_stock=product.stock_quantity or 0,
        threshold_value=parse_int(data.get("threshold_value"), "threshold_value", product.min_stock_level or 0),
        is_active=True,
    )
    db.add(alert)
    commit_or_400(db, "create stock alert")
    db.refresh(alert)
    return _serialize_alert(alert)


@router.post("/stock-alerts/refresh")
def refresh_stock_alerts(user: User = Depends(sim_user), db: Session = Depends(get_db)):
    products = db.query(Product).all()
    for p in products:
        _sync_alerts(db, p)
    commit_or_400(db, "refresh stock alerts")
    active = db.query(func.count(StockAlert.id)).filter(StockAlert.is_active == True).scalar() or 0
    return {"ok": True, "products_checked": len(products), "active_alerts": active}


@router.delete("/stock-alerts/{alert_id}")
def dismiss_stock_alert(alert_id: int, user: User = Depends(sim_user), db: Session = Depends(get_db)):
    alert = get_or_404(db, StockAlert, alert_id, "Stock alert")
    alert.is_active = False
    commit_or_400(db, f"dismiss stock alert {alert_id}")
    return {"ok": True, "deleted": alert_id}


@router.get("/recent-sales")
def get_recent_sales(user: User = Depends(sim_user), db: Session = Depends(get_db)):
    invoices = db.query(Invoice).order_by(desc(Invoice.created_at), desc(Invoice.id)).limit(5).all()
    return [_serialize_invoice(i) for i in invoices]


@router.get("/recent-alerts")
def get_recent_alerts(user: User = Depends(sim_user), db: Session = Depends(get_db)):
    alerts = db.query(StockAlert).filter(StockAlert.is_active == True).order_by(
        desc(StockAlert.created_at), desc(StockAlert.id)
    ).limit(5).all()
    if alerts:
        return [_serialize_alert(a) for a in alerts]

    low = db.query(Product).filter(
        Product.is_active == True,
        Product.stock_quantity <= Product.min_stock_level
    ).order_by(Product.stock_quantity).limit(5).all()
    result = []
    for p in low:
        alert_type = AlertType.OUT_OF_STOCK if (p.stock_quantity or 0) == 0 else AlertType.LOW_STOCK
        result.append({
            "id": None,
            "product_id": p.id,
            "product_name": p.name,
            "alert_type": alert_type.value,
            "current_stock": p.stock_quantity or 0,
            "threshold_value": p.min_stock_level or 0,
            "is_active": True,
            "severity": "critical" if alert_type == AlertType.OUT_OF_STOCK else "warning",
            "created_at": None,
        })
    return result


@router.get("/sales-analytics")
def get_sales_analytics(user: User = Depends(sim_user), db: Session = Depends(get_db)):
    total_revenue = db.query(func.coalesce(func.sum(Invoice.paid_amount), 0)).scalar() or 0
    total_invoices = db.query(func.count(Invoice.id)).scalar() or 0
    paid_invoices = db.query(func.count(Invoice.id)).filter(Invoice.payment_status == PaymentStatus.PAID).scalar() or 0
    outstanding = db.query(
        func.coalesce(func.sum(Invoice.total_amount - Invoice.paid_amount), 0)
    ).filter(Invoice.status != InvoiceStatus.CANCELLED).scalar() or 0

    return {
        "total_revenue": float(total_revenue),
        "total_invoices": total_invoices,
        "paid_invoices": paid_invoices,
        "outstanding_amount": round(float(outstanding), 2),
        "average_invoice_value": round(float(total_revenue) / paid_invoices, 2) if paid_invoices else 0,
    }


@router.get("/inventory-analytics")
def get_inventory_analytics(user: User = Depends(sim_user), db: Session = Depends(get_db)):
    total = db.query(func.count(Product.id)).scalar() or 0
    active = db.query(func.count(Product.id)).filter(Product.is_active == True).scalar() or 0
    low_stock = db.query(func.count(Product.id)).filter(
        Product.is_active == True,
        Product.stock_quantity <= Product.min_stock_level,
        Product.stock_quantity > 0
    ).scalar() or 0
    out_of_stock = db.query(func.count(Product.id)).filter(
        Product.is_active == True,
        Product.stock_quantity == 0
    ).scalar() or 0
    stock_value = db.query(
        func.coalesce(func.sum(Product.cost_price * Product.stock_quantity), 0)
    ).filter(Product.is_active == True).scalar() or 0

    categories = db.query(Product.category, func.count(Product.id)).filter(
        Product.is_active == True
    ).group_by(Product.category).all()

    return {
        "total_products": total,
        "active_products": active,
        "low_stock_products": low_stock,
        "out_of_stock_products": out_of_stock,
        "stock_value": round(float(stock_value), 2),
        "products_by_category": {c or "Uncategorized": n for c, n in categories},
    }
