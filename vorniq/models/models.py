from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Text, Date, DateTime, ForeignKey,
    Enum as SAEnum, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from vorniq.models.base import Base
import enum

__all__ = [
    "Priority", "LeadStage", "FollowUpStatus", "CommunicationDirection",
    "CommunicationStatus", "Customer", "Lead", "FollowUp", "Communication",
    "EmployeeStatus", "AttendanceStatus", "LeaveStatus", "PayrollStatus",
    "PositionStatus", "ApplicationStage", "ReviewStatus",
    "Employee", "Attendance", "LeaveRequest", "Payroll", "JobPosition",
    "JobApplication", "PerformanceReview",
    "QuotationStatus", "InvoiceStatus", "PaymentStatus", "PurchaseOrderStatus",
    "MovementType", "AlertType", "Supplier", "Product", "Quotation", "Invoice",
    "PurchaseOrder", "StockMovement", "StockAlert",
    "RevenueStatus", "ExpenseStatus", "TransactionType", "BookSource",
    "ReminderType", "ReminderStatus", "Revenue", "Expense", "BankAccount",
    "BankTransaction", "PaymentReminder", "TaxSetting", "TaxCalculation",
    "AuditSeverity", "Role", "Permission", "RolePermission", "User", "AuditLog",
    "DemoRequest",
]


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LeadStage(str, enum.Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class FollowUpStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CommunicationDirection(str, enum.Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class CommunicationStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    FAILED = "failed"


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"
    TERMINATED = "terminated"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    HALF_DAY = "half_day"
    LEAVE = "leave"


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PayrollStatus(str, enum.Enum):
    DRAFT = "draft"
    PROCESSED = "processed"
    PAID = "paid"


class PositionStatus(str, enum.Enum):
    DRAFT = "draft"
    OPEN = "open"
    CLOSED = "closed"


class ApplicationStage(str, enum.Enum):
    APPLIED = "applied"
    SCREENING = "screening"
    INTERVIEW = "interview"
    OFFER = "offer"
    HIRED = "hired"
    REJECTED = "rejected"


class ReviewStatus(str, enum.Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ACKNOWLEDGED = "acknowledged"


class QuotationStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class PurchaseOrderStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class MovementType(str, enum.Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"


class AlertType(str, enum.Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    OVERSTOCK = "overstock"


class RevenueStatus(str, enum.Enum):
    PENDING = "pending"
    RECEIVED = "received"


class ExpenseStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransactionType(str, enum.Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class BookSource(str, enum.Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"


class ReminderType(str, enum.Enum):
    RECEIVABLE = "receivable"
    PAYABLE = "payable"


class ReminderStatus(str, enum.Enum):
    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"


class AuditSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# CRM

class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    company = Column(String(255), nullable=True)
    job_title = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    website = Column(String(500), nullable=True)
    source = Column(String(100), nullable=True)
    tags = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_customers_email", "email"),
    )


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    company = Column(String(255), nullable=True)
    job_title = Column(String(255), nullable=True)
    source = Column(String(100), nullable=True)
    value = Column(Float, default=0)
    probability = Column(Integer, default=0)
    stage = Column(SAEnum(LeadStage, name="lead_stage_enum"), nullable=False, default=LeadStage.NEW)
    assigned_to = Column(String(255), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    next_follow_up = Column(Date, nullable=True)
    tags = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer")

    __table_args__ = (
        Index("idx_leads_stage", "stage"),
    )


class FollowUp(Base):
    __tablename__ = "follow_ups"

    id = Column(Integer, primary_key=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=True)
    title = Column(String(255), nullable=False)
    type = Column(String(50), nullable=True, default="call")
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=False)
    status = Column(SAEnum(FollowUpStatus, name="follow_up_status_enum"), nullable=False, default=FollowUpStatus.PENDING)
    priority = Column(SAEnum(Priority, name="priority_enum"), nullable=False, default=Priority.MEDIUM)
    assigned_to = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lead = relationship("Lead")
    customer = relationship("Customer")


class Communication(Base):
    __tablename__ = "communications"

    id = Column(Integer, primary_key=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=True)
    type = Column(String(50), nullable=False, default="email")
    subject = Column(String(500), nullable=True)
    content = Column(Text, nullable=True)
    direction = Column(SAEnum(CommunicationDirection, name="communication_direction_enum"), nullable=False, default=CommunicationDirection.OUTGOING)
    scheduled_at = Column(DateTime, nullable=True)
    status = Column(SAEnum(CommunicationStatus, name="communication_status_enum"), nullable=False, default=CommunicationStatus.COMPLETED)
    created_at = Column(DateTime, default=datetime.utcnow)


# HRM

class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True)
    employee_id = Column(String(50), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    hire_date = Column(Date, nullable=True)
    department = Column(String(100), nullable=True)
    position = Column(String(255), nullable=True)
    salary = Column(Float, nullable=True)
    employment_type = Column(String(50), nullable=False, default="full-time")
    status = Column(SAEnum(EmployeeStatus, name="employee_status_enum"), nullable=False, default=EmployeeStatus.ACTIVE)
    manager_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    address = Column(Text, nullable=True)
    emergency_contact_name = Column(String(255), nullable=True)
    emergency_contact_phone = Column(String(50), nullable=True)
    photo_url = Column(String(1000), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    manager = relationship("Employee", remote_side=[id])

    __table_args__ = (
        Index("idx_employees_department", "department"),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class Attendance(Base):
    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    clock_in_time = Column(DateTime, nullable=True)
    clock_out_time = Column(DateTime, nullable=True)
    break_duration_minutes = Column(Integer, default=0)
    total_hours = Column(Float, nullable=True)
    status = Column(SAEnum(AttendanceStatus, name="attendance_status_enum"), nullable=False, default=AttendanceStatus.PRESENT)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    employee = relationship("Employee")

    __table_args__ = (
        Index("idx_attendance_date", "date"),
    )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    leave_type = Column(String(50), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Integer, nullable=False, default=1)
    reason = Column(Text, nullable=True)
    status = Column(SAEnum(LeaveStatus, name="leave_status_enum"), nullable=False, default=LeaveStatus.PENDING)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    employee = relationship("Employee")


class Payroll(Base):
    __tablename__ = "payroll"

    id = Column(Integer, primary_key=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    pay_period_start = Column(Date, nullable=False)
    pay_period_end = Column(Date, nullable=False)
    base_salary = Column(Float, nullable=False, default=0)
    overtime_hours = Column(Float, default=0)
    overtime_rate = Column(Float, default=0)
    bonus = Column(Float, default=0)
    deductions = Column(Float, default=0)
    gross_pay = Column(Float, default=0)
    tax_deduction = Column(Float, default=0)
    net_pay = Column(Float, default=0)
    status = Column(SAEnum(PayrollStatus, name="payroll_status_enum"), nullable=False, default=PayrollStatus.DRAFT)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    employee = relationship("Employee")


class JobPosition(Base):
    __tablename__ = "job_positions"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    department = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    requirements = Column(Text, nullable=True)
    salary_min = Column(Float, nullable=True)
    salary_max = Column(Float, nullable=True)
    employment_type = Column(String(50), default="full-time")
    location = Column(String(255), nullable=True)
    status = Column(SAEnum(PositionStatus, name="position_status_enum"), nullable=False, default=PositionStatus.OPEN)
    posted_date = Column(Date, nullable=True)
    closing_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    applications = relationship("JobApplication", back_populates="position", cascade="all, delete-orphan")


class JobApplication(Base):
    __tablename__ = "job_applications"

    id = Column(Integer, primary_key=True)
    position_id = Column(Integer, ForeignKey("job_positions.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    resume_url = Column(String(1000), nullable=True)
    cover_letter = Column(Text, nullable=True)
    experience_years = Column(Integer, nullable=True)
    current_salary = Column(Float, nullable=True)
    expected_salary = Column(Float, nullable=True)
    stage = Column(SAEnum(ApplicationStage, name="application_stage_enum"), nullable=False, default=ApplicationStage.APPLIED)
    interview_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    position = relationship("JobPosition", back_populates="applications")


class PerformanceReview(Base):
    __tablename__ = "performance_reviews"

    id = Column(Integer, primary_key=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    reviewer_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    review_period_start = Column(Date, nullable=False)
    review_period_end = Column(Date, nullable=False)
    goals_achieved = Column(Text, nullable=True)
    areas_improvement = Column(Text, nullable=True)
    strengths = Column(Text, nullable=True)
    overall_rating = Column(Integer, nullable=True)
    performance_score = Column(Float, nullable=True)
    salary_recommendation = Column(Float, nullable=True)
    promotion_eligible = Column(Boolean, default=False)
    status = Column(SAEnum(ReviewStatus, name="review_status_enum"), nullable=False, default=ReviewStatus.DRAFT)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    employee = relationship("Employee", foreign_keys=[employee_id])
    reviewer = relationship("Employee", foreign_keys=[reviewer_id])


# Sales and inventory

class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    contact_person = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    city = Column(String(100), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    price = Column(Float, default=0)
    cost_price = Column(Float, default=0)
    stock_quantity = Column(Integer, default=0)
    min_stock_level = Column(Integer, default=0)
    max_stock_level = Column(Integer, default=0)
    unit_of_measure = Column(String(20), default="pcs")
    is_active = Column(Boolean, default=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    supplier = relationship("Supplier")

    __table_args__ = (
        Index("idx_products_category", "category"),
    )


class Quotation(Base):
    __tablename__ = "quotations"

    id = Column(Integer, primary_key=True)
    quote_number = Column(String(50), unique=True, nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_address = Column(Text, nullable=True)
    quote_date = Column(Date, nullable=True)
    valid_until = Column(Date, nullable=True)
    subtotal = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    discount_amount = Column(Float, default=0)
    total_amount = Column(Float, default=0)
    status = Column(SAEnum(QuotationStatus, name="quotation_status_enum"), nullable=False, default=QuotationStatus.DRAFT)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String(50), unique=True, nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_address = Column(Text, nullable=True)
    invoice_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    subtotal = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    discount_amount = Column(Float, default=0)
    total_amount = Column(Float, default=0)
    paid_amount = Column(Float, default=0)
    status = Column(SAEnum(InvoiceStatus, name="sales_invoice_status_enum"), nullable=False, default=InvoiceStatus.DRAFT)
    payment_status = Column(SAEnum(PaymentStatus, name="payment_status_enum"), nullable=False, default=PaymentStatus.PENDING)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_invoices_date", "invoice_date"),
    )


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True)
    po_number = Column(String(50), unique=True, nullable=False)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    supplier_name = Column(String(255), nullable=True)
    order_date = Column(Date, nullable=True)
    expected_delivery_date = Column(Date, nullable=True)
    subtotal = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    total_amount = Column(Float, default=0)
    status = Column(SAEnum(PurchaseOrderStatus, name="purchase_order_status_enum"), nullable=False, default=PurchaseOrderStatus.DRAFT)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    supplier = relationship("Supplier")


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    movement_type = Column(SAEnum(MovementType, name="movement_type_enum"), nullable=False)
    quantity = Column(Integer, nullable=False)
    reference_type = Column(String(50), nullable=True)
    reference_id = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product")


class StockAlert(Base):
    __tablename__ = "stock_alerts"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    alert_type = Column(SAEnum(AlertType, name="alert_type_enum"), nullable=False)
    current_stock = Column(Integer, default=0)
    threshold_value = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product")


# Accounting

class Revenue(Base):
    __tablename__ = "revenue"

    id = Column(Integer, primary_key=True)
    source = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False)
    date = Column(Date, nullable=False)
    payment_method = Column(String(50), nullable=True)
    status = Column(SAEnum(RevenueStatus, name="revenue_status_enum"), nullable=False, default=RevenueStatus.RECEIVED)
    is_reconciled = Column(Boolean, default=False)
    matched_bank_transaction_id = Column(Integer, ForeignKey("bank_transactions.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_revenue_date", "date"),
    )


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True)
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False)
    date = Column(Date, nullable=False)
    payment_method = Column(String(50), nullable=True)
    status = Column(SAEnum(ExpenseStatus, name="expense_status_enum"), nullable=False, default=ExpenseStatus.APPROVED)
    is_reconciled = Column(Boolean, default=False)
    matched_bank_transaction_id = Column(Integer, ForeignKey("bank_transactions.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_expenses_date", "date"),
    )


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    account_number = Column(String(100), nullable=True)
    bank_name = Column(String(255), nullable=True)
    current_balance = Column(Float, default=0)
    reconciled_balance = Column(Float, default=0)
    last_reconciled = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    transactions = relationship("BankTransaction", back_populates="account", cascade="all, delete-orphan")


class BankTransaction(Base):
    __tablename__ = "bank_transactions"

    id = Column(Integer, primary_key=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False)
    type = Column(SAEnum(TransactionType, name="transaction_type_enum"), nullable=False)
    balance = Column(Float, nullable=True)
    is_reconciled = Column(Boolean, default=False)
    matched_book_source = Column(SAEnum(BookSource, name="book_source_enum"), nullable=True)
    matched_book_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    account = relationship("BankAccount", back_populates="transactions")


class PaymentReminder(Base):
    __tablename__ = "payment_reminders"

    id = Column(Integer, primary_key=True)
    type = Column(SAEnum(ReminderType, name="reminder_type_enum"), nullable=False, default=ReminderType.RECEIVABLE)
    customer_vendor_name = Column(String(255), nullable=False)
    reference_type = Column(String(50), nullable=True)
    reference_id = Column(Integer, nullable=True)
    amount = Column(Float, nullable=False)
    due_date = Column(Date, nullable=False)
    reminder_date = Column(Date, nullable=True)
    status = Column(SAEnum(ReminderStatus, name="reminder_status_enum"), nullable=False, default=ReminderStatus.PENDING)
    priority = Column(SAEnum(Priority, name="priority_enum"), nullable=False, default=Priority.MEDIUM)
    notes = Column(Text, nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class TaxSetting(Base):
    __tablename__ = "tax_settings"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    rate = Column(Float, nullable=False)
    type = Column(String(50), nullable=False, default="GST")
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class TaxCalculation(Base):
    __tablename__ = "tax_calculations"

    id = Column(Integer, primary_key=True)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False)
    tax_type = Column(String(50), nullable=True)
    tax_rate = Column(Float, nullable=False)
    tax_amount = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    date = Column(Date, nullable=True)
    category = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# Roles and users

class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    permissions = relationship("Permission", secondary="role_permissions", back_populates="roles")
    users = relationship("User", back_populates="role")


class Permission(Base):
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    module = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)
    resource = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    roles = relationship("Role", secondary="role_permissions", back_populates="permissions")


class RolePermission(Base):
    __tablename__ = "role_permissions"

    id = Column(Integer, primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    role = relationship("Role", back_populates="users")

    @property
    def full_name(self):
        return " ".join(p for p in [self.first_name, self.last_name] if p) or self.username


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    user_email = Column(String(255), nullable=True)
    action = Column(String(100), nullable=False)
    resource = Column(String(100), nullable=False)
    resource_id = Column(String(100), nullable=True)
    details = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    severity = Column(SAEnum(AuditSeverity, name="audit_severity_enum"), nullable=False, default=AuditSeverity.LOW)
    category = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")

    __table_args__ = (
        Index("idx_audit_created", "created_at"),
        Index("idx_audit_resource", "resource", "resource_id"),
    )


class DemoRequest(Base):
    __tablename__ = "demo_requests"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    company = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    message = Column(Text, nullable=True)
    services = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
