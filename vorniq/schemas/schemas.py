from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import Optional


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserWithRole(UserResponse):
    role_id: Optional[int] = None
    role_name: Optional[str] = None
    permissions: list[str] = []


class PasswordChange(BaseModel):
    current_password: str
    new_password: str


class DemoRequestCreate(BaseModel):
    name: str
    email: EmailStr
    company: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    services: Optional[list[str]] = None


class DemoRequestResponse(BaseModel):
    id: int
    name: str
    email: str
    company: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    services: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PublicConfig(BaseModel):
    app_name: str
    payment_key_id: str


class DashboardKPIs(BaseModel):
    total_revenue: float
    total_expenses: float
    net_profit: float
    total_employees: int
    active_customers: int
    products_in_stock: int
    sales_growth: float
    profit_margin: float
