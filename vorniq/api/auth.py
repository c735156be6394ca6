import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from vorniq.db.session import get_db
from vorniq.core.auth import hash_password, verify_password, create_access_token, get_current_user, user_permissions
from vorniq.models.models import User, AuditSeverity
from vorniq.schemas.schemas import LoginRequest, TokenResponse, UserWithRole, PasswordChange
from vorniq.services.audit import record_audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, request: Request, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not verify_password(data.password, user.hashed_password):
        logger.warning("Failed login for %s", data.email)
        record_audit(db, None, "login_failed", "auth", details=f"Failed login for {data.email}",
                     severity=AuditSeverity.MEDIUM, category="authentication", request=request)
        db.commit()
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    user.last_login = datetime.utcnow()
    record_audit(db, user, "login", "auth", resource_id=user.id, category="authentication", request=request)
    db.commit()

    token = create_access_token({"sub": str(user.id)})
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=UserWithRole)
def get_me(user: User = Depends(get_current_user)):
    return UserWithRole(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        is_active=user.is_active,
        last_login=user.last_login,
        created_at=user.created_at,
        role_id=user.role_id,
        role_name=user.role.name if user.role else None,
        permissions=user_permissions(user),
    )


@router.post("/change-password")
def change_password(data: PasswordChange, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not verify_password(data.current_password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if len(data.new_password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")
    user.hashed_password = hash_password(data.new_password)
    record_audit(db, user, "change_password", "users", resource_id=user.id,
                 severity=AuditSeverity.MEDIUM, category="authentication", request=request)
    db.commit()
    return {"ok": True}
