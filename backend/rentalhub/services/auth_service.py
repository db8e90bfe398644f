"""Account lookup and password checks"""
from typing import Optional

import bcrypt
from sqlalchemy.orm import Session

from rentalhub.models.account import Account
from rentalhub.models.staff import Staff


def hash_password(password: str) -> str:
    """bcrypt hash"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def get_account_by_email(db: Session, email: str) -> Optional[Account]:
    return db.query(Account).filter(Account.email == email.lower()).first()


def get_account_by_id(db: Session, account_id: int) -> Optional[Account]:
    return db.query(Account).filter(Account.id == account_id).first()


def authenticate(db: Session, email: str, password: str) -> Optional[Account]:
    """None when the email is unknown or the password is wrong"""
    account = get_account_by_email(db, email)
    if not account or not verify_password(password, account.password_hash):
        return None
    return account


def resolve_landlord_id(db: Session, account: Account) -> Optional[int]:
    """Landlord whose plan covers this account: itself, or a staff member's employer"""
    if account.role == "landlord":
        return account.id
    if account.role == "staff":
        staff = db.query(Staff).filter(Staff.account_id == account.id).first()
        return staff.landlord_id if staff else None
    return None
