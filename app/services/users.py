"""Credential store: user lookups and writes."""

from sqlalchemy.orm import Session

from app.models.user import User


def find_by_email(db: Session, email: str) -> User | None:
    """Case-insensitive lookup; emails are stored lower-cased."""
    return db.query(User).filter(User.email == email.strip().lower()).first()


def find_by_id(db: Session, user_id: int) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def list_all(db: Session) -> list[User]:
    """All users, newest first (id breaks ties between rows created in the same instant)."""
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def insert(db: Session, user: User) -> User:
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def save(db: Session, user: User) -> User:
    db.commit()
    db.refresh(user)
    return user


def delete(db: Session, user: User) -> None:
    db.delete(user)
    db.commit()
