from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List

from . import models


class DuplicateKey(Exception):
    """A unique column rejected the insert."""


def get_user(db: Session, user_id: int) -> models.User | None:
    return db.get(models.User, user_id)


def get_user_by_username(db: Session, username: str) -> models.User | None:
    return db.execute(select(models.User).where(models.User.username == username)).scalar_one_or_none()


def create_user(db: Session, username: str, password_hash: str, is_seller: bool = False) -> models.User:
    db_user = models.User(username=username, password=password_hash, is_seller=is_seller)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateKey(username) from e
    db.refresh(db_user)
    return db_user


def get_order(db: Session, order_number: str) -> models.Order | None:
    return db.execute(select(models.Order).where(models.Order.order_number == order_number)).scalar_one_or_none()


def list_orders(db: Session, search: str | None = None) -> List[models.Order]:
    query = select(models.Order).order_by(models.Order.id)
    if search:
        # Parameterized, with LIKE wildcards in the term matched literally
        escaped = search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        query = query.where(func.lower(models.Order.order_number).like(f"%{escaped}%", escape="\\"))
    return list(db.execute(query).scalars().all())


def create_order(db: Session, order_number: str) -> models.Order:
    db_order = models.Order(order_number=order_number, has_uploaded=False)
    db.add(db_order)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateKey(order_number) from e
    db.refresh(db_order)
    return db_order


def mark_uploaded(db: Session, order_number: str, video_url: str, image_url: str, song_request: str) -> models.Order | None:
    """Flip a pending order to uploaded in one conditional UPDATE.

    Returns None when no pending order with that number exists, which covers
    both an unknown number and a concurrent upload that committed first.
    """
    result = db.execute(
        update(models.Order)
        .where(models.Order.order_number == order_number, models.Order.has_uploaded.is_(False))
        .values(video_url=video_url, image_url=image_url, song_request=song_request, has_uploaded=True)
        .execution_options(synchronize_session=False)
    )
    updated = result.rowcount
    db.commit()
    if updated != 1:
        return None
    return get_order(db, order_number)


def delete_uploaded_order(db: Session, order_number: str) -> bool:
    result = db.execute(
        delete(models.Order)
        .where(models.Order.order_number == order_number, models.Order.has_uploaded.is_(True))
        .execution_options(synchronize_session=False)
    )
    deleted = result.rowcount
    db.commit()
    return deleted == 1
