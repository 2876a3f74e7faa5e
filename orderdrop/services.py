"""Order service and upload handler.

Functions take their collaborators (SQLAlchemy session, blob store, limits)
as arguments and raise ``errors.*``; the HTTP layer only translates.
"""
import logging
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from . import crud, errors, models
from .auth import hash_password, verify_password
from .blob import BlobStore, blob_key
from .utils import human_size, sanitize_input

logger = logging.getLogger(__name__)

MAX_SONG_REQUEST_LENGTH = 2000


class IncomingFile(NamedTuple):
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes


class UploadLimits(NamedTuple):
    max_video_bytes: int = 100 * 1024 * 1024
    max_image_bytes: int = 10 * 1024 * 1024


def require_seller(user: Optional[models.User]) -> models.User:
    if user is None or not user.is_seller:
        raise errors.Forbidden("Unauthorized")
    return user


def create_order(db: Session, seller: Optional[models.User], order_number: str) -> models.Order:
    require_seller(seller)
    if crud.get_order(db, order_number) is not None:
        raise errors.Conflict("Order number already exists")
    try:
        order = crud.create_order(db, order_number)
    except crud.DuplicateKey as e:
        # Lost a race with a concurrent create of the same number
        raise errors.Conflict("Order number already exists") from e
    logger.info("Order %s created by %s", order_number, seller.username)
    return order


def get_order(db: Session, order_number: str) -> models.Order:
    order = crud.get_order(db, order_number)
    if order is None:
        raise errors.NotFound("Order not found")
    return order


def verify_order(db: Session, order_number: str) -> models.Order:
    """Customer pre-check: the order exists and still accepts an upload."""
    order = get_order(db, order_number)
    if order.has_uploaded:
        raise errors.Conflict("Files have already been uploaded for this order")
    return order


def list_orders(db: Session, seller: Optional[models.User], search: Optional[str] = None) -> List[models.Order]:
    require_seller(seller)
    return crud.list_orders(db, search=(search or "").strip() or None)


def update_order(db: Session, order_number: str, video_url: str, image_url: str, song_request: str) -> models.Order:
    """Record an upload: all three fields and the uploaded flag in one conditional write.

    Only a pending order matches; anything else raises NotFound or Conflict.
    """
    if not (video_url and image_url and song_request):
        raise errors.ValidationError("An upload needs a video URL, an image URL and a song request")
    order = crud.mark_uploaded(db, order_number, video_url=video_url, image_url=image_url, song_request=song_request)
    if order is None:
        verify_order(db, order_number)
        raise errors.Conflict("Files have already been uploaded for this order")
    return order


def delete_order(db: Session, seller: Optional[models.User], order_number: str) -> None:
    require_seller(seller)
    if crud.delete_uploaded_order(db, order_number):
        logger.info("Order %s deleted by %s", order_number, seller.username)
        return
    if crud.get_order(db, order_number) is None:
        raise errors.NotFound("Order not found")
    raise errors.Conflict("Cannot delete orders that haven't been uploaded yet")


def _check_file(file: Optional[IncomingFile], kind: str, limit: int) -> IncomingFile:
    if file is None or not file.data:
        raise errors.ValidationError(f"The {kind} file is required")
    if len(file.data) > limit:
        raise errors.FileTooLarge(f"The {kind} file must be under {human_size(limit)}")
    return file


def upload_files(
    db: Session,
    blob_store: BlobStore,
    order_number: str,
    video: Optional[IncomingFile],
    image: Optional[IncomingFile],
    song_request: Optional[str],
    limits: UploadLimits = UploadLimits(),
) -> models.Order:
    """Store both files and flip the order to uploaded.

    The order row is written once, after both puts succeeded, by a
    conditional update that only matches a pending order.
    """
    verify_order(db, order_number)

    video = _check_file(video, "video", limits.max_video_bytes)
    image = _check_file(image, "image", limits.max_image_bytes)
    song_request = sanitize_input(song_request)
    if not song_request:
        raise errors.ValidationError("Song request is required")
    if len(song_request) > MAX_SONG_REQUEST_LENGTH:
        raise errors.ValidationError(f"Song request must be at most {MAX_SONG_REQUEST_LENGTH} characters")

    stored = []
    try:
        for kind, file in (("video", video), ("image", image)):
            result = blob_store.put(blob_key(order_number, kind, file.filename), file.data,
                                    content_type=file.content_type, access="public")
            stored.append(result.url)
    except Exception as e:
        logger.exception("File upload failed for order %s", order_number)
        _discard_blobs(blob_store, stored)
        raise errors.StorageFailure("Failed to upload files") from e

    video_url, image_url = stored
    try:
        order = update_order(db, order_number, video_url=video_url, image_url=image_url, song_request=song_request)
    except (errors.NotFound, errors.Conflict):
        logger.warning("Upload for order %s lost to a concurrent change", order_number)
        _discard_blobs(blob_store, stored)
        raise

    logger.info("Order %s uploaded (video %s, image %s)", order_number,
                human_size(len(video.data)), human_size(len(image.data)))
    return order


def _discard_blobs(blob_store: BlobStore, urls: List[str]) -> None:
    if not urls:
        return
    try:
        blob_store.delete(urls)
    except errors.StorageFailure:
        logger.warning("Could not remove orphaned blobs %s", urls)


def register_user(db: Session, username: str, password: str, is_seller: bool = False) -> models.User:
    if crud.get_user_by_username(db, username) is not None:
        raise errors.Conflict("Username already exists")
    try:
        user = crud.create_user(db, username, hash_password(password), is_seller=is_seller)
    except crud.DuplicateKey as e:
        raise errors.Conflict("Username already exists") from e
    logger.info("Registered %s %s", "seller" if is_seller else "user", username)
    return user


def authenticate(db: Session, username: str, password: str) -> models.User:
    user = crud.get_user_by_username(db, username)
    if user is None or not verify_password(password, user.password):
        logger.warning("Rejected login for %s", username)
        raise errors.AuthenticationFailed("Invalid username or password")
    return user
