"""Copy request repository."""

from typing import List, Optional

from sqlalchemy import or_

from ..models import CopyRequest
from ..models.copy_request import PENDING
from ..exceptions import CopyRequestNotFoundError
from .base import BaseRepository


class CopyRequestRepository(BaseRepository[CopyRequest]):

    model_class = CopyRequest
    not_found_error = CopyRequestNotFoundError

    def find_pending(
        self, from_user_id: str, to_user_id: str, request_type: str, target_id: str
    ) -> Optional[CopyRequest]:
        return self.db.query(CopyRequest).filter(
            CopyRequest.from_user_id == from_user_id,
            CopyRequest.to_user_id == to_user_id,
            CopyRequest.request_type == request_type,
            CopyRequest.target_id == target_id,
            CopyRequest.status == PENDING,
        ).first()

    def lock(self, request_id: str) -> CopyRequest:
        request = (
            self.db.query(CopyRequest)
            .filter(CopyRequest.id == request_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if request is None:
            raise CopyRequestNotFoundError(request_id)
        return request

    def list_for_user(
        self,
        user_id: str,
        direction: str = "all",
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[List[CopyRequest], int]:
        """Requests sent by, received by, or involving *user_id*."""
        query = self.db.query(CopyRequest)
        if direction == "sent":
            query = query.filter(CopyRequest.from_user_id == user_id)
        elif direction == "received":
            query = query.filter(CopyRequest.to_user_id == user_id)
        else:
            query = query.filter(
                or_(CopyRequest.from_user_id == user_id, CopyRequest.to_user_id == user_id)
            )
        if status:
            query = query.filter(CopyRequest.status == status)
        total = query.count()
        rows = query.order_by(CopyRequest.created_at.desc(), CopyRequest.id).offset(skip).limit(limit).all()
        return rows, total
