import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session
from cartengine.data.models.user import UserModel


class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: uuid.UUID) -> UserModel | None:
        return self.db.get(UserModel, user_id)

    def list_admin_ids(self) -> list[uuid.UUID]:
        return list(
            self.db.execute(
                select(UserModel.id).where(UserModel.is_admin.is_(True), UserModel.is_active.is_(True))
            ).scalars()
        )

    def is_admin(self, user_id: uuid.UUID) -> bool:
        user = self.get_user(user_id)
        return bool(user and user.is_admin)
