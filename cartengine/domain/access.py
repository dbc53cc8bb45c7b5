# cartengine/domain/access.py
import uuid

from cartengine.domain.errors import AccessDeniedError


def is_owner(
    owner_user_id: uuid.UUID | None,
    owner_session_id: str | None,
    user_id: uuid.UUID | None,
    session_id: str | None,
) -> bool:
    """
    Koszyk / zamowienie uzytkownika: wymagany ten sam user_id.
    Koszyk goscia: wymagana ta sama sesja.
    """
    if owner_user_id is not None:
        return user_id is not None and user_id == owner_user_id
    return owner_session_id is not None and session_id == owner_session_id


def check_owner(resource, user_id: uuid.UUID | None, session_id: str | None, what: str) -> None:
    if not is_owner(resource.user_id, resource.session_id, user_id, session_id):
        raise AccessDeniedError(f"Access to this {what} is denied")
