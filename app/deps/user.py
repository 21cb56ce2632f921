from fastapi import Depends, Header, HTTPException


def get_current_user_id(
    x_user_id: int | None = Header(default=None, alias="X-User-Id"),
) -> int:
    if x_user_id is None:
        raise HTTPException(
            status_code=401,
            detail="Missing caller identity. Provide X-User-Id header.",
        )
    return x_user_id


def require_admin(
    user_id: int = Depends(get_current_user_id),
    x_user_role: str | None = Header(default=None, alias="X-User-Role"),
) -> int:
    if (x_user_role or "").lower() != "admin":
        raise HTTPException(status_code=403, detail="Not authorized")
    return user_id
