from fastapi import Header, HTTPException, status


async def get_actor(x_actor: str = Header(None, alias="X-Actor")) -> str:
    """Caller identity recorded as created_by / applied_by / changed_by on mutations."""
    if x_actor is None or not x_actor.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Actor header is required",
        )
    return x_actor.strip()
