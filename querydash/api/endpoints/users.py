import logging
from typing import Annotated
from fastapi import APIRouter, HTTPException, status, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from querydash.core import schemas, models
from querydash.core.database import get_db
from querydash.core.security import hash_password, is_strong_password, sanitize_input

router = APIRouter(prefix="/api/auth", tags=["Users"])

db_dep = Annotated[AsyncSession, Depends(get_db)]


# Add user
@router.post(
    "/signup",
    response_model=schemas.UserResponse,
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(user: schemas.CreateUser, db: db_dep):
    strong, message = is_strong_password(user.password)
    if not strong:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)

    # Validate whether a user already exists
    query = select(models.User).where(models.User.email == user.email)
    result = await db.execute(query)
    db_user = result.scalars().first()

    if db_user:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="User already exists"
        )

    # Hash the password and add new user to the db
    try:
        new_user = models.User(
            email=user.email,
            password_hash=hash_password(user.password),
            name=sanitize_input(user.name) if user.name else None,
        )
        db.add(new_user)
        await db.commit()
        await db.refresh(new_user)
        return new_user
    except Exception as error:
        await db.rollback()
        logging.error(f"Failed to add a new user: {error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to sign up",
        )
