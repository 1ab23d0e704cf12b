from typing import Annotated
from fastapi import APIRouter, HTTPException, status, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from querydash.core import schemas, models
from querydash.core.database import get_db
from querydash.core.security import (
    create_access_token,
    principal_dep,
    verify_password,
)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

db_dep = Annotated[AsyncSession, Depends(get_db)]


@router.post(
    "/login", response_model=schemas.TokenResponse, status_code=status.HTTP_200_OK
)
async def login(user_credentials: schemas.UserLogin, db: db_dep):
    query = select(models.User).where(models.User.email == user_credentials.email)
    result = await db.execute(query)
    db_user = result.scalars().first()

    if not db_user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User does not exist"
        )

    valid_user = verify_password(user_credentials.password, db_user.password_hash)

    if not valid_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect password"
        )
    # The token carries everything the verifier needs, no lookup per request
    token = create_access_token({"user_id": db_user.id, "email": db_user.email})
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=schemas.PrincipalResponse)
async def who_am_i(principal: principal_dep):
    return {"id": principal.id, "email": principal.email}
