from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..auth import COOKIE_NAME, create_access_token, get_current_user, verify_password
from ..database import get_db
from ..models import User
from ..policy import capabilities
from ..schemas import LoginRequest, LoginResponse, MeResponse, UserResponse

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/login", response_model=LoginResponse)
def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    try:
        user = db.query(User).filter(func.lower(User.email) == data.email.lower()).first()
    except SQLAlchemyError:
        raise HTTPException(status_code=500, detail="Database unavailable. Try again.")

    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password.")

    token = create_access_token({"sub": str(user.id), "role": user.role}, request.app.state.settings)
    response.set_cookie(COOKIE_NAME, token, httponly=True, samesite="lax")
    return LoginResponse(
        access_token=token,
        user=UserResponse.model_validate(user),
        capabilities=capabilities(user.role),
    )


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(COOKIE_NAME)
    return {"message": "Logged out"}


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(user=UserResponse.model_validate(user), capabilities=capabilities(user.role))
