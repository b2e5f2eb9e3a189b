from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from marketplace_client.devserver.store import get_store_instance, InMemoryStore
from marketplace_client.devserver.security import (
    get_password_hash, verify_password, create_access_token, decode_access_token,
)

router = APIRouter(tags=["Authentication"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login")

PUBLIC_USER_FIELDS = ("id", "name", "email", "role", "profile_completed", "created_at")


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    password_confirmation: Optional[str] = None
    role: str


def public_user(record: Dict[str, Any]) -> Dict[str, Any]:
    return {key: record.get(key) for key in PUBLIC_USER_FIELDS}


def get_current_user(token: str = Depends(oauth2_scheme)) -> Dict[str, Any]:
    store: InMemoryStore = get_store_instance()

    user_id_from_token = decode_access_token(token)
    if not user_id_from_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthenticated.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = store.get("users", user_id_from_token)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthenticated.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_user(user_in: RegisterRequest):
    store: InMemoryStore = get_store_instance()

    # Field checks reported together, as a form would show them
    errors: Dict[str, list] = {}
    if "@" not in user_in.email:
        errors.setdefault("email", []).append("The email field must be a valid email address.")
    elif store.query(collection_name="users", field="email", operator="==", value=user_in.email):
        errors.setdefault("email", []).append("The email has already been taken.")
    if len(user_in.password) < 8:
        errors.setdefault("password", []).append("The password field must be at least 8 characters.")
    if user_in.password_confirmation != user_in.password:
        errors.setdefault("password", []).append("The password field confirmation does not match.")
    if user_in.role not in ("client", "freelancer"):
        errors.setdefault("role", []).append("The selected role is invalid.")
    if errors:
        return JSONResponse(status_code=422, content=errors)

    user_id = store.save(
        collection_name="users",
        data={
            "name": user_in.name,
            "email": user_in.email,
            "role": user_in.role,
            "profile_completed": False,
            "hashed_password": get_password_hash(user_in.password),
        },
    )
    store.save(collection_name="wallets", data={"user_id": user_id, "balance": 0.0}, document_id=user_id)

    user = store.get("users", user_id)
    return {
        "message": "User registered successfully!",
        "user": public_user(user),
        "access_token": create_access_token(user_id),
    }


@router.post("/login")
async def login_for_access_token(credentials: LoginRequest):
    store: InMemoryStore = get_store_instance()

    users_found = store.query(collection_name="users", field="email", operator="==", value=credentials.email)
    if not users_found or not verify_password(credentials.password, users_found[0].get("hashed_password", "")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid login details")

    user = users_found[0]
    return {
        "message": f"Welcome back, {user['name']}",
        "access_token": create_access_token(user["id"]),
        "user": public_user(user),
    }


@router.post("/logout")
async def logout(current_user: Dict[str, Any] = Depends(get_current_user)):
    # Tokens are derived from the user id, so there is nothing to revoke server-side
    return {"message": "Successfully logged out"}


@router.get("/user")
async def read_users_me(current_user: Dict[str, Any] = Depends(get_current_user)):
    return public_user(current_user)
