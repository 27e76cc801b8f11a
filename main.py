import os
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

import conversations
import ledger
from auth import (
    SessionManager,
    clear_session_cookie,
    current_user_id,
    get_sessions,
    get_storage,
    hash_password,
    session_token,
    set_session_cookie,
    verify_password,
)
from config import LOG_LEVEL, PORT, UPLOAD_DIR
from database import db
from errors import AppError, EmailAlreadyRegistered, InvalidCredentials, Unauthorized
from schemas import (
    LikeRequest,
    LikeResult,
    LoginRequest,
    Message,
    MessageRequest,
    PublicUser,
    UploadResult,
    UserCreate,
)
from storage import InMemoryStorage, MongoStorage, Storage
from uploads import ensure_upload_dir, save_image


def default_storage() -> Storage:
    if db is not None:
        return MongoStorage(db)
    logger.warning("DATABASE_URL not set, using in-memory storage; data is lost on restart")
    return InMemoryStorage()


def create_app(storage: Optional[Storage] = None, upload_dir: str = UPLOAD_DIR) -> FastAPI:
    app = FastAPI(title="Amour Dating API")
    app.state.storage = storage if storage is not None else default_storage()
    app.state.upload_dir = ensure_upload_dir(upload_dir)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    app.mount("/uploads", StaticFiles(directory=app.state.upload_dir), name="uploads")

    @app.get("/")
    def read_root():
        return {"message": "Dating API running"}

    @app.get("/test")
    def test_database(storage: Storage = Depends(get_storage)):
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": None,
            "connection_status": "Not Connected",
            "collections": []
        }
        if not isinstance(storage, MongoStorage):
            response["database"] = "⚠️  In-memory storage"
            return response
        try:
            response["database"] = "✅ Available"
            response["database_name"] = storage.db.name
            response["connection_status"] = "Connected"
            try:
                collections = storage.db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        except Exception as e:
            response["database"] = f"❌ Error: {str(e)[:50]}"
        return response

    # Auth

    @app.post("/api/auth/register", response_model=PublicUser)
    def register(payload: UserCreate, response: Response,
                 storage: Storage = Depends(get_storage), sessions: SessionManager = Depends(get_sessions)):
        if storage.get_user_by_email(payload.email):
            raise EmailAlreadyRegistered()
        fields = payload.model_dump()
        fields["password"] = hash_password(payload.password)
        user = storage.create_user(fields)
        set_session_cookie(response, sessions.open(user.id))
        logger.info(f"Registered user {user.id}")
        return user.public()

    @app.post("/api/auth/login", response_model=PublicUser)
    def login(payload: LoginRequest, response: Response,
              storage: Storage = Depends(get_storage), sessions: SessionManager = Depends(get_sessions)):
        if not payload.email or not payload.password:
            raise AppError("Email and password required")
        user = storage.get_user_by_email(payload.email)
        if not user or not verify_password(payload.password, user.password):
            raise InvalidCredentials()
        set_session_cookie(response, sessions.open(user.id))
        logger.info(f"User {user.id} logged in")
        return user.public()

    @app.get("/api/auth/me", response_model=PublicUser)
    def me(user_id: str = Depends(current_user_id), storage: Storage = Depends(get_storage)):
        user = storage.get_user(user_id)
        if not user:
            raise Unauthorized("Not authenticated")
        return user.public()

    @app.post("/api/auth/logout")
    def logout(request: Request, response: Response, sessions: SessionManager = Depends(get_sessions)):
        sessions.close(session_token(request))
        clear_session_cookie(response)
        return {"message": "Logged out"}

    # Profiles

    @app.get("/api/users", response_model=List[PublicUser])
    def list_users(user_id: str = Depends(current_user_id), storage: Storage = Depends(get_storage)):
        me = storage.get_user(user_id)
        if not me:
            raise Unauthorized()
        target_gender = "female" if me.gender == "male" else "male"
        return [u.public() for u in storage.get_users_by_gender(target_gender, me.id)]

    # Likes & matches

    @app.post("/api/likes", response_model=LikeResult)
    def like_user(payload: LikeRequest, user_id: str = Depends(current_user_id),
                  storage: Storage = Depends(get_storage)):
        return ledger.create_like(storage, user_id, payload.liked_id)

    @app.get("/api/matches", response_model=List[PublicUser])
    def get_matches(user_id: str = Depends(current_user_id), storage: Storage = Depends(get_storage)):
        return [u.public() for u in ledger.get_matches(storage, user_id)]

    # Messages

    @app.get("/api/messages/{other_id}", response_model=List[Message])
    def list_messages(other_id: str, user_id: str = Depends(current_user_id),
                      storage: Storage = Depends(get_storage)):
        return conversations.get_conversation(storage, user_id, other_id)

    @app.post("/api/messages", response_model=Message)
    def send_message(payload: MessageRequest, user_id: str = Depends(current_user_id),
                     storage: Storage = Depends(get_storage)):
        return conversations.create_message(
            storage,
            user_id,
            payload.receiver_id,
            message_type=payload.type,
            text=payload.text,
            image_url=payload.image_url,
        )

    @app.post("/api/uploads", response_model=UploadResult)
    def upload_image(request: Request, image: UploadFile = File(...), user_id: str = Depends(current_user_id)):
        return UploadResult(image_url=save_image(image, upload_dir=request.app.state.upload_dir))

    @app.get("/api/conversations", response_model=List[PublicUser])
    def list_conversations(user_id: str = Depends(current_user_id), storage: Storage = Depends(get_storage)):
        partner_ids = conversations.get_user_conversations(storage, user_id)
        return [u.public() for u in conversations.resolve_partners(storage, partner_ids)]

    return app


app = create_app()


if __name__ == "__main__":
    import sys

    import uvicorn

    logger.remove()
    logger.add(sys.stderr, level=LOG_LEVEL)
    uvicorn.run(app, host="0.0.0.0", port=PORT)
