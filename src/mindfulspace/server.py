"""HTTP surface: entities, accounts, conversations and the chat proxy."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from . import MindfulSpace
from .config import Settings, get_settings
from .errors import StorageError, UpstreamServiceError, ValidationError
from .models import User

logger = logging.getLogger(__name__)


# --- Request bodies ---
class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ConversationCreate(BaseModel):
    metadata: Optional[Any] = None


class ProxyChatRequest(BaseModel):
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    model: Optional[str] = None
    temperature: Optional[float] = None


class CompanionChatRequest(BaseModel):
    message: str
    history: List[Dict[str, Any]] = Field(default_factory=list)
    language: str = "es"
    conversation_id: Optional[str] = None


# --- Dependencies ---
def get_space(request: Request) -> MindfulSpace:
    return request.app.state.space


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def current_user(
    token: Optional[str] = Depends(bearer_token),
    space: MindfulSpace = Depends(get_space),
) -> User:
    if token is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = await space.accounts.authenticate(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user


def _collection(space: MindfulSpace, entity_type: str):
    if not space.entities.is_registered(entity_type):
        raise HTTPException(status_code=404, detail="Unknown entity type")
    return space.entity(entity_type)


def create_app(
    space: Optional[MindfulSpace] = None, settings: Optional[Settings] = None
) -> FastAPI:
    """Builds the FastAPI application around ``space``.

    When ``space`` is omitted it is built from ``settings`` (or the
    environment, when those are omitted too).
    """
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name)
    app.state.space = space if space is not None else MindfulSpace.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def http_error(_request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(ValidationError)
    async def validation_error(_request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error(_request: Request, exc: StorageError):
        logger.error("Storage failure: %s", exc)
        return JSONResponse(status_code=503, content={"error": str(exc)})

    @app.exception_handler(UpstreamServiceError)
    async def upstream_error(_request: Request, exc: UpstreamServiceError):
        return JSONResponse(status_code=502, content={"error": str(exc)})

    # --- Health ---
    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "MindfulSpace AI proxy running"

    @app.get("/health")
    async def health(space: MindfulSpace = Depends(get_space)):
        users = await space.accounts.users.read() or []
        conversations = await space.conversations.list()
        return {"status": "ok", "users": len(users), "conversations": len(conversations)}

    # --- Auth ---
    @app.post("/auth/register")
    async def register(body: RegisterRequest, space: MindfulSpace = Depends(get_space)):
        user, token = await space.accounts.register(body.email, body.password, body.full_name)
        return {"user": user.public(), "token": token}

    @app.post("/auth/login")
    async def login(body: LoginRequest, space: MindfulSpace = Depends(get_space)):
        result = await space.accounts.login(body.email, body.password)
        if result is None:
            raise HTTPException(status_code=401, detail="Invalid credentials")
        user, token = result
        return {"user": user.public(), "token": token}

    @app.post("/auth/google")
    async def google(
        identity: Dict[str, Any] = Body(...), space: MindfulSpace = Depends(get_space)
    ):
        user, token, is_new = await space.accounts.login_with_identity(identity)
        return {"user": user.public(), "token": token, "isNewUser": is_new}

    @app.get("/auth/me")
    async def me(user: User = Depends(current_user)):
        return user.public()

    @app.put("/auth/me")
    async def update_me(
        data: Dict[str, Any] = Body(...),
        token: Optional[str] = Depends(bearer_token),
        _user: User = Depends(current_user),
        space: MindfulSpace = Depends(get_space),
    ):
        user = await space.accounts.update_user(token, data)
        if user is None:
            raise HTTPException(status_code=401, detail="Invalid token")
        return user.public()

    @app.post("/auth/logout")
    async def logout(
        token: Optional[str] = Depends(bearer_token),
        space: MindfulSpace = Depends(get_space),
    ):
        if token is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return {"revoked": await space.accounts.revoke(token)}

    # --- Entities ---
    @app.get("/entities/{entity_type}")
    async def list_entities(
        entity_type: str,
        order_by: Optional[str] = None,
        space: MindfulSpace = Depends(get_space),
    ):
        items = await _collection(space, entity_type).list(order_by)
        return [item.to_document() for item in items]

    @app.post("/entities/{entity_type}")
    async def create_entity(
        entity_type: str,
        data: Dict[str, Any] = Body(...),
        space: MindfulSpace = Depends(get_space),
    ):
        entity = await _collection(space, entity_type).create(data)
        return entity.to_document()

    @app.put("/entities/{entity_type}/{entity_id}")
    async def update_entity(
        entity_type: str,
        entity_id: str,
        data: Dict[str, Any] = Body(...),
        space: MindfulSpace = Depends(get_space),
    ):
        entity = await _collection(space, entity_type).update(entity_id, data)
        if entity is None:
            raise HTTPException(status_code=404, detail="Not found")
        return entity.to_document()

    # --- Conversations ---
    @app.get("/agents/{agent_name}/conversations")
    async def list_conversations(agent_name: str, space: MindfulSpace = Depends(get_space)):
        conversations = await space.conversations.list(agent_name=agent_name)
        return [c.model_dump(mode="json") for c in conversations]

    @app.post("/agents/{agent_name}/conversations")
    async def create_conversation(
        agent_name: str,
        body: Optional[ConversationCreate] = None,
        space: MindfulSpace = Depends(get_space),
    ):
        metadata = body.metadata if body is not None else None
        conversation = await space.conversations.create(metadata, agent_name=agent_name)
        return conversation.model_dump(mode="json")

    @app.get("/conversations/{conversation_id}")
    async def get_conversation(conversation_id: str, space: MindfulSpace = Depends(get_space)):
        conversation = await space.conversations.find(conversation_id)
        if conversation is None:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return conversation.model_dump(mode="json")

    @app.post("/conversations/{conversation_id}/messages")
    async def add_message(
        conversation_id: str,
        message: Dict[str, Any] = Body(...),
        space: MindfulSpace = Depends(get_space),
    ):
        stored = await space.conversations.add_message(conversation_id, message)
        if stored is None:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return stored.model_dump(mode="json", exclude_none=True)

    # --- Chat ---
    @app.post("/api/chat")
    async def proxy_chat(body: ProxyChatRequest, space: MindfulSpace = Depends(get_space)):
        content = await space.companion.complete_raw(
            body.messages, model=body.model, temperature=body.temperature
        )
        return {"content": content}

    @app.post("/chat")
    async def companion_chat(
        body: CompanionChatRequest, space: MindfulSpace = Depends(get_space)
    ):
        reply = await space.companion.reply(
            body.message,
            history=body.history,
            language=body.language,
            conversation_id=body.conversation_id,
        )
        return {"reply": reply}

    return app


def main():
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings=settings)
    logger.info("Listening at http://%s:%s/", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
