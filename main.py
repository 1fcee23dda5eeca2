from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
import logging
import os

from database import SQL_ECHO, get_db, init_db
from errors import BlogError, EmailAlreadyRegistered, InvalidInput, NotFound, classify
from schemas import (
    PageWindowOut,
    PostCreateSchema,
    PostOut,
    PostPatchSchema,
    RegisterSchema,
    TokenSchema,
    UserOut,
)
import auth
import posts
import rpc
import users

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
if SQL_ECHO:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Blog API",
    description="Posts, drafts and a paginated public feed",
    version="1.0"
)


# ---- Swagger: bearer token on the mutating post routes ----
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    openapi_schema.setdefault("components", {}).setdefault("securitySchemes", {}).update({
        "TokenAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Paste the access token from /api/auth/token"
        }
    })

    for path, methods in openapi_schema["paths"].items():
        if not path.startswith("/api/posts"):
            continue
        for method in methods:
            if method in ["post", "patch", "delete"]:
                methods[method]["security"] = [{"TokenAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi
# ------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

init_db()


# ------- ERROR ENVELOPE -------

def _error_response(request: Request, status_code: int, rpc_code: str, message: str):
    error = {"message": message}
    if request.url.path.startswith(rpc.PREFIX):
        error["code"] = rpc_code
    return JSONResponse(status_code=status_code, content={"error": error})


@app.exception_handler(BlogError)
def handle_blog_error(request: Request, exc: BlogError):
    status_code, rpc_code, message = classify(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, message)
    return _error_response(request, status_code, rpc_code, message)


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    logger.debug("Rejected body on %s: %s", request.url.path, exc.errors())
    return _error_response(request, InvalidInput.status_code, InvalidInput.rpc_code, "Invalid request body")


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    # called outside the except block, so pass the exception explicitly
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    status_code, rpc_code, message = classify(exc)
    return _error_response(request, status_code, rpc_code, message)


# ------- PUBLIC ENDPOINTS -------

@app.get("/")
def root():
    return {"message": "Blog API running"}


@app.post("/api/auth/register", status_code=201)
def register(payload: RegisterSchema, db: Session = Depends(get_db)):
    if users.get_user_by_email(db, payload.email):
        raise EmailAlreadyRegistered()

    password_hash = auth.hash_password(payload.password)
    user = users.create_user(db, email=payload.email, password_hash=password_hash, name=payload.name)
    return {"data": UserOut.model_validate(user).model_dump(by_alias=True)}


@app.post("/api/auth/token")
def login(payload: TokenSchema, db: Session = Depends(get_db)):
    user = auth.authenticate(db, payload.email, payload.password)
    token = auth.create_access_token({"sub": user.id})
    return {"access_token": token, "token_type": "bearer"}


def _parse_number(raw: Optional[str]):
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        # the listing engine rejects non-finite numbers
        return float("nan")


@app.get("/api/posts")
def list_posts(
    limit: Optional[str] = None,
    page: Optional[str] = None,
    authorId: Optional[str] = None,
    publishedOnly: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(auth.get_current_user_id),
):
    author_id = authorId.strip() if authorId and authorId.strip() else None

    published_only = None
    if publishedOnly is not None:
        published_only = publishedOnly != "false"

    # anonymous readers only ever see the published feed
    if not user_id:
        published_only = True
    elif published_only is None:
        published_only = False

    window = posts.list_posts(
        db,
        author_id=author_id,
        published_only=published_only,
        limit=_parse_number(limit),
        page=_parse_number(page),
    )
    return {"data": PageWindowOut.model_validate(window).model_dump(by_alias=True, mode="json")}


@app.get("/api/posts/{post_id}")
def get_post(post_id: str, db: Session = Depends(get_db)):
    post = posts.get_post(db, post_id)
    if not post:
        raise NotFound()
    return {"data": PostOut.model_validate(post).model_dump(by_alias=True, mode="json")}


# ------- PROTECTED ENDPOINTS -------

@app.post("/api/posts", status_code=201)
def create_post(
    payload: PostCreateSchema,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(auth.get_current_user_id),
):
    author_id = auth.require_user(user_id)
    post = posts.create_post(
        db,
        title=payload.title,
        content=payload.content,
        author_id=author_id,
        published=payload.published,
    )
    return {"data": PostOut.model_validate(post).model_dump(by_alias=True, mode="json")}


@app.patch("/api/posts/{post_id}")
def update_post(
    post_id: str,
    payload: PostPatchSchema,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(auth.get_current_user_id),
):
    acting_user = auth.require_user(user_id)
    post = posts.update_post(db, post_id, payload.model_dump(exclude_unset=True), acting_user)
    return {"data": PostOut.model_validate(post).model_dump(by_alias=True, mode="json")}


@app.delete("/api/posts/{post_id}")
def delete_post(
    post_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(auth.get_current_user_id),
):
    acting_user = auth.require_user(user_id)
    posts.delete_post(db, post_id, acting_user)
    return {"data": {"success": True}}


app.include_router(rpc.router)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
