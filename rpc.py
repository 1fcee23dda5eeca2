"""RPC-style procedures over the post services.

Each procedure is ``POST /rpc/<name>`` with a JSON input object and answers
``{"result": {"data": ...}}``. The acting user id is part of the input;
there is no session at this layer.
"""
from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError
from sqlalchemy.orm import Session

from database import get_db
from errors import InvalidInput, PostNotFound
from schemas import (
    PageWindowOut,
    PostOut,
    RpcByIdInput,
    RpcCreateInput,
    RpcListInput,
    RpcRemoveInput,
    RpcUpdateInput,
)
import posts

PREFIX = "/rpc"

router = APIRouter(prefix=PREFIX, tags=["rpc"])


def _parse(model, payload):
    try:
        return model.model_validate(payload if payload is not None else {})
    except ValidationError as exc:
        raise InvalidInput(_first_message(exc))


def _first_message(exc: ValidationError):
    error = exc.errors()[0]
    if error["type"] == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"])
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {error['msg']}" if location else error["msg"]


def _result(data):
    return {"result": {"data": data}}


@router.post("/posts.list")
def posts_list(payload: Any = Body(None), db: Session = Depends(get_db)):
    args = _parse(RpcListInput, payload)
    window = posts.list_posts(
        db,
        author_id=str(args.author_id) if args.author_id else None,
        published_only=args.published_only,
        limit=args.limit,
        page=args.page,
    )
    return _result(PageWindowOut.model_validate(window).model_dump(by_alias=True, mode="json"))


@router.post("/posts.byId")
def posts_by_id(payload: Any = Body(None), db: Session = Depends(get_db)):
    args = _parse(RpcByIdInput, payload)
    post = posts.get_post(db, str(args.id))
    if not post:
        raise PostNotFound()
    return _result(PostOut.model_validate(post).model_dump(by_alias=True, mode="json"))


@router.post("/posts.create")
def posts_create(payload: Any = Body(None), db: Session = Depends(get_db)):
    args = _parse(RpcCreateInput, payload)
    post = posts.create_post(
        db,
        title=args.title,
        content=args.content,
        author_id=str(args.author_id),
        published=args.published,
    )
    return _result(PostOut.model_validate(post).model_dump(by_alias=True, mode="json"))


@router.post("/posts.update")
def posts_update(payload: Any = Body(None), db: Session = Depends(get_db)):
    args = _parse(RpcUpdateInput, payload)
    post = posts.update_post(
        db,
        str(args.id),
        args.patch.model_dump(exclude_unset=True),
        str(args.user_id),
    )
    return _result(PostOut.model_validate(post).model_dump(by_alias=True, mode="json"))


@router.post("/posts.remove")
def posts_remove(payload: Any = Body(None), db: Session = Depends(get_db)):
    args = _parse(RpcRemoveInput, payload)
    posts.delete_post(db, str(args.id), str(args.user_id))
    return _result({"success": True})
