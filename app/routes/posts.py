"""Post routes (controllers). No business logic here."""

from __future__ import annotations

from flask import Blueprint, current_app, request

from app.db import get_optional_session
from app.schemas.post import PostCreateSchema, PostListQuerySchema, PostSchema
from app.services.post_service import PostService
from app.utils.responses import ok

posts_bp = Blueprint("posts", __name__)

_post_schema = PostSchema()
_posts_schema = PostSchema(many=True)
_create_schema = PostCreateSchema()
_query_schema = PostListQuerySchema()
_service = PostService()


@posts_bp.get("/posts")
def list_posts():
    """List visible posts with paging, search and sorting."""

    query = _query_schema.load(request.args.to_dict())
    default_limit = int(current_app.config.get("DEFAULT_PAGE_SIZE", 10))
    max_limit = int(current_app.config.get("MAX_PAGE_SIZE", 100))
    limit = min(int(query.get("limit") or default_limit), max_limit)

    session = get_optional_session()
    page = _service.list_posts(
        session,
        search=query.get("search"),
        sort_by=str(query["sort_by"]),
        sort_order=str(query["sort_order"]),
        page=int(query["page"]),
        limit=limit,
    )
    return ok(
        _posts_schema.dump(page.posts),
        meta={
            "current_page": page.current_page,
            "total_pages": page.total_pages,
            "total_posts": page.total_posts,
        },
    )


@posts_bp.get("/posts/<string:post_id>")
def get_post(post_id: str):
    session = get_optional_session()
    return ok(_post_schema.dump(_service.get_post(session, post_id)))


@posts_bp.post("/posts")
def create_post():
    """Create a post, registering its author on first use."""

    payload = request.get_json(silent=True) or {}
    data = _create_schema.load(payload)

    session = get_optional_session()
    created = _service.create_post(
        session,
        title=str(data["title"]),
        description=str(data["description"]),
        name=str(data["name"]),
        phone_number=str(data["phone_number"]),
        email=data.get("email"),
        images=data.get("images") or [],
    )

    # Commit occurs in teardown if no exception.
    return ok(_post_schema.dump(created), status_code=201)
