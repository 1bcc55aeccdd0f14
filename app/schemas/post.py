"""Marshmallow schemas for posts."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, pre_load, validate

from app.repositories.post_repository import SORTABLE_FIELDS


class ImageSchema(Schema):
    """Metadata of an image already stored by the asset provider."""

    public_id = fields.Str(required=True, validate=validate.Length(min=1))
    url = fields.Url(required=True)


class PostCreateSchema(Schema):
    """Validate create Post payload."""

    title = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    description = fields.Str(required=True, validate=validate.Length(min=1))
    name = fields.Str(required=True, validate=validate.Length(min=1, max=60))
    phone_number = fields.Str(required=True, validate=validate.Length(min=1, max=20))
    email = fields.Email(required=False, load_default=None, allow_none=True)
    images = fields.List(fields.Nested(ImageSchema), required=False, load_default=list)

    @pre_load
    def _strip_and_drop_blank_email(self, data, **kwargs):  # type: ignore[no-untyped-def]
        if not isinstance(data, dict):
            return data
        cleaned = {k: (v.strip() if isinstance(v, str) else v) for k, v in data.items()}
        if cleaned.get("email") == "":
            cleaned["email"] = None
        return cleaned


class PostListQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    search = fields.Str(required=False, load_default=None)
    sort_by = fields.Str(required=False, load_default="created_at", validate=validate.OneOf(SORTABLE_FIELDS))
    sort_order = fields.Str(required=False, load_default="desc", validate=validate.OneOf(["asc", "desc"]))
    page = fields.Int(required=False, load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(required=False, load_default=None, validate=validate.Range(min=1))


class OwnerSchema(Schema):
    id = fields.Int()
    name = fields.Str()
    phone_number = fields.Str()
    email = fields.Str(allow_none=True)


class PostSchema(Schema):
    """Serialize a post together with its author."""

    id = fields.Int(attribute="post.id")
    post_id = fields.Str(attribute="post.post_id")
    title = fields.Str(attribute="post.title")
    description = fields.Str(attribute="post.description")
    images = fields.List(fields.Dict(), attribute="post.images")
    likes = fields.Int(attribute="post.likes")
    shares = fields.Int(attribute="post.shares")
    comments_count = fields.Int(attribute="post.comments_count")
    is_featured = fields.Bool(attribute="post.is_featured")
    created_at = fields.DateTime(attribute="post.created_at", allow_none=True)
    user = fields.Nested(OwnerSchema, attribute="owner", allow_none=True)
