"""Comment-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CommentResponse(BaseModel):
    """Published comment as consumed by the embedding widget."""

    comment_id: str
    username: str
    userurl: str
    useravatar: str
    create_date: datetime
    edit_date: datetime
    comment: str

    @model_validator(mode="before")
    @classmethod
    def _from_row(cls, data: object) -> object:
        if isinstance(data, dict):
            return data
        return {
            "comment_id": getattr(data, "id", None),
            "username": getattr(data, "owner_name", None),
            "userurl": getattr(data, "owner_profile_url", None),
            "useravatar": getattr(data, "owner_avatar_url", None),
            "create_date": getattr(data, "created_at", None),
            "edit_date": getattr(data, "edited_at", None),
            "comment": getattr(data, "body", None),
        }

    model_config = ConfigDict(from_attributes=True)


class CommentTextResponse(BaseModel):
    """Raw text of a single comment, used to prefill the edit form."""

    comment_id: str
    comment: str


class SubmitCommentRequest(BaseModel):
    """Final client submission after the login round trip."""

    state: str = Field(..., min_length=1, max_length=64, description="Correlation token")
    comment_text: str = Field(..., max_length=10000, description="Comment body")


class SubmitCommentResponse(BaseModel):
    """Result of a successful submission."""

    comment_id: str
    blog_post_id: str
    created: bool
