"""Mapping between posts and their flat table representation."""
import json
from typing import Any, Dict, List

from pydantic import TypeAdapter, ValidationError

from post_cache.errors import RecordDecodeError
from post_cache.models import Comment, Post

RemoteRecord = Dict[str, Any]

_comments_adapter = TypeAdapter(List[Comment])


def to_remote(post: Post) -> RemoteRecord:
    """Convert a post into a flat record for the table.

    Every post is its own partition: PartitionKey and RowKey are both the ID.
    """
    return {
        "PartitionKey": post.id,
        "RowKey": post.id,
        "ID": post.id,
        "Title": post.title,
        "Slug": post.slug,
        "Excerpt": post.excerpt,
        "Content": post.content,
        "PubDate": post.pub_date,
        "LastModified": post.last_modified,
        "IsPublished": post.is_published,
        "Categories": json.dumps(post.categories),
        "Comments": _comments_adapter.dump_json(post.comments, by_alias=True).decode("utf-8"),
    }


def _decode_categories(record_id: str, blob: Any) -> List[str]:
    if not blob or str(blob).strip() in ("", "null"):
        return []
    try:
        categories = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise RecordDecodeError(
            f"Categories of record {record_id!r} are not valid JSON: {e}",
            details={"record_id": record_id, "field": "Categories"},
        )
    if not isinstance(categories, list) or not all(isinstance(c, str) for c in categories):
        raise RecordDecodeError(
            f"Categories of record {record_id!r} are not a list of strings",
            details={"record_id": record_id, "field": "Categories"},
        )
    return categories


def _decode_comments(record_id: str, blob: Any) -> List[Comment]:
    if not blob or str(blob).strip() in ("", "null"):
        return []
    try:
        return _comments_adapter.validate_json(blob)
    except ValidationError as e:
        raise RecordDecodeError(
            f"Comments of record {record_id!r} could not be decoded: {e}",
            details={"record_id": record_id, "field": "Comments"},
        )


def from_remote(remote: RemoteRecord) -> Post:
    """Convert a table record back into a post.

    Raises:
        RecordDecodeError: If the categories or comments blob is malformed
    """
    record_id = remote.get("ID") or remote.get("RowKey")
    if not record_id:
        raise RecordDecodeError("Record has neither ID nor RowKey", details={"record": remote})

    fields = {
        "id": record_id,
        "title": remote.get("Title") or "",
        "slug": remote.get("Slug") or "",
        "excerpt": remote.get("Excerpt") or "",
        "content": remote.get("Content") or "",
        "is_published": remote.get("IsPublished", True),
        "categories": _decode_categories(record_id, remote.get("Categories")),
        "comments": _decode_comments(record_id, remote.get("Comments")),
    }
    # Missing timestamps fall back to the model defaults
    if remote.get("PubDate") is not None:
        fields["pub_date"] = remote["PubDate"]
    if remote.get("LastModified") is not None:
        fields["last_modified"] = remote["LastModified"]

    try:
        return Post(**fields)
    except ValidationError as e:
        raise RecordDecodeError(
            f"Record {record_id!r} could not be decoded: {e}",
            details={"record_id": record_id},
        )
