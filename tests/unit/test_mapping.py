"""Tests for mapping posts to and from table records."""
import json
from datetime import datetime, timezone

import pytest

from post_cache.errors import RecordDecodeError
from post_cache.models import Comment
from post_cache.storage.mapping import from_remote, to_remote
from tests.fixtures.table_fixtures import make_post


@pytest.fixture
def post_with_comments():
    return make_post(
        "638400000000000000",
        slug="Hello-World",
        is_published=False,
        categories=["Python", "Azure", "Caching"],
        comments=[
            Comment(
                id="c1",
                author="Ada",
                email="ada@example.com",
                content="First!",
                pub_date=datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc),
            ),
            Comment(id="c2", author="Blog Owner", content="Thanks", is_admin=True),
        ],
    )


def test_remote_record_is_keyed_by_id(post_with_comments):
    remote = to_remote(post_with_comments)

    assert remote["PartitionKey"] == remote["RowKey"] == remote["ID"] == "638400000000000000"
    assert remote["Slug"] == "Hello-World"
    assert remote["IsPublished"] is False
    assert json.loads(remote["Categories"]) == ["Python", "Azure", "Caching"]
    assert json.loads(remote["Comments"])[0]["Author"] == "Ada"


def test_round_trip_with_comments_and_categories(post_with_comments):
    restored = from_remote(to_remote(post_with_comments))

    assert restored == post_with_comments


def test_round_trip_without_comments():
    post = make_post("plain", categories=[])

    restored = from_remote(to_remote(post))

    assert restored == post
    assert restored.comments == []


@pytest.mark.parametrize("blob", [None, "", "   ", "null"])
def test_absent_blobs_decode_to_empty_lists(blob):
    remote = to_remote(make_post("p1"))
    remote["Comments"] = blob
    remote["Categories"] = blob

    post = from_remote(remote)

    assert post.comments == []
    assert post.categories == []


def test_comments_written_by_older_versions_decode():
    remote = to_remote(make_post("p1"))
    remote["Comments"] = json.dumps(
        [
            {
                "ID": "abc",
                "Author": "Grace",
                "Email": "grace@example.com",
                "Content": "Nice post",
                "PubDate": "2018-03-01T10:00:00",
                "IsAdmin": False,
            }
        ]
    )

    post = from_remote(remote)

    assert post.comments[0].author == "Grace"
    assert post.comments[0].pub_date == datetime(2018, 3, 1, 10, tzinfo=timezone.utc)


@pytest.mark.parametrize("blob", ["[not json", '{"a": 1}', "[1, 2]"])
def test_malformed_categories_raise(blob):
    remote = to_remote(make_post("p1"))
    remote["Categories"] = blob

    with pytest.raises(RecordDecodeError) as exc:
        from_remote(remote)

    assert exc.value.details["record_id"] == "p1"
    assert exc.value.details["field"] == "Categories"


def test_malformed_comments_raise():
    remote = to_remote(make_post("p1"))
    remote["Comments"] = "[{broken"

    with pytest.raises(RecordDecodeError) as exc:
        from_remote(remote)

    assert exc.value.details["field"] == "Comments"


def test_record_without_id_raises():
    with pytest.raises(RecordDecodeError):
        from_remote({"Title": "orphan"})


def test_missing_timestamps_use_defaults():
    post = from_remote({"PartitionKey": "7", "RowKey": "7", "ID": "7", "Title": "t"})

    assert post.id == "7"
    assert post.is_published is True
    assert post.pub_date.tzinfo is not None
