"""Tests for the public view, reaction and comment actions."""

import threading

import pytest
from sqlalchemy.exc import IntegrityError

from portfolio_api import store
from portfolio_api.database import SessionLocal
from portfolio_api.models import BlogComment, BlogPost, BlogReaction


def _action(client, post_id: str, action: str, **body):
    return client.post(f"/blogs/{post_id}", params={"action": action}, json=body or None)


def _run_concurrently(workers: int, work) -> None:
    """Call ``work(session)`` from ``workers`` threads, each with its own session."""

    def run() -> None:
        session = SessionLocal()
        try:
            work(session)
        finally:
            session.close()

    threads = [threading.Thread(target=run) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


class TestViews:
    """?action=view adds one to the counter without a session."""

    def test_increments(self, client, make_post) -> None:
        post = make_post()

        assert _action(client, post.id, "view").json() == {"success": True, "views": 1}
        assert _action(client, post.id, "view").json()["views"] == 2

    def test_missing_post(self, client) -> None:
        assert _action(client, "blog_missing", "view").status_code == 404

    def test_concurrent_increments_are_not_lost(self, make_post, db) -> None:
        post = make_post()
        workers = 20

        _run_concurrently(workers, lambda session: store.increment_views(session, post.id))

        db.expire_all()
        assert store.get_post(db, post.id).views == workers


class TestReactions:
    """?action=react counts per emoji."""

    def test_counts_per_emoji(self, client, make_post) -> None:
        post = make_post()

        _action(client, post.id, "react", emoji="🔥")
        _action(client, post.id, "react", emoji="🔥")
        response = _action(client, post.id, "react", emoji="👏")

        assert response.status_code == 200
        assert response.json()["reactions"] == {"🔥": 2, "👏": 1}
        assert client.get(f"/blogs/{post.id}").json()["reactions"] == {"🔥": 2, "👏": 1}

    def test_missing_emoji(self, client, make_post) -> None:
        post = make_post()
        response = _action(client, post.id, "react", emoji="  ")
        assert response.status_code == 400
        assert response.json()["required"] == ["emoji"]

    def test_missing_post(self, client) -> None:
        assert _action(client, "blog_missing", "react", emoji="🔥").status_code == 404

    def test_concurrent_first_reactions_are_not_lost(self, make_post, db) -> None:
        post = make_post()
        workers = 30

        _run_concurrently(workers, lambda session: store.increment_reaction(session, post.id, "🎉"))

        count = db.query(BlogReaction.count).filter(BlogReaction.post_id == post.id, BlogReaction.emoji == "🎉").scalar()
        assert count == workers


class TestComments:
    """?action=comment appends; the honeypot silently discards."""

    def test_appends_in_order(self, client, make_post) -> None:
        post = make_post()

        _action(client, post.id, "comment", name="Ada", content="First!")
        response = _action(client, post.id, "comment", name="Grace", content="Second")

        assert response.status_code == 201
        comments = response.json()["comments"]
        assert [(c["name"], c["content"]) for c in comments] == [("Ada", "First!"), ("Grace", "Second")]
        assert all(c["id"] and c["createdAt"] for c in comments)

    def test_truncates_long_fields(self, client, make_post) -> None:
        post = make_post()

        comments = _action(client, post.id, "comment", name="n" * 200, content="c" * 5000).json()["comments"]

        assert len(comments[0]["name"]) == 80
        assert len(comments[0]["content"]) == 2000

    def test_honeypot_is_accepted_but_not_stored(self, client, make_post) -> None:
        post = make_post()

        response = _action(client, post.id, "comment", name="Bot", content="Buy now", website="http://spam.example")

        assert response.status_code == 202
        assert response.json()["success"] is True
        assert client.get(f"/blogs/{post.id}").json()["comments"] == []

    def test_missing_fields(self, client, make_post) -> None:
        post = make_post()
        response = _action(client, post.id, "comment", name="Ada")
        assert response.status_code == 400
        assert response.json()["required"] == ["content"]

    def test_missing_post(self, client) -> None:
        assert _action(client, "blog_missing", "comment", name="A", content="B").status_code == 404

    def test_concurrent_comments_are_all_kept(self, make_post, db) -> None:
        post = make_post()
        workers = 30

        _run_concurrently(workers, lambda session: store.append_comment(session, post.id, "Reader", "Nice post"))

        comments = db.query(BlogComment).filter(BlogComment.post_id == post.id).all()
        assert len(comments) == workers
        assert len({c.id for c in comments}) == workers


class TestUnknownAction:
    def test_rejected(self, client, make_post) -> None:
        post = make_post()
        assert _action(client, post.id, "share").status_code == 400
        assert client.post(f"/blogs/{post.id}").status_code == 400


class TestPostIntegrity:
    """Comments and reactions cannot exist without their post."""

    def test_comment_for_missing_post_is_rejected_by_the_store(self, db) -> None:
        db.add(BlogComment(id="comment_1", post_id="blog_missing", name="A", content="B", created_at="2024-01-01T00:00:00.000Z"))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_engagement_after_delete_is_not_found(self, make_post, db) -> None:
        post_id = make_post().id
        store.increment_reaction(db, post_id, "🔥")
        assert store.delete_post(db, post_id)

        assert store.append_comment(db, post_id, "Late", "Too late") is None
        assert store.increment_reaction(db, post_id, "🔥") is None
        assert store.increment_reaction(db, post_id, "👏") is None
        assert db.query(BlogComment).count() == 0
        assert db.query(BlogReaction).count() == 0

    def test_bulk_delete_cascades_to_children(self, make_post, db) -> None:
        post_id = make_post().id
        store.append_comment(db, post_id, "Ada", "Hello")
        store.increment_reaction(db, post_id, "🔥")

        db.query(BlogPost).filter(BlogPost.id == post_id).delete(synchronize_session=False)
        db.commit()

        assert db.query(BlogComment).count() == 0
        assert db.query(BlogReaction).count() == 0
