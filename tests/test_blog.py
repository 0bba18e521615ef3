from datetime import datetime, timedelta

import pytest

from conftest import auth_header
from core.extensions import db
from models.blogModels import (
    BlogCategory, BlogComment, BlogPost, ContentAnalytics, NewsletterSubscription, PromotionalContent,
)
from models.userModel import Users
from routes.blog import generate_slug, reading_time, seed_blog_categories

LINEN_POST = {
    "title": "Caring for Linen",
    "content": "Wash cold and line dry. " * 150,
    "excerpt": "Keep linen soft for years.",
    "tags": ["linen", "care"],
    "status": "published",
}


@pytest.fixture
def author(seed):
    user = Users(email="writer@example.com", password="x", first_name="Wren", last_name="Writer", role="author")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def author_headers(author):
    return auth_header(author)


@pytest.fixture
def journal(seed):
    category = BlogCategory(name="Style Guides", slug="style-guides")
    db.session.add(category)
    db.session.commit()
    return category


@pytest.fixture
def published(client, author_headers, journal):
    payload = dict(LINEN_POST, categoryIds=[journal.id])
    return client.post("/api/blog/posts", json=payload, headers=author_headers).get_json()


class TestHelpers:
    def test_slug(self):
        assert generate_slug("  Caring for Linen: A Guide! ") == "caring-for-linen-a-guide"

    def test_reading_time(self):
        assert reading_time("short note") == 1
        assert reading_time("word " * 401) == 3


class TestPosts:
    def test_author_creates_post(self, client, published, author, journal):
        assert published["slug"] == "caring-for-linen"
        assert published["authorId"] == author.id
        assert published["readingTime"] == 4
        assert published["publishedAt"] is not None
        assert [c["slug"] for c in published["categories"]] == ["style-guides"]
        assert published["author"]["name"] == "Wren Writer"

    def test_customers_cannot_write(self, client, customer_headers):
        response = client.post("/api/blog/posts", json=LINEN_POST, headers=customer_headers)
        assert response.status_code == 403

    def test_requires_token(self, client, seed):
        assert client.post("/api/blog/posts", json=LINEN_POST).status_code == 401

    def test_validation(self, client, author_headers):
        assert client.post("/api/blog/posts", json={"title": "No body"}, headers=author_headers).status_code == 400
        bad_status = dict(LINEN_POST, status="live")
        assert client.post("/api/blog/posts", json=bad_status, headers=author_headers).status_code == 400

    def test_duplicate_slug(self, client, published, author_headers):
        response = client.post("/api/blog/posts", json=LINEN_POST, headers=author_headers)
        assert response.status_code == 409

    def test_drafts_are_hidden_from_readers(self, client, published, author_headers, admin_headers):
        client.post("/api/blog/posts", json={"title": "Spring Lookbook", "content": "Soon."}, headers=author_headers)

        public = client.get("/api/blog/posts").get_json()
        assert [p["slug"] for p in public["posts"]] == ["caring-for-linen"]
        assert "content" not in public["posts"][0]
        assert client.get("/api/blog/posts?status=draft").get_json()["posts"] == []
        assert client.get("/api/blog/posts/spring-lookbook").status_code == 404

        drafts = client.get("/api/blog/posts?status=draft", headers=admin_headers).get_json()
        assert [p["slug"] for p in drafts["posts"]] == ["spring-lookbook"]

    def test_filters(self, client, published, journal, author_headers):
        client.post("/api/blog/posts", json={
            "title": "Cotton Basics", "content": "All about cotton.", "status": "published",
            "tags": ["cotton"], "isFeatured": True,
        }, headers=author_headers)

        def slugs(query):
            return [p["slug"] for p in client.get(f"/api/blog/posts{query}").get_json()["posts"]]

        assert slugs("?tags=care,wool") == ["caring-for-linen"]
        assert slugs("?isFeatured=true") == ["cotton-basics"]
        assert slugs(f"?categoryId={journal.id}") == ["caring-for-linen"]
        assert slugs("?search=cotton") == ["cotton-basics"]
        assert slugs("?sortBy=title&sortOrder=asc") == ["caring-for-linen", "cotton-basics"]

    def test_reading_a_post_counts_a_view(self, client, published):
        body = client.get("/api/blog/posts/caring-for-linen").get_json()

        assert body["content"].startswith("Wash cold")
        assert db.session.get(BlogPost, published["id"]).view_count == 1
        assert ContentAnalytics.query.filter_by(content_id=str(published["id"]), event_type="view").count() == 1

    def test_only_owner_or_admin_edits(self, client, published, customer_headers, admin_headers, seed):
        other_author = Users(email="pen@example.com", password="x", first_name="Pen", last_name="Name", role="author")
        db.session.add(other_author)
        db.session.commit()

        denied = client.put(f"/api/blog/posts/{published['id']}", json={"title": "Mine now"}, headers=auth_header(other_author))
        assert denied.status_code == 403
        assert denied.get_json()["error"] == "Not authorized to edit this post"

        response = client.put(
            f"/api/blog/posts/{published['id']}",
            json={"content": "word " * 500, "tags": ["linen"]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.get_json()["readingTime"] == 3
        assert response.get_json()["tags"] == ["linen"]

        assert client.put("/api/blog/posts/999", json={}, headers=admin_headers).status_code == 404

    def test_delete(self, client, published, author_headers):
        assert client.delete(f"/api/blog/posts/{published['id']}", headers=author_headers).status_code == 204
        assert db.session.get(BlogPost, published["id"]) is None


class TestCategories:
    def test_list_active_in_order(self, client, admin_headers):
        client.post("/api/blog/categories", json={"name": "Behind the Seams", "sortOrder": 2}, headers=admin_headers)
        client.post("/api/blog/categories", json={"name": "Sustainability", "sortOrder": 1}, headers=admin_headers)
        client.post("/api/blog/categories", json={"name": "Archive", "isActive": False}, headers=admin_headers)

        categories = client.get("/api/blog/categories").get_json()["categories"]
        assert [c["slug"] for c in categories] == ["sustainability", "behind-the-seams"]

    def test_admin_only(self, client, author_headers):
        assert client.post("/api/blog/categories", json={"name": "Mine"}, headers=author_headers).status_code == 403

    def test_duplicate_and_missing_name(self, client, journal, admin_headers):
        assert client.post("/api/blog/categories", json={"name": "Style Guides"}, headers=admin_headers).status_code == 409
        assert client.post("/api/blog/categories", json={}, headers=admin_headers).status_code == 400

    def test_seed_is_idempotent(self, app):
        seed_blog_categories()
        seed_blog_categories()
        assert BlogCategory.query.count() == 3


class TestComments:
    def test_signed_in_comment_is_published(self, client, published, customer_headers):
        response = client.post(
            f"/api/blog/posts/{published['id']}/comments", json={"content": "Great tips!"}, headers=customer_headers
        )

        assert response.status_code == 201
        assert response.get_json()["isApproved"] is True
        comments = client.get(f"/api/blog/posts/{published['id']}/comments").get_json()["comments"]
        assert [c["content"] for c in comments] == ["Great tips!"]
        assert db.session.get(BlogPost, published["id"]).comment_count == 1

    def test_guest_comment_waits_for_moderation(self, client, published, admin_headers):
        url = f"/api/blog/posts/{published['id']}/comments"
        assert client.post(url, json={"content": "Hi"}).status_code == 400

        response = client.post(url, json={"content": "Hi", "authorName": "Sam", "authorEmail": "sam@example.com"})
        comment_id = response.get_json()["id"]
        assert response.get_json()["isApproved"] is False
        assert "authorEmail" not in response.get_json()
        assert client.get(url).get_json()["comments"] == []

        assert client.put(f"/api/blog/comments/{comment_id}/approve", json={}, headers=admin_headers).status_code == 200
        assert [c["id"] for c in client.get(url).get_json()["comments"]] == [comment_id]

    def test_replies_nest_under_parent(self, client, published, customer_headers, other_headers):
        url = f"/api/blog/posts/{published['id']}/comments"
        parent = client.post(url, json={"content": "Does this work for silk?"}, headers=customer_headers).get_json()
        client.post(url, json={"content": "Hand wash silk.", "parentId": parent["id"]}, headers=other_headers)

        comments = client.get(url).get_json()["comments"]
        assert len(comments) == 1
        assert [r["content"] for r in comments[0]["replies"]] == ["Hand wash silk."]

        foreign_parent = client.post(url, json={"content": "x", "parentId": 999}, headers=other_headers)
        assert foreign_parent.status_code == 400

    def test_unpublished_post(self, client, author_headers, customer_headers):
        draft = client.post("/api/blog/posts", json={"title": "Draft", "content": "Later."}, headers=author_headers).get_json()
        response = client.post(f"/api/blog/posts/{draft['id']}/comments", json={"content": "Hi"}, headers=customer_headers)
        assert response.status_code == 404

    def test_edit_own_comment_only(self, client, published, customer_headers, other_headers):
        comment = client.post(
            f"/api/blog/posts/{published['id']}/comments", json={"content": "Typo"}, headers=customer_headers
        ).get_json()

        assert client.put(f"/api/blog/comments/{comment['id']}", json={"content": "Hijack"}, headers=other_headers).status_code == 404
        response = client.put(f"/api/blog/comments/{comment['id']}", json={"content": "Fixed"}, headers=customer_headers)
        assert response.get_json()["comment"]["content"] == "Fixed"

    def test_admin_deletes_thread(self, client, published, customer_headers, other_headers, admin_headers):
        url = f"/api/blog/posts/{published['id']}/comments"
        parent = client.post(url, json={"content": "Question"}, headers=customer_headers).get_json()
        client.post(url, json={"content": "Answer", "parentId": parent["id"]}, headers=other_headers)

        assert client.delete(f"/api/blog/comments/{parent['id']}", headers=customer_headers).status_code == 403
        assert client.delete(f"/api/blog/comments/{parent['id']}", headers=admin_headers).status_code == 204

        assert BlogComment.query.count() == 0
        assert db.session.get(BlogPost, published["id"]).comment_count == 0


class TestPromotionsAndNewsletter:
    def test_promotional_content_respects_schedule(self, client, app):
        now = datetime.utcnow()
        db.session.add_all([
            PromotionalContent(title="Summer Sale", content_type="banner", display_location="home", sort_order=1),
            PromotionalContent(title="Reviews", content_type="testimonial", display_location="home", sort_order=0),
            PromotionalContent(title="Expired", content_type="banner", display_location="home",
                               end_date=now - timedelta(days=1)),
            PromotionalContent(title="Upcoming", content_type="campaign", display_location="home",
                               start_date=now + timedelta(days=1)),
            PromotionalContent(title="Off", content_type="banner", display_location="home", is_active=False),
            PromotionalContent(title="Footer", content_type="video", display_location="footer"),
        ])
        db.session.commit()

        content = client.get("/api/blog/promotional?location=home").get_json()["content"]
        assert [c["title"] for c in content] == ["Reviews", "Summer Sale"]
        assert len(client.get("/api/blog/promotional").get_json()["content"]) == 3

    def test_subscribe_and_resubscribe(self, client, app):
        response = client.post("/api/blog/newsletter/subscribe", json={"email": "Reader@Example.com", "source": "footer"})
        assert response.status_code == 201
        assert response.get_json()["email"] == "reader@example.com"

        client.post("/api/blog/newsletter/unsubscribe", json={"email": "reader@example.com"})
        assert NewsletterSubscription.query.one().is_active is False

        client.post("/api/blog/newsletter/subscribe", json={"email": "reader@example.com", "firstName": "Rea"})
        subscription = NewsletterSubscription.query.one()
        assert subscription.is_active is True
        assert subscription.first_name == "Rea"
        assert subscription.subscription_source == "footer"

    def test_subscribe_needs_valid_email(self, client, app):
        assert client.post("/api/blog/newsletter/subscribe", json={"email": "nope"}).status_code == 400
        assert client.post("/api/blog/newsletter/unsubscribe", json={}).status_code == 400


class TestContentAdmin:
    def test_admin_content_lists_every_status(self, client, published, author_headers, admin_headers):
        client.post("/api/blog/posts", json={"title": "Draft", "content": "Later."}, headers=author_headers)

        body = client.get("/api/blog/admin/content", headers=admin_headers).get_json()
        assert body["pagination"]["total"] == 2
        assert client.get("/api/blog/admin/content", headers=author_headers).status_code == 403

    def test_analytics(self, client, published, customer_headers, admin_headers):
        client.get("/api/blog/posts/caring-for-linen", headers=customer_headers)
        client.get("/api/blog/posts/caring-for-linen")
        client.post(f"/api/blog/posts/{published['id']}/comments", json={"content": "Nice"}, headers=customer_headers)

        body = client.get(
            f"/api/blog/analytics/{published['id']}?contentType=blog_post", headers=admin_headers
        ).get_json()
        assert body["views"] == 2
        assert body["comments"] == 1
        assert body["engagementRate"] == 50.0
        assert body["uniqueVisitors"] == 2

        same = client.get(
            f"/api/blog/admin/content/analytics?contentId={published['id']}&contentType=blog_post",
            headers=admin_headers,
        ).get_json()
        assert same == body

    def test_analytics_needs_content_type(self, client, published, admin_headers):
        assert client.get(f"/api/blog/analytics/{published['id']}", headers=admin_headers).status_code == 400
        assert client.get("/api/blog/admin/content/analytics?contentId=1", headers=admin_headers).status_code == 400
