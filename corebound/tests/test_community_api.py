"""API tests for profiles, follows, posts, profile posts and direct messages."""

import pytest


@pytest.fixture
def profile(client, auth_headers):
    """
    Factory fixture creating a profile by loading /api/profiles/me.

    Usage:
        def test_example(profile, user_id):
            profile(user_id, username="alice")
    """
    def _profile(user_id: str, username: str = None) -> dict:
        response = client.get("/api/profiles/me", headers=auth_headers(user_id, username=username))
        assert response.status_code == 200
        return response.json()["profile"]

    return _profile


class TestProfiles:
    """Test own and public profiles."""

    def test_me_created_from_token(self, profile, user_id):
        me = profile(user_id, username="alice")
        assert me["id"] == user_id
        assert me["username"] == "alice"
        assert me["display_name"] == "alice"

    def test_display_name_falls_back_to_email(self, profile, user_id):
        assert profile(user_id)["display_name"] == user_id

    def test_update_only_provided_fields(self, client, auth_headers, profile, user_id):
        profile(user_id, username="alice")
        headers = auth_headers(user_id)

        client.post("/api/profiles/me", json={"bio": "Swing trader", "age": 31}, headers=headers)
        response = client.post("/api/profiles/me", json={"display_name": "  Alice T  "}, headers=headers)
        updated = response.json()["profile"]

        assert response.status_code == 200
        assert updated["display_name"] == "Alice T"
        assert updated["bio"] == "Swing trader"
        assert updated["age"] == 31

    def test_first_write_creates_profile(self, client, auth_headers, user_id):
        response = client.post(
            "/api/profiles/me",
            json={"gender": "female"},
            headers=auth_headers(user_id, username="carol"),
        )
        created = response.json()["profile"]
        assert created["username"] == "carol"
        assert created["display_name"] == "carol"
        assert created["gender"] == "female"

    @pytest.mark.parametrize("body,message", [
        ({"age": 120}, "age must be between 1 and 119"),
        ({"age": 2.5}, "age must be between 1 and 119"),
        ({"display_name": " "}, "display_name cannot be empty"),
        ({"gender": "g" * 33}, "gender must be 32 characters or less"),
    ])
    def test_invalid_fields(self, client, auth_headers, user_id, body, message):
        response = client.post("/api/profiles/me", json=body, headers=auth_headers(user_id))
        assert response.status_code == 400
        assert response.json() == {"error": message}

    def test_public_profile(self, client, auth_headers, profile, user_id, other_user_id):
        profile(user_id, username="alice")
        profile(other_user_id, username="bob")
        client.post("/api/follow", json={"following_id": user_id}, headers=auth_headers(other_user_id))

        response = client.get(f"/api/profiles/{user_id}", headers=auth_headers(other_user_id))
        page = response.json()

        assert page["profile"]["username"] == "alice"
        assert page["followersCount"] == 1
        assert page["followingCount"] == 0
        assert page["isFollowing"] is True

    def test_unknown_profile(self, client):
        response = client.get("/api/profiles/nobody")
        assert response.status_code == 404
        assert response.json() == {"error": "Profile not found"}

    def test_saved_posts_are_private(self, client, auth_headers, user_id, other_user_id):
        response = client.get(f"/api/profiles/{user_id}/saved-posts", headers=auth_headers(other_user_id))
        assert response.status_code == 403

    def test_legal_accept(self, client, auth_headers, user_id):
        headers = {**auth_headers(user_id), "User-Agent": "pytest", "X-Forwarded-For": "203.0.113.7"}
        assert client.post("/api/legal/accept", headers=headers).json() == {"success": True}

        me = client.get("/api/profiles/me", headers=auth_headers(user_id)).json()["profile"]
        assert me["terms_accepted_at"] is not None
        assert me["terms_accepted_at"] == me["risk_accepted_at"]


class TestCheckUsername:

    def test_available(self, client):
        assert client.post("/api/check-username", json={"username": "fresh_name"}).json() == {"available": True}

    def test_taken_unless_own(self, client, auth_headers, profile, user_id, other_user_id):
        profile(user_id, username="alice")

        taken = client.post("/api/check-username", json={"username": "alice"}, headers=auth_headers(other_user_id))
        own = client.post("/api/check-username", json={"username": "alice"}, headers=auth_headers(user_id))

        assert taken.json() == {"available": False}
        assert own.json() == {"available": True}

    def test_invalid_format(self, client):
        response = client.post("/api/check-username", json={"username": "a!"})
        assert response.status_code == 400
        assert response.json()["available"] is False

    def test_missing(self, client):
        response = client.post("/api/check-username", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "Username is required"}


class TestFollow:
    """Test the follow graph."""

    def test_follow_and_unfollow(self, client, auth_headers, profile, user_id, other_user_id):
        profile(other_user_id, username="bob")
        headers = auth_headers(user_id)

        assert client.post("/api/follow", json={"following_id": other_user_id}, headers=headers).status_code == 201
        assert client.get("/api/follow", headers=headers).json() == {"following_ids": [other_user_id]}

        followers = client.get(f"/api/profiles/{other_user_id}/followers").json()["users"]
        assert followers == []  # the follower never created a profile

        client.request("DELETE", "/api/follow", json={"following_id": other_user_id}, headers=headers)
        assert client.get("/api/follow", headers=headers).json() == {"following_ids": []}

    def test_follow_twice(self, client, auth_headers, profile, user_id, other_user_id):
        profile(other_user_id)
        headers = auth_headers(user_id)
        client.post("/api/follow", json={"following_id": other_user_id}, headers=headers)

        response = client.post("/api/follow", json={"following_id": other_user_id}, headers=headers)
        assert response.status_code == 409

    @pytest.mark.parametrize("target,status,message", [
        (None, 400, "following_id is required"),
        ("self", 400, "Cannot follow yourself"),
        ("missing", 404, "User not found"),
    ])
    def test_rejections(self, client, auth_headers, user_id, target, status, message):
        following_id = user_id if target == "self" else target
        response = client.post("/api/follow", json={"following_id": following_id}, headers=auth_headers(user_id))
        assert response.status_code == status
        assert response.json() == {"error": message}


class TestPosts:
    """Test the community feed, likes, saves and comments."""

    @pytest.fixture
    def post(self, client, auth_headers, profile, user_id):
        profile(user_id, username="alice")
        response = client.post(
            "/api/posts",
            json={"title": "BTC thesis", "body": "Range until CPI", "media_urls": ["https://img/1.png"]},
            headers=auth_headers(user_id),
        )
        assert response.status_code == 201
        return response.json()["post"]

    def test_create_requires_title_and_body(self, client, auth_headers, user_id):
        response = client.post("/api/posts", json={"title": " ", "body": "x"}, headers=auth_headers(user_id))
        assert response.status_code == 400
        assert response.json() == {"error": "Title and body are required"}

    def test_feed(self, client, post):
        feed = client.get("/api/posts").json()["posts"]
        assert len(feed) == 1
        assert feed[0]["title"] == "BTC thesis"
        assert feed[0]["author"]["display_name"] == "alice"
        assert feed[0]["isLiked"] is False

    def test_like_unlike(self, client, auth_headers, post, other_user_id):
        headers = auth_headers(other_user_id)
        liked = client.post(f"/api/posts/{post['id']}/like", headers=headers)
        assert liked.json() == {"success": True, "liked": True, "likesCount": 1}

        again = client.post(f"/api/posts/{post['id']}/like", headers=headers)
        assert again.status_code == 409

        feed = client.get("/api/posts", headers=headers).json()["posts"]
        assert feed[0]["isLiked"] is True

        unliked = client.delete(f"/api/posts/{post['id']}/like", headers=headers)
        assert unliked.json()["likesCount"] == 0

        # unliking again keeps the count at zero
        assert client.delete(f"/api/posts/{post['id']}/like", headers=headers).json()["likesCount"] == 0

    def test_like_missing_post(self, client, auth_headers, user_id):
        response = client.post("/api/posts/missing/like", headers=auth_headers(user_id))
        assert response.status_code == 404

    def test_save(self, client, auth_headers, post, other_user_id):
        headers = auth_headers(other_user_id)
        assert client.post(f"/api/posts/{post['id']}/save", headers=headers).json()["saved"] is True

        saved = client.get(f"/api/profiles/{other_user_id}/saved-posts", headers=headers).json()["savedPosts"]
        assert [p["id"] for p in saved] == [post["id"]]
        assert saved[0]["isSaved"] is True
        assert saved[0]["saved_at"]

        client.delete(f"/api/posts/{post['id']}/save", headers=headers)
        assert client.get(f"/api/profiles/{other_user_id}/saved-posts", headers=headers).json()["savedPosts"] == []

    def test_comment_tree(self, client, auth_headers, post, user_id, other_user_id):
        url = f"/api/posts/{post['id']}/comments"
        root = client.post(url, json={"body": "Agree"}, headers=auth_headers(other_user_id)).json()["comment"]
        client.post(
            url,
            json={"body": "Thanks", "parent_comment_id": root["id"]},
            headers=auth_headers(user_id),
        )

        tree = client.get(url).json()["comments"]

        assert len(tree) == 1
        assert tree[0]["body"] == "Agree"
        assert tree[0]["author"]["display_name"] == "Unknown User"
        assert [r["body"] for r in tree[0]["replies"]] == ["Thanks"]
        assert client.get("/api/posts").json()["posts"][0]["comments_count"] == 2

    def test_comment_rejections(self, client, auth_headers, post, user_id):
        url = f"/api/posts/{post['id']}/comments"
        assert client.post(url, json={"body": "  "}, headers=auth_headers(user_id)).status_code == 400

        response = client.post(url, json={"body": "x", "parent_comment_id": "nope"}, headers=auth_headers(user_id))
        assert response.status_code == 404
        assert response.json() == {"error": "Parent comment not found"}

    def test_delete_comment_permissions(self, client, auth_headers, post, user_id, other_user_id):
        """Test the comment author or the post author may delete, nobody else."""
        url = f"/api/posts/{post['id']}/comments"
        comment = client.post(url, json={"body": "Hi"}, headers=auth_headers(other_user_id)).json()["comment"]

        stranger = client.delete(f"/api/comments/{comment['id']}", headers=auth_headers("stranger"))
        assert stranger.status_code == 403

        by_post_author = client.delete(f"/api/comments/{comment['id']}", headers=auth_headers(user_id))
        assert by_post_author.json() == {"message": "Comment deleted successfully"}
        assert client.get(url).json()["comments"] == []


class TestProfilePosts:

    def _create(self, client, headers, **body):
        payload = {"content": "Hello world"}
        payload.update(body)
        return client.post("/api/profile-posts", json=payload, headers=headers)

    def test_visibility_on_profile_page(self, client, auth_headers, user_id, other_user_id):
        headers = auth_headers(user_id, username="alice")
        self._create(client, headers, content="private note")
        self._create(client, headers, content="public note", visibility="public", media_urls=[" https://img ", ""])

        own = client.get(f"/api/profiles/{user_id}", headers=headers).json()["posts"]
        public = client.get(f"/api/profiles/{user_id}", headers=auth_headers(other_user_id)).json()["posts"]

        assert {p["content"] for p in own} == {"private note", "public note"}
        assert [p["content"] for p in public] == ["public note"]
        assert public[0]["media"] == [{"media_url": "https://img"}]
        assert public[0]["source"] == "profile"

    def test_validation(self, client, auth_headers, user_id):
        headers = auth_headers(user_id)
        assert self._create(client, headers, content=" ").json() == {"error": "Content is required"}
        assert self._create(client, headers, visibility="friends").json() == {"error": "Invalid visibility value"}

    def test_replies_and_likes(self, client, auth_headers, user_id, other_user_id):
        post = self._create(client, auth_headers(user_id)).json()["post"]
        url = f"/api/profile-posts/{post['id']}"

        reply = client.post(f"{url}/replies", json={"content": "Nice"}, headers=auth_headers(other_user_id, username="bob"))
        assert reply.status_code == 201
        assert reply.json()["reply"]["author"]["display_name"] == "bob"

        replies = client.get(f"{url}/replies").json()["replies"]
        assert [r["content"] for r in replies] == ["Nice"]

        assert client.post(f"{url}/like", headers=auth_headers(other_user_id)).json()["likesCount"] == 1
        assert client.post(f"{url}/like", headers=auth_headers(other_user_id)).status_code == 409
        assert client.delete(f"{url}/like", headers=auth_headers(other_user_id)).json()["likesCount"] == 0

    def test_only_author_deletes(self, client, auth_headers, user_id, other_user_id):
        post = self._create(client, auth_headers(user_id)).json()["post"]

        denied = client.delete(f"/api/profile-posts/{post['id']}", headers=auth_headers(other_user_id))
        assert denied.status_code == 403
        assert denied.json() == {"error": "You can only delete your own posts"}

        assert client.delete(f"/api/profile-posts/{post['id']}", headers=auth_headers(user_id)).json() == {"success": True}
        missing = client.delete(f"/api/profile-posts/{post['id']}", headers=auth_headers(user_id))
        assert missing.status_code == 404


class TestMessages:
    """Test direct messages and conversation summaries."""

    def test_send_and_read(self, client, auth_headers, profile, user_id, other_user_id):
        profile(user_id, username="alice")
        profile(other_user_id, username="bob")

        for text in ("hi bob", "are you there?"):
            response = client.post(
                "/api/messages",
                json={"recipient_id": other_user_id, "content": text},
                headers=auth_headers(user_id),
            )
            assert response.status_code == 201

        inbox = client.get("/api/messages", headers=auth_headers(other_user_id)).json()["conversations"]
        assert len(inbox) == 1
        assert inbox[0]["userId"] == user_id
        assert inbox[0]["lastMessage"] == "are you there?"
        assert inbox[0]["unreadCount"] == 2
        assert inbox[0]["profile"]["username"] == "alice"

        thread = client.get(
            "/api/messages/conversation",
            params={"user_id": user_id},
            headers=auth_headers(other_user_id),
        ).json()
        assert thread["otherUser"]["username"] == "alice"
        assert [m["content"] for m in thread["messages"]] == ["hi bob", "are you there?"]

        inbox = client.get("/api/messages", headers=auth_headers(other_user_id)).json()["conversations"]
        assert inbox[0]["unreadCount"] == 0

        # the sender's own messages never count as unread
        outbox = client.get("/api/messages", headers=auth_headers(user_id)).json()["conversations"]
        assert outbox[0]["unreadCount"] == 0

    @pytest.mark.parametrize("body,status,message", [
        ({"content": "hi"}, 400, "recipient_id and content are required"),
        ({"recipient_id": "x", "content": "  "}, 400, "recipient_id and content are required"),
        ({"recipient_id": "missing", "content": "hi"}, 404, "Recipient not found"),
    ])
    def test_send_rejections(self, client, auth_headers, user_id, body, status, message):
        response = client.post("/api/messages", json=body, headers=auth_headers(user_id))
        assert response.status_code == status
        assert response.json() == {"error": message}

    def test_cannot_message_self(self, client, auth_headers, user_id):
        response = client.post(
            "/api/messages",
            json={"recipient_id": user_id, "content": "note to self"},
            headers=auth_headers(user_id),
        )
        assert response.json() == {"error": "Cannot send messages to yourself"}

    def test_conversation_requires_user(self, client, auth_headers, user_id):
        response = client.get("/api/messages/conversation", headers=auth_headers(user_id))
        assert response.status_code == 400
        unknown = client.get("/api/messages/conversation", params={"user_id": "nobody"}, headers=auth_headers(user_id))
        assert unknown.status_code == 404
