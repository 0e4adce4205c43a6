import pytest

from src.domain.routes.chat_routes import MAX_PAGE, MAX_PER_PAGE
from tests.conftest import bearer, create_user, login


@pytest.fixture
async def tokens(client, db_session):
    """Access tokens for Alice, Bob and Carol plus their user ids."""
    result = {}
    for name in ("alice", "bob", "carol"):
        user = await create_user(db_session, f"{name}@test.com")
        result[name] = {"id": user.id, "headers": bearer(await login(client, f"{name}@test.com"))}
    return result


async def _create_room(client, owner, name, room_type, member_ids=()):
    resp = await client.post(
        "/chat_rooms",
        json={"name": name, "type": room_type, "member_ids": list(member_ids)},
        headers=owner["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _post(client, author, room_id, content):
    resp = await client.post(
        f"/chat_rooms/{room_id}/messages",
        json={"content": content},
        headers=author["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestRooms:
    async def test_requires_authentication(self, client):
        resp = await client.get("/chat_rooms")
        assert resp.status_code == 401

    async def test_group_room_forbidden_for_outsider(self, client, tokens):
        room = await _create_room(client, tokens["bob"], "Team", "group")
        resp = await client.get(f"/chat_rooms/{room['id']}", headers=tokens["alice"]["headers"])
        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"

    async def test_public_room_visible_to_everyone(self, client, tokens):
        room = await _create_room(client, tokens["bob"], "Lobby", "public")
        resp = await client.get(f"/chat_rooms/{room['id']}", headers=tokens["alice"]["headers"])
        assert resp.status_code == 200
        assert resp.json()["type"] == "public"

    async def test_missing_room(self, client, tokens):
        resp = await client.get("/chat_rooms/9999", headers=tokens["alice"]["headers"])
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    async def test_list_counts_visible_only(self, client, tokens):
        await _create_room(client, tokens["bob"], "Lobby", "public")
        await _create_room(client, tokens["bob"], "Secret", "group")
        resp = await client.get("/chat_rooms", headers=tokens["alice"]["headers"])
        assert resp.status_code == 200
        assert resp.json()["total"] == 1
        assert [r["name"] for r in resp.json()["items"]] == ["Lobby"]

    async def test_rename_requires_room_admin(self, client, tokens):
        room = await _create_room(
            client, tokens["bob"], "Team", "group", [tokens["alice"]["id"]]
        )
        url = f"/chat_rooms/{room['id']}"

        resp = await client.patch(url, json={"name": "Mine"}, headers=tokens["alice"]["headers"])
        assert resp.status_code == 403

        resp = await client.patch(url, json={"name": "Renamed"}, headers=tokens["bob"]["headers"])
        assert resp.status_code == 200
        assert resp.json()["name"] == "Renamed"

    async def test_room_admin_cannot_delete_public_room(self, client, tokens):
        room = await _create_room(client, tokens["bob"], "Lobby", "public")
        resp = await client.delete(f"/chat_rooms/{room['id']}", headers=tokens["bob"]["headers"])
        assert resp.status_code == 403

    async def test_room_admin_deletes_group_room(self, client, tokens):
        room = await _create_room(client, tokens["bob"], "Team", "group")
        resp = await client.delete(f"/chat_rooms/{room['id']}", headers=tokens["bob"]["headers"])
        assert resp.status_code == 204
        resp = await client.get(f"/chat_rooms/{room['id']}", headers=tokens["bob"]["headers"])
        assert resp.status_code == 404

    async def test_invalid_room_type(self, client, tokens):
        resp = await client.post(
            "/chat_rooms",
            json={"name": "X", "type": "secret"},
            headers=tokens["alice"]["headers"],
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_request"


class TestParticipants:
    async def test_join_public_room(self, client, tokens):
        room = await _create_room(client, tokens["bob"], "Lobby", "public")
        url = f"/chat_rooms/{room['id']}/join"

        first = await client.post(url, headers=tokens["alice"]["headers"])
        assert first.status_code == 200
        assert first.json() == {
            "message": "Successfully joined the room",
            "participant_count": 2,
        }

        second = await client.post(url, headers=tokens["alice"]["headers"])
        assert second.json() == {"message": "Already a participant", "participant_count": 2}

    async def test_join_group_room_forbidden(self, client, tokens):
        room = await _create_room(client, tokens["bob"], "Team", "group")
        resp = await client.post(
            f"/chat_rooms/{room['id']}/join", headers=tokens["alice"]["headers"]
        )
        assert resp.status_code == 403

    async def test_add_participant_grants_view(self, client, tokens):
        room = await _create_room(client, tokens["bob"], "Team", "group")
        url = f"/chat_rooms/{room['id']}"

        assert (await client.get(url, headers=tokens["alice"]["headers"])).status_code == 403

        resp = await client.post(
            f"{url}/participants",
            json={"user_id": tokens["alice"]["id"]},
            headers=tokens["bob"]["headers"],
        )
        assert resp.status_code == 201
        assert resp.json()["role"] == "member"

        assert (await client.get(url, headers=tokens["alice"]["headers"])).status_code == 200

    async def test_member_cannot_add_participants(self, client, tokens):
        room = await _create_room(
            client, tokens["bob"], "Team", "group", [tokens["alice"]["id"]]
        )
        resp = await client.post(
            f"/chat_rooms/{room['id']}/participants",
            json={"user_id": tokens["carol"]["id"]},
            headers=tokens["alice"]["headers"],
        )
        assert resp.status_code == 403

    async def test_leave_removes_view(self, client, tokens):
        room = await _create_room(
            client, tokens["bob"], "Team", "group", [tokens["alice"]["id"]]
        )
        url = f"/chat_rooms/{room['id']}"

        resp = await client.delete(f"{url}/participants/me", headers=tokens["alice"]["headers"])
        assert resp.status_code == 204
        assert (await client.get(url, headers=tokens["alice"]["headers"])).status_code == 403

        resp = await client.delete(f"{url}/participants/me", headers=tokens["alice"]["headers"])
        assert resp.status_code == 404


class TestMessages:
    async def test_scenario_outsider_never_sees_group_messages(self, client, tokens):
        lobby = await _create_room(client, tokens["bob"], "Lobby", "public")
        team = await _create_room(
            client, tokens["bob"], "Team", "group", [tokens["carol"]["id"]]
        )
        for i in range(4):
            await _post(client, tokens["bob"], team["id"], f"team {i}")
        await _post(client, tokens["bob"], lobby["id"], "hello all")

        alice = tokens["alice"]["headers"]

        resp = await client.get(
            "/messages", params={"room_id": team["id"]}, headers=alice
        )
        assert resp.status_code == 200
        assert resp.json()["items"] == []
        assert resp.json()["total"] == 0

        resp = await client.get("/messages", headers=alice)
        assert resp.json()["total"] == 1
        assert [m["room_id"] for m in resp.json()["items"]] == [lobby["id"]]

        for page in (1, 2, 3):
            resp = await client.get(
                "/messages", params={"page": page, "per_page": 2}, headers=alice
            )
            assert all(m["room_id"] != team["id"] for m in resp.json()["items"])
            assert resp.json()["total"] == 1

        resp = await client.get(
            "/messages", params={"room_id": team["id"]}, headers=tokens["carol"]["headers"]
        )
        assert resp.json()["total"] == 4

    async def test_post_requires_view(self, client, tokens):
        team = await _create_room(client, tokens["bob"], "Team", "group")
        resp = await client.post(
            f"/chat_rooms/{team['id']}/messages",
            json={"content": "let me in"},
            headers=tokens["alice"]["headers"],
        )
        assert resp.status_code == 403

    async def test_post_to_public_room_publishes(self, client, tokens, publisher):
        lobby = await _create_room(client, tokens["bob"], "Lobby", "public")
        message = await _post(client, tokens["alice"], lobby["id"], "hi")
        assert message["topic"] == f"/chat/room/{lobby['id']}"
        assert publisher.published[-1][0] == f"/chat/room/{lobby['id']}"
        assert publisher.published[-1][1]["content"] == "hi"

    async def test_get_message_requires_room_view(self, client, tokens):
        team = await _create_room(client, tokens["bob"], "Team", "group")
        message = await _post(client, tokens["bob"], team["id"], "private")

        resp = await client.get(f"/messages/{message['id']}", headers=tokens["alice"]["headers"])
        assert resp.status_code == 403
        resp = await client.get(f"/messages/{message['id']}", headers=tokens["bob"]["headers"])
        assert resp.status_code == 200

    async def test_only_author_deletes(self, client, tokens):
        team = await _create_room(
            client, tokens["bob"], "Team", "group", [tokens["alice"]["id"]]
        )
        message = await _post(client, tokens["alice"], team["id"], "mine")
        url = f"/messages/{message['id']}"

        # Room admins cannot delete other people's messages.
        assert (await client.delete(url, headers=tokens["bob"]["headers"])).status_code == 403
        assert (await client.delete(url, headers=tokens["alice"]["headers"])).status_code == 204
        assert (await client.get(url, headers=tokens["alice"]["headers"])).status_code == 404

    async def test_invalid_pagination(self, client, tokens):
        resp = await client.get(
            "/messages", params={"page": 0}, headers=tokens["alice"]["headers"]
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_request"


class TestPagination:
    @pytest.mark.parametrize("path", ["/chat_rooms", "/messages"])
    async def test_page_beyond_offset_range(self, client, tokens, path):
        resp = await client.get(
            path, params={"page": 10**18}, headers=tokens["alice"]["headers"]
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_request"

    @pytest.mark.parametrize("path", ["/chat_rooms", "/messages"])
    async def test_last_allowed_page_is_empty(self, client, tokens, path):
        resp = await client.get(
            path,
            params={"page": MAX_PAGE, "per_page": MAX_PER_PAGE},
            headers=tokens["alice"]["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["items"] == []
