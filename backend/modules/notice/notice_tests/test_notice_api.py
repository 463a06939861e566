"""
通知公告接口测试
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient

from core.errors import ErrorCode
from core.events import event_bus, Events
from tests.test_conftest import auth_headers, create_test_notice, create_test_user
from utils.timezone import utc_now

BASE = "/api/v1/notices"


def notice_payload(**overrides) -> dict:
    payload = {
        "title": "Academic calendar released",
        "content": "The academic calendar for next year is now published on the portal.",
        "type": "academic",
        "category": "all",
    }
    payload.update(overrides)
    return payload


class TestCreateNotice:
    """创建通知"""

    @pytest.mark.asyncio
    async def test_faculty_creates_notice(self, client: AsyncClient, faculty_user):
        response = await client.post(BASE, json=notice_payload(), headers=auth_headers(faculty_user))

        assert response.status_code == 201
        body = response.json()
        assert body["code"] == 0
        assert body["success"] is True
        data = body["data"]
        assert data["status"] == "draft"
        assert data["priority"] == "medium"
        assert data["version"] == 1
        assert data["author"]["name"] == "Frank Faculty"
        assert data["author"]["role"] == "faculty"
        assert data["statistics"]["views"] == 0
        assert data["settings"]["allow_comments"] is True
        assert data["expiry_date"] is not None
        assert len(event_bus.get_history(Events.NOTICE_CREATED)) == 1

    @pytest.mark.asyncio
    async def test_staff_may_create(self, client: AsyncClient, staff_user):
        response = await client.post(BASE, json=notice_payload(), headers=auth_headers(staff_user))
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_unauthenticated_create_rejected(self, client: AsyncClient):
        response = await client.post(BASE, json=notice_payload())

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["code"] == ErrorCode.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self, client: AsyncClient):
        response = await client.post(
            BASE, json=notice_payload(), headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_student_create_forbidden(self, client: AsyncClient, student_user):
        response = await client.post(BASE, json=notice_payload(), headers=auth_headers(student_user))

        assert response.status_code == 403
        assert response.json()["code"] == ErrorCode.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_invalid_dates_persist_nothing(self, client: AsyncClient, faculty_user):
        publish_at = utc_now() + timedelta(days=5)
        payload = notice_payload(
            publish_date=publish_at.isoformat(),
            expiry_date=(publish_at - timedelta(days=1)).isoformat(),
        )

        response = await client.post(BASE, json=payload, headers=auth_headers(faculty_user))

        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.VALIDATION_ERROR
        listing = await client.get(BASE)
        assert listing.json()["data"]["pagination"]["total"] == 0

    @pytest.mark.asyncio
    async def test_invalid_enum_rejected(self, client: AsyncClient, faculty_user):
        response = await client.post(
            BASE, json=notice_payload(type="gossip"), headers=auth_headers(faculty_user)
        )

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == ErrorCode.VALIDATION_ERROR
        assert any("type" in e["field"] for e in body["data"]["errors"])

    @pytest.mark.asyncio
    async def test_short_content_rejected(self, client: AsyncClient, faculty_user):
        response = await client.post(
            BASE, json=notice_payload(content="too short"), headers=auth_headers(faculty_user)
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_bad_contact_phone_rejected(self, client: AsyncClient, faculty_user):
        response = await client.post(
            BASE,
            json=notice_payload(contact_info={"phone": "0123"}),
            headers=auth_headers(faculty_user)
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_nested_fields_round_trip(self, client: AsyncClient, faculty_user):
        payload = notice_payload(
            tags=["exams", "calendar"],
            contact_info={"email": "registry@campus.test", "phone": "+441234567"},
            location={"building": "Main Hall", "room": "101"},
            attachments=[{"name": "calendar.pdf", "url": "https://files.campus.test/cal.pdf", "size": 2048}],
            target_audience={"departments": ["Physics"], "year_levels": ["first"]},
        )

        response = await client.post(BASE, json=payload, headers=auth_headers(faculty_user))

        data = response.json()["data"]
        assert data["tags"] == ["exams", "calendar"]
        assert data["contact_info"]["email"] == "registry@campus.test"
        assert data["location"]["room"] == "101"
        assert data["attachments"][0]["name"] == "calendar.pdf"
        assert data["target_audience"]["departments"] == ["Physics"]
        assert data["target_audience"]["year_levels"] == ["first"]


class TestListAndSearch:
    """列表、检索与专题视图"""

    @pytest.mark.asyncio
    async def test_list_envelope_and_pagination(self, client: AsyncClient, db, faculty_user):
        for i in range(12):
            await create_test_notice(db, faculty_user, title=f"Notice {i}")

        response = await client.get(BASE, params={"page": 3, "limit": 5})

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["notices"]) == 2
        assert data["pagination"] == {
            "page": 3, "limit": 5, "total": 12, "pages": 3, "has_next": False, "has_prev": True
        }

    @pytest.mark.asyncio
    async def test_invalid_enum_filter_rejected(self, client: AsyncClient):
        response = await client.get(BASE, params={"priority": "critical"})

        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_limit_over_maximum_rejected(self, client: AsyncClient):
        response = await client.get(BASE, params={"limit": 101})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_sort_by_priority(self, client: AsyncClient, db, faculty_user):
        for priority in ("low", "urgent", "medium", "high"):
            await create_test_notice(db, faculty_user, priority=priority)

        response = await client.get(BASE, params={"sort_by": "priority", "sort_order": "desc"})

        priorities = [n["priority"] for n in response.json()["data"]["notices"]]
        assert priorities == ["urgent", "high", "medium", "low"]

    @pytest.mark.asyncio
    async def test_search_requires_query(self, client: AsyncClient):
        response = await client.get(f"{BASE}/search")

        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_search_finds_single_match(self, client: AsyncClient, db, faculty_user):
        await create_test_notice(db, faculty_user, title="Academic calendar released")
        await create_test_notice(
            db, faculty_user, title="Cafeteria menu update",
            content="New vegetarian options are available from Monday."
        )

        response = await client.get(f"{BASE}/search", params={"q": "Academic"})

        notices = response.json()["data"]["notices"]
        assert [n["title"] for n in notices] == ["Academic calendar released"]

    @pytest.mark.asyncio
    async def test_urgent_view(self, client: AsyncClient, db, faculty_user):
        await create_test_notice(db, faculty_user, priority="urgent", title="Gas leak in lab block")
        await create_test_notice(db, faculty_user, priority="high")

        response = await client.get(f"{BASE}/urgent")

        notices = response.json()["data"]["notices"]
        assert [n["title"] for n in notices] == ["Gas leak in lab block"]
        assert notices[0]["is_active"] is True

    @pytest.mark.asyncio
    async def test_featured_view(self, client: AsyncClient, db, faculty_user):
        await create_test_notice(db, faculty_user, featured=True, title="Open day")
        await create_test_notice(db, faculty_user)

        response = await client.get(f"{BASE}/featured")

        assert [n["title"] for n in response.json()["data"]["notices"]] == ["Open day"]

    @pytest.mark.asyncio
    async def test_type_view(self, client: AsyncClient, db, faculty_user):
        await create_test_notice(db, faculty_user, type="event", category="graduate")
        await create_test_notice(db, faculty_user, type="event", category="staff")

        response = await client.get(f"{BASE}/type/event", params={"category": "graduate"})
        assert response.json()["data"]["pagination"]["total"] == 1

        response = await client.get(f"{BASE}/type/rumour")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_bookmarked_requires_login(self, client: AsyncClient):
        response = await client.get(f"{BASE}/bookmarked")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_bookmarked_view(self, client: AsyncClient, db, faculty_user, student_user):
        kept = await create_test_notice(db, faculty_user, title="Kept")
        await create_test_notice(db, faculty_user, title="Ignored")
        headers = auth_headers(student_user)
        await client.post(f"{BASE}/{kept.id}/bookmark", headers=headers)

        response = await client.get(f"{BASE}/bookmarked", headers=headers)

        notices = response.json()["data"]["notices"]
        assert [n["title"] for n in notices] == ["Kept"]
        assert notices[0]["is_bookmarked"] is True

    @pytest.mark.asyncio
    async def test_for_me_view(self, client: AsyncClient, faculty_user, student_user):
        author = auth_headers(faculty_user)
        await client.post(BASE, json=notice_payload(
            title="For physics", status="published", target_audience={"departments": ["Physics"]}
        ), headers=author)
        await client.post(BASE, json=notice_payload(
            title="For history", status="published", target_audience={"departments": ["History"]}
        ), headers=author)

        response = await client.get(f"{BASE}/for-me", headers=auth_headers(student_user))

        assert [n["title"] for n in response.json()["data"]["notices"]] == ["For physics"]


class TestNoticeDetail:
    """详情、更新、发布与删除"""

    @pytest.mark.asyncio
    async def test_missing_notice(self, client: AsyncClient):
        response = await client.get(f"{BASE}/999")

        assert response.status_code == 404
        assert response.json()["code"] == ErrorCode.NOTICE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_detail_counts_logged_in_views(self, client: AsyncClient, db, faculty_user, student_user):
        notice = await create_test_notice(db, faculty_user)

        anonymous = await client.get(f"{BASE}/{notice.id}")
        assert anonymous.json()["data"]["statistics"]["views"] == 0

        headers = auth_headers(student_user)
        await client.get(f"{BASE}/{notice.id}", headers=headers)
        response = await client.get(f"{BASE}/{notice.id}", headers=headers)

        stats = response.json()["data"]["statistics"]
        assert stats["views"] == 2
        assert stats["unique_views"] == 1

    @pytest.mark.asyncio
    async def test_update_and_version_conflict(self, client: AsyncClient, db, faculty_user):
        notice = await create_test_notice(db, faculty_user)
        headers = auth_headers(faculty_user)

        response = await client.put(
            f"{BASE}/{notice.id}", json={"title": "Updated title", "version": 1}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["version"] == 2

        stale = await client.put(
            f"{BASE}/{notice.id}", json={"title": "Stale edit", "version": 1}, headers=headers
        )
        assert stale.status_code == 409
        body = stale.json()
        assert body["code"] == ErrorCode.NOTICE_VERSION_CONFLICT
        assert body["data"] == {"current_version": 2}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"title": "   "}, {"content": "            "}])
    async def test_update_rejects_blank_text(self, client: AsyncClient, db, faculty_user, payload):
        notice = await create_test_notice(db, faculty_user)

        response = await client.put(f"{BASE}/{notice.id}", json=payload, headers=auth_headers(faculty_user))
        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.VALIDATION_ERROR

        detail = await client.get(f"{BASE}/{notice.id}")
        data = detail.json()["data"]
        assert data["title"] == "Library opening hours"
        assert data["version"] == 1

    @pytest.mark.asyncio
    async def test_revisions_visible_to_author_only(self, client: AsyncClient, db, faculty_user, student_user):
        notice = await create_test_notice(db, faculty_user)
        await client.put(
            f"{BASE}/{notice.id}",
            json={"summary": "Short version", "change_note": "add summary"},
            headers=auth_headers(faculty_user)
        )

        response = await client.get(f"{BASE}/{notice.id}/revisions", headers=auth_headers(faculty_user))
        revisions = response.json()["data"]
        assert len(revisions) == 1
        assert revisions[0]["changes"] == "add summary"

        denied = await client.get(f"{BASE}/{notice.id}/revisions", headers=auth_headers(student_user))
        assert denied.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_by_non_author_keeps_record(self, client: AsyncClient, db, faculty_user):
        other = await create_test_user(db, "faculty", first_name="Olga", last_name="Other")
        notice = await create_test_notice(db, faculty_user)

        response = await client.delete(f"{BASE}/{notice.id}", headers=auth_headers(other))

        assert response.status_code == 403
        assert (await client.get(f"{BASE}/{notice.id}")).status_code == 200

    @pytest.mark.asyncio
    async def test_author_deletes_notice(self, client: AsyncClient, db, faculty_user):
        notice = await create_test_notice(db, faculty_user)

        response = await client.delete(f"{BASE}/{notice.id}", headers=auth_headers(faculty_user))

        assert response.status_code == 200
        assert response.json()["message"] == "通知已删除"
        assert (await client.get(f"{BASE}/{notice.id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_publish_flow(self, client: AsyncClient, db, faculty_user, staff_user):
        notice = await create_test_notice(db, faculty_user, status="draft")

        denied = await client.patch(f"{BASE}/{notice.id}/publish", headers=auth_headers(staff_user))
        assert denied.status_code == 403

        response = await client.patch(f"{BASE}/{notice.id}/publish", headers=auth_headers(faculty_user))
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "published"
        assert response.json()["data"]["is_active"] is True

        again = await client.put(f"{BASE}/{notice.id}/publish", headers=auth_headers(faculty_user))
        assert again.status_code == 400
        assert again.json()["code"] == ErrorCode.NOTICE_ALREADY_PUBLISHED

    @pytest.mark.asyncio
    async def test_statistics_role_gate(self, client: AsyncClient, db, faculty_user, student_user):
        notice = await create_test_notice(db, faculty_user)
        await client.post(f"{BASE}/{notice.id}/share")
        await client.post(f"{BASE}/{notice.id}/download")

        denied = await client.get(f"{BASE}/{notice.id}/statistics", headers=auth_headers(student_user))
        assert denied.status_code == 403

        response = await client.get(f"{BASE}/{notice.id}/statistics", headers=auth_headers(faculty_user))
        stats = response.json()["data"]
        assert stats["shares"] == 1
        assert stats["downloads"] == 1
        assert stats["is_active"] is True
        assert stats["days_since_published"] == 0

    @pytest.mark.asyncio
    async def test_bulk_action(self, client: AsyncClient, db, faculty_user, student_user):
        notices = [await create_test_notice(db, faculty_user) for _ in range(2)]
        ids = [n.id for n in notices]

        denied = await client.post(
            f"{BASE}/bulk", json={"notice_ids": ids, "action": "archive"}, headers=auth_headers(student_user)
        )
        assert denied.status_code == 403

        response = await client.post(
            f"{BASE}/bulk", json={"notice_ids": ids, "action": "archive"}, headers=auth_headers(faculty_user)
        )
        data = response.json()["data"]
        assert data["modified_count"] == 2
        assert all(r["success"] for r in data["results"])

        invalid = await client.post(
            f"{BASE}/bulk", json={"notice_ids": [], "action": "archive"}, headers=auth_headers(faculty_user)
        )
        assert invalid.status_code == 400


class TestEngagementApi:
    """互动接口"""

    @pytest.mark.asyncio
    async def test_like_requires_login(self, client: AsyncClient, db, faculty_user):
        notice = await create_test_notice(db, faculty_user)
        response = await client.post(f"{BASE}/{notice.id}/like")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_like_toggle(self, client: AsyncClient, db, faculty_user, student_user):
        notice = await create_test_notice(db, faculty_user)
        headers = auth_headers(student_user)

        liked = await client.post(f"{BASE}/{notice.id}/like", headers=headers)
        assert liked.json()["data"] == {"is_liked": True, "like_count": 1}
        assert liked.json()["message"] == "点赞成功"

        detail = await client.get(f"{BASE}/{notice.id}", headers=headers)
        assert detail.json()["data"]["is_liked"] is True

        unliked = await client.post(f"{BASE}/{notice.id}/like", headers=headers)
        assert unliked.json()["data"] == {"is_liked": False, "like_count": 0}

    @pytest.mark.asyncio
    async def test_comment_lifecycle(self, client: AsyncClient, db, faculty_user, student_user, staff_user):
        notice = await create_test_notice(db, faculty_user)
        headers = auth_headers(student_user)

        created = await client.post(
            f"{BASE}/{notice.id}/comments", json={"content": "  Will it be open on Sunday?  "}, headers=headers
        )
        assert created.status_code == 201
        comment = created.json()["data"]["comment"]
        assert comment["content"] == "Will it be open on Sunday?"
        assert created.json()["data"]["comment_count"] == 1

        foreign = await client.put(
            f"{BASE}/{notice.id}/comments/{comment['id']}",
            json={"content": "Changed"}, headers=auth_headers(staff_user)
        )
        assert foreign.status_code == 403

        edited = await client.put(
            f"{BASE}/{notice.id}/comments/{comment['id']}", json={"content": "Open on Saturday?"}, headers=headers
        )
        assert edited.json()["data"]["comment"]["is_edited"] is True

        removed = await client.delete(f"{BASE}/{notice.id}/comments/{comment['id']}", headers=headers)
        assert removed.json()["data"]["comment_count"] == 0

        missing = await client.delete(f"{BASE}/{notice.id}/comments/{comment['id']}", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["code"] == ErrorCode.NOTICE_COMMENT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_blank_comment_rejected(self, client: AsyncClient, db, faculty_user, student_user):
        notice = await create_test_notice(db, faculty_user)
        response = await client.post(
            f"{BASE}/{notice.id}/comments", json={"content": "   "}, headers=auth_headers(student_user)
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_comments_disabled(self, client: AsyncClient, db, faculty_user, student_user):
        notice = await create_test_notice(db, faculty_user, allow_comments=False)

        response = await client.post(
            f"{BASE}/{notice.id}/comments", json={"content": "Hello"}, headers=auth_headers(student_user)
        )

        assert response.status_code == 403
        assert response.json()["code"] == ErrorCode.NOTICE_COMMENTS_DISABLED

    @pytest.mark.asyncio
    async def test_share_counter(self, client: AsyncClient, db, faculty_user):
        notice = await create_test_notice(db, faculty_user)

        await client.post(f"{BASE}/{notice.id}/share")
        response = await client.post(f"{BASE}/{notice.id}/share")

        assert response.json()["data"] == {"shares": 2}

    @pytest.mark.asyncio
    async def test_response_headers(self, client: AsyncClient):
        response = await client.get(BASE, headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Response-Time" in response.headers
        assert response.headers["X-Content-Type-Options"] == "nosniff"
