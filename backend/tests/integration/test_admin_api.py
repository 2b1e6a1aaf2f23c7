"""API tests for the admin dashboard, user management and stats."""

import pytest

from reportdesk.models import ReportCategory, Role

pytestmark = pytest.mark.integration

FINANCE = ReportCategory.FINANCE
SALES = ReportCategory.SALES


class TestRoleGuards:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/api/admin/overview"),
            ("get", "/api/admin/analytics"),
            ("get", "/api/admin/reports"),
            ("get", "/api/admin/users"),
            ("get", "/api/admin/admin-requests/pending"),
            ("get", "/api/admin/notifications/all"),
            ("get", "/api/stats"),
        ],
    )
    async def test_plain_user_is_403(self, client, make_user, headers, method, path):
        response = await getattr(client, method)(path, headers=headers(await make_user()))

        assert response.status_code == 403
        assert response.json()["error_code"] == "ACCESS_DENIED"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path", ["/api/admin/users", "/api/admin/admin-requests/pending"]
    )
    async def test_admin_is_403_on_superadmin_routes(self, client, make_user, headers, path):
        admin = await make_user(Role.ADMIN, department=FINANCE)

        response = await client.get(path, headers=headers(admin))

        assert response.status_code == 403


class TestDepartmentScope:
    @pytest.mark.asyncio
    async def test_admin_sees_only_own_department(self, client, make_user, create_report, headers):
        owner = await make_user()
        await create_report(owner, category=FINANCE, title="F1")
        await create_report(owner, category=FINANCE, title="F2")
        await create_report(owner, category=SALES, title="S1")
        admin = await make_user(Role.ADMIN, department=FINANCE)
        superadmin = await make_user(Role.SUPERADMIN)

        scoped = (await client.get("/api/admin/reports", headers=headers(admin))).json()
        everything = (await client.get("/api/admin/reports", headers=headers(superadmin))).json()

        assert scoped["total"] == 2
        assert {r["category"] for r in scoped["results"]} == {FINANCE.value}
        assert everything["total"] == 3

    @pytest.mark.asyncio
    async def test_admin_without_department_sees_nothing(self, client, make_user, create_report, headers):
        await create_report(await make_user())
        admin = await make_user(Role.ADMIN)

        response = await client.get("/api/reports", headers=headers(admin))

        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_filters(self, client, make_user, create_report, headers):
        owner = await make_user()
        superadmin = await make_user(Role.SUPERADMIN)
        report = await create_report(owner, category=SALES)
        await create_report(owner, category=FINANCE)
        await client.put(
            f"/api/admin/reports/{report['id']}",
            json={"status": "Approved"},
            headers=headers(superadmin),
        )

        by_status = await client.get(
            "/api/admin/reports", params={"status": "Approved"}, headers=headers(superadmin)
        )
        by_category = await client.get(
            "/api/admin/reports", params={"category": FINANCE.value}, headers=headers(superadmin)
        )

        assert [r["id"] for r in by_status.json()["results"]] == [report["id"]]
        assert by_category.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_cross_department_review_is_403(self, client, make_user, create_report, headers):
        report = await create_report(await make_user(), category=SALES)
        admin = await make_user(Role.ADMIN, department=FINANCE)

        review = await client.put(
            f"/api/admin/reports/{report['id']}", json={"status": "Approved"}, headers=headers(admin)
        )
        read = await client.get(f"/api/reports/{report['id']}", headers=headers(admin))

        assert review.status_code == 403
        assert read.status_code == 403


class TestDashboard:
    @pytest.mark.asyncio
    async def test_overview_counts(self, client, make_user, create_report, headers):
        owner = await make_user()
        superadmin = await make_user(Role.SUPERADMIN)
        await make_user(Role.ADMIN, department=SALES)
        first = await create_report(owner, category=FINANCE)
        await create_report(owner, category=SALES)
        await client.put(
            f"/api/admin/reports/{first['id']}", json={"status": "Rejected"}, headers=headers(superadmin)
        )

        body = (await client.get("/api/admin/overview", headers=headers(superadmin))).json()

        assert body["users"] == 1
        assert body["admins"] == 2
        assert body["reports"] == 2
        assert body["reportStats"] == {"Pending": 1, "Approved": 0, "Rejected": 1}

    @pytest.mark.asyncio
    async def test_overview_is_scoped_for_admins(self, client, make_user, create_report, headers):
        owner = await make_user()
        await create_report(owner, category=FINANCE)
        await create_report(owner, category=SALES)
        admin = await make_user(Role.ADMIN, department=SALES)

        body = (await client.get("/api/admin/overview", headers=headers(admin))).json()

        assert body["reports"] == 1

    @pytest.mark.asyncio
    async def test_analytics_sums_summaries(self, client, make_user, create_report, headers):
        owner = await make_user()
        superadmin = await make_user(Role.SUPERADMIN)
        for revenue in (100, 250):
            report = await create_report(owner, category=FINANCE)
            await client.put(
                f"/api/admin/reports/{report['id']}/summary",
                json={"revenue": revenue, "profit": 10, "inventoryValue": 5},
                headers=headers(superadmin),
            )

        body = (await client.get("/api/admin/analytics", headers=headers(superadmin))).json()

        finance = next(row for row in body if row["category"] == FINANCE.value)
        assert len(body) == len(ReportCategory)
        assert finance["reports"] == 2
        assert finance["revenue"] == 350
        assert finance["profit"] == 20
        assert finance["inventoryValue"] == 10

    @pytest.mark.asyncio
    async def test_analytics_for_admin_covers_own_department(self, client, make_user, headers):
        admin = await make_user(Role.ADMIN, department=SALES)

        body = (await client.get("/api/admin/analytics", headers=headers(admin))).json()

        assert [row["category"] for row in body] == [SALES.value]
        assert body[0]["reports"] == 0


class TestUserManagement:
    @pytest.mark.asyncio
    async def test_list_users_by_role(self, client, make_user, headers):
        superadmin = await make_user(Role.SUPERADMIN)
        await make_user()
        await make_user(Role.ADMIN, department=FINANCE)

        everyone = await client.get("/api/admin/users", headers=headers(superadmin))
        admins = await client.get(
            "/api/admin/users", params={"role": "admin"}, headers=headers(superadmin)
        )

        assert len(everyone.json()) == 3
        assert [u["role"] for u in admins.json()] == ["admin"]
        assert "passwordHash" not in everyone.json()[0]

    @pytest.mark.asyncio
    async def test_promote_to_admin_with_department(self, client, make_user, headers):
        superadmin = await make_user(Role.SUPERADMIN)
        user = await make_user()

        response = await client.put(
            f"/api/admin/users/{user.id}/role",
            json={"role": "admin", "department": SALES.value},
            headers=headers(superadmin),
        )

        assert response.status_code == 200
        assert response.json()["role"] == "admin"
        assert response.json()["department"] == SALES.value

    @pytest.mark.asyncio
    async def test_admin_requires_department(self, client, make_user, headers):
        superadmin = await make_user(Role.SUPERADMIN)
        user = await make_user()

        response = await client.put(
            f"/api/admin/users/{user.id}/role", json={"role": "admin"}, headers=headers(superadmin)
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_last_superadmin_cannot_be_demoted(self, client, make_user, headers):
        superadmin = await make_user(Role.SUPERADMIN)

        response = await client.put(
            f"/api/admin/users/{superadmin.id}/role", json={"role": "user"}, headers=headers(superadmin)
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "LAST_SUPERADMIN"

    @pytest.mark.asyncio
    async def test_superadmin_cannot_be_deleted(self, client, make_user, headers):
        superadmin = await make_user(Role.SUPERADMIN)
        other = await make_user(Role.SUPERADMIN)

        response = await client.delete(f"/api/admin/users/{other.id}", headers=headers(superadmin))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_user_removes_reports_and_files(
        self, client, make_user, create_report, headers, tmp_path
    ):
        superadmin = await make_user(Role.SUPERADMIN)
        user = await make_user()
        await create_report(user, files={"attachment": ("a.txt", b"data", "text/plain")})

        response = await client.delete(f"/api/admin/users/{user.id}", headers=headers(superadmin))

        assert response.status_code == 204
        listing = await client.get("/api/admin/reports", headers=headers(superadmin))
        assert listing.json()["total"] == 0
        assert [p for p in (tmp_path / "uploads").rglob("*") if p.is_file()] == []

    @pytest.mark.asyncio
    async def test_delete_unknown_user_is_404(self, client, make_user, headers):
        superadmin = await make_user(Role.SUPERADMIN)

        response = await client.delete(
            "/api/admin/users/00000000-0000-0000-0000-000000000000", headers=headers(superadmin)
        )

        assert response.status_code == 404


class TestStats:
    @pytest.mark.asyncio
    async def test_latest_without_snapshots_is_404(self, client, make_user, headers):
        admin = await make_user(Role.ADMIN, department=FINANCE)

        response = await client.get("/api/stats/latest", headers=headers(admin))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_record_and_read_snapshots(self, client, make_user, headers):
        admin = await make_user(Role.ADMIN, department=FINANCE)
        for revenue in (100, 200):
            created = await client.post(
                "/api/stats",
                json={"totalRevenue": revenue, "totalProfit": 10, "totalInventory": 3},
                headers=headers(admin),
            )
            assert created.status_code == 201
            assert created.json()["submittedBy"] == str(admin.id)

        history = (await client.get("/api/stats", headers=headers(admin))).json()
        latest = (await client.get("/api/stats/latest", headers=headers(admin))).json()

        assert len(history) == 2
        assert latest["id"] == history[-1]["id"]

    @pytest.mark.asyncio
    async def test_limited_history_keeps_newest_snapshots(self, client, make_user, headers):
        admin = await make_user(Role.ADMIN, department=FINANCE)
        for revenue in (0, 1, 2):
            await client.post(
                "/api/stats",
                json={"totalRevenue": revenue, "totalProfit": 0, "totalInventory": 0},
                headers=headers(admin),
            )

        response = await client.get("/api/stats", params={"limit": 2}, headers=headers(admin))

        assert [s["totalRevenue"] for s in response.json()] == [1, 2]
