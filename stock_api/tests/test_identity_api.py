API = "/api/v1"
ADMIN_EMAIL = "admin@stockapp.com"
ADMIN_PASSWORD = "Admin123!"
USER_EMAIL = "clerk@stockapp.com"


async def _login(client, email=ADMIN_EMAIL, password=ADMIN_PASSWORD):
    return await client.post(f"{API}/auth/login", json={"email": email, "password": password})


async def test_login_returns_token_pair(client, seeded):
    res = await _login(client)

    assert res.status_code == 200
    body = res.json()
    assert body["token_type"] == "bearer"
    assert body["refresh_token"]
    assert body["user"]["email"] == ADMIN_EMAIL
    assert body["user"]["roles"] == ["Admin"]


async def test_login_with_wrong_password(client, seeded):
    res = await _login(client, password="nope")

    assert res.status_code == 401
    assert res.json()["error"]["type"] == "unauthorized"
    assert res.json()["error"]["message"] == "Invalid email or password"


async def test_token_form_login(client, seeded):
    res = await client.post(f"{API}/auth/token", data={"username": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert res.status_code == 200
    assert res.json()["access_token"]


async def test_me(client, admin_headers):
    res = await client.get(f"{API}/auth/me", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["email"] == ADMIN_EMAIL


async def test_refresh_rotates_token(client, seeded):
    first = (await _login(client)).json()

    res = await client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert res.status_code == 200
    second = res.json()
    assert second["refresh_token"] != first["refresh_token"]

    res = await client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert res.status_code == 401
    assert res.json()["error"]["message"] == "Invalid or expired refresh token"


async def test_logout_revokes_refresh_token(client, seeded):
    tokens = (await _login(client)).json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    res = await client.post(f"{API}/auth/logout", headers=headers)
    assert res.status_code == 200

    res = await client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 401


async def test_change_password(client, user_headers):
    payload = {"current_password": "wrong", "new_password": "abcdef", "confirm_password": "abcdef"}
    res = await client.post(f"{API}/auth/change-password", json=payload, headers=user_headers)
    assert res.status_code == 401

    payload["current_password"] = "Clerk123!"
    payload["confirm_password"] = "abcdeg"
    res = await client.post(f"{API}/auth/change-password", json=payload, headers=user_headers)
    assert res.status_code == 400

    payload["confirm_password"] = "abcdef"
    res = await client.post(f"{API}/auth/change-password", json=payload, headers=user_headers)
    assert res.status_code == 200

    res = await _login(client, USER_EMAIL, "abcdef")
    assert res.status_code == 200


async def test_force_change_password_enforces_length(client, user_headers):
    payload = {"new_password": "abc", "confirm_password": "abc"}
    res = await client.post(f"{API}/auth/force-change-password", json=payload, headers=user_headers)
    assert res.status_code == 400
    assert "at least 6" in res.json()["error"]["message"]


async def test_user_list_requires_admin_role(client, admin_headers, user_headers):
    res = await client.get(f"{API}/users", headers=user_headers)
    assert res.status_code == 403

    res = await client.get(f"{API}/users", headers=admin_headers)
    assert sorted(u["email"] for u in res.json()) == sorted([ADMIN_EMAIL, USER_EMAIL])


async def test_create_user(client, admin_headers):
    payload = {"email": "new@stockapp.com", "password": "secret1", "role": "Manager"}

    res = await client.post(f"{API}/users", json=payload, headers=admin_headers)
    assert res.status_code == 201
    body = res.json()
    assert body["roles"] == ["Manager"]
    assert body["must_change_password"] is True
    assert body["username"] == "new@stockapp.com"

    res = await client.post(f"{API}/users", json=payload, headers=admin_headers)
    assert res.status_code == 400


async def test_unknown_role_falls_back_to_user(client, admin_headers):
    payload = {"email": "odd@stockapp.com", "password": "secret1", "role": "Overlord"}
    res = await client.post(f"{API}/users", json=payload, headers=admin_headers)
    assert res.json()["roles"] == ["User"]


async def test_claims_add_and_remove(client, seeded, admin_headers):
    user_id = seeded["user_id"]

    res = await client.post(
        f"{API}/users/{user_id}/claims", json={"type": "Permission", "value": "CanViewReports"}, headers=admin_headers
    )
    assert res.json()["claims"] == ["Permission:CanViewReports"]

    res = await client.delete(f"{API}/users/{user_id}/claims/Permission", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["claims"] == []

    res = await client.delete(f"{API}/users/{user_id}/claims/Permission", headers=admin_headers)
    assert res.status_code == 404


async def test_deactivated_user_cannot_log_in(client, seeded, admin_headers):
    res = await client.put(f"{API}/users/{seeded['user_id']}", json={"is_active": False}, headers=admin_headers)
    assert res.json()["is_active"] is False

    res = await _login(client, USER_EMAIL, "Clerk123!")
    assert res.status_code == 401


async def test_permission_catalogue(client, admin_headers):
    res = await client.get(f"{API}/roles/permissions", headers=admin_headers)
    codes = res.json()
    assert len(codes) == 19
    assert "CanUseChat" in codes


async def test_protected_roles(client, seeded, admin_headers):
    for role_id in (seeded["admin_role_id"], seeded["user_role_id"]):
        res = await client.delete(f"{API}/roles/{role_id}", headers=admin_headers)
        assert res.status_code == 400
        assert "cannot be deleted" in res.json()["error"]["message"]

    res = await client.put(f"{API}/roles/{seeded['admin_role_id']}", json={"name": "Boss"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "Admin role name cannot be changed"


async def test_create_and_edit_custom_role(client, admin_headers):
    res = await client.post(
        f"{API}/roles",
        json={"name": "Auditor", "claims": [{"type": "Permission", "value": "CanViewReports"}]},
        headers=admin_headers,
    )
    assert res.status_code == 201
    role = res.json()
    assert role["claims"] == [{"type": "Permission", "value": "CanViewReports"}]

    res = await client.post(f"{API}/roles", json={"name": "Auditor"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "Role 'Auditor' already exists"

    res = await client.put(
        f"{API}/roles/{role['id']}",
        json={"name": "Inspector", "claims": [{"type": "Permission", "value": "CanViewProducts"}]},
        headers=admin_headers,
    )
    assert res.json()["name"] == "Inspector"
    assert [c["value"] for c in res.json()["claims"]] == ["CanViewProducts"]


async def test_deleting_role_moves_members_to_user(client, seeded, admin_headers):
    res = await client.put(f"{API}/users/{seeded['user_id']}", json={"role": "Manager"}, headers=admin_headers)
    assert res.json()["roles"] == ["Manager"]

    res = await client.delete(f"{API}/roles/{seeded['manager_role_id']}", headers=admin_headers)
    assert res.status_code == 204

    res = await client.get(f"{API}/users/{seeded['user_id']}", headers=admin_headers)
    assert res.json()["roles"] == ["User"]


async def test_admin_role_claims_cannot_be_edited(client, seeded, admin_headers):
    res = await client.put(
        f"{API}/roles/{seeded['admin_role_id']}",
        json={"claims": [{"type": "Permission", "value": "CanViewReports"}]},
        headers=admin_headers,
    )
    assert res.status_code == 400
    assert "Admin role permissions cannot be edited" in res.json()["error"]["message"]

    res = await client.get(f"{API}/roles/{seeded['admin_role_id']}", headers=admin_headers)
    assert len(res.json()["claims"]) == 19


async def test_user_role_claims_replaced_but_name_fixed(client, seeded, admin_headers):
    role_id = seeded["user_role_id"]

    res = await client.put(
        f"{API}/roles/{role_id}",
        json={"claims": [{"type": "Permission", "value": "CanViewProducts"}]},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["name"] == "User"
    assert res.json()["claims"] == [{"type": "Permission", "value": "CanViewProducts"}]

    res = await client.put(f"{API}/roles/{role_id}", json={"name": "Member"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "User role name cannot be changed"


async def test_custom_role_permission_is_granted_to_admin(client, seeded, admin_headers):
    res = await client.post(
        f"{API}/roles",
        json={
            "name": "Auditor",
            "claims": [{"type": "Permission", "value": "CanAuditStock"}, {"type": "Department", "value": "Finance"}],
        },
        headers=admin_headers,
    )
    assert res.status_code == 201

    res = await client.get(f"{API}/roles/{seeded['admin_role_id']}", headers=admin_headers)
    claims = res.json()["claims"]
    assert {"type": "Permission", "value": "CanAuditStock"} in claims
    assert {"type": "Department", "value": "Finance"} not in claims
