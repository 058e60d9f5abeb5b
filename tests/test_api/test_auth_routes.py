from urllib.parse import unquote


def test_valid_credentials_navigate_to_dashboard(client):
    response = client.post(
        "/auth/login",
        data={"email": "pm@example.com", "password": "correct-horse"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"
    assert response.cookies.get("sb-access-token")
    assert "Login successful!" in unquote(response.cookies.get("flash"))


def test_invalid_credentials_stay_on_login_with_provider_text(client):
    response = client.post(
        "/auth/login",
        data={"email": "pm@example.com", "password": "nope"},
        follow_redirects=False,
    )
    assert response.status_code == 401
    assert "location" not in response.headers
    assert "Login failed: Invalid login credentials" in response.text
    assert 'value="pm@example.com"' in response.text
    assert not response.cookies.get("sb-access-token")


def test_token_endpoint_for_api_clients(client):
    ok = client.post("/auth/token", json={"email": "pm@example.com", "password": "correct-horse"})
    assert ok.status_code == 200
    assert ok.json()["access_token"]

    denied = client.post("/auth/token", json={"email": "pm@example.com", "password": "nope"})
    assert denied.status_code == 401
    assert denied.json()["detail"] == "Invalid login credentials"


def test_oauth_redirects_to_provider_with_post_login_target(client):
    response = client.get("/auth/oauth/google", follow_redirects=False)
    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("https://example.supabase.co/auth/v1/authorize?provider=google")
    assert location.endswith("redirect_to=http://testserver/dashboard")
    assert response.cookies.get("sb-code-verifier") == "verifier-xyz"


def test_oauth_callback_exchanges_code(client):
    client.cookies.set("sb-code-verifier", "verifier-xyz")
    response = client.get("/dashboard?code=good-code", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"
    assert response.cookies.get("sb-access-token")


def test_oauth_callback_failure_shows_notification(client):
    client.cookies.set("sb-code-verifier", "verifier-xyz")
    response = client.get("/dashboard?code=bad-code", follow_redirects=False)
    assert response.status_code == 401
    assert "Google login failed: invalid flow state, no valid flow state found" in response.text


def test_oauth_failure_names_the_provider_used(client):
    start = client.get("/auth/oauth/github", follow_redirects=False)
    assert start.cookies.get("sb-oauth-provider") == "github"

    response = client.get("/dashboard?code=bad-code", follow_redirects=False)
    assert response.status_code == 401
    assert "Github login failed: invalid flow state, no valid flow state found" in response.text
    assert "Google login failed" not in response.text


def test_oauth_provider_error_redirect(client):
    response = client.get("/dashboard?error=access_denied&error_description=User+cancelled", follow_redirects=False)
    assert response.status_code == 401
    assert "Google login failed: User cancelled" in response.text


def test_me_and_logout(signed_in, identity):
    me = signed_in.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == "pm@example.com"

    response = signed_in.post("/auth/logout", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/login"
    assert len(identity.signed_out) == 1


def test_me_requires_session(client):
    assert client.get("/auth/me").status_code == 401
