"""HTTP surface tests against the wired application."""

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from core.container import container
from main import app
from services.page_cache.purger import ARTIFACT_NAMES

from conftest import FILE_BASED

PERMALINK = "https://example.org/hello/"


@pytest.fixture
def client(settings):
    container.settings.override(providers.Object(settings))
    container.reset_singletons()
    try:
        with TestClient(app) as client:
            yield client
    finally:
        container.settings.reset_override()
        container.reset_singletons()


@pytest.fixture
def file_based_site(client, save_cache_config):
    """Save file-based caching options and have the running app pick them up."""
    save_cache_config(FILE_BASED)
    client.post("/api/page-cache/config/reload")
    return client


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "OK"
    assert response.json()["page_caching"] is False


def test_status_with_caching_off(client):
    response = client.get("/api/page-cache/status")

    assert response.status_code == 200
    body = response.json()
    assert body["page_caching_enabled"] is False
    assert body["problems"] == []


def test_activation_writes_dropin_and_boot_flag(file_based_site, host_root):
    client = file_based_site

    response = client.post("/api/page-cache/activation", json={"enabled": True})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["rewritten"] is True
    assert body["state"]["boot_flag_enabled"] is True
    assert body["state"]["dropin_valid"] is True
    assert body["state"]["problems"] == []
    assert "define( 'WP_CACHE', true );" in (host_root / "wp-config.php").read_text(encoding="utf-8")


def test_activation_without_host_config_conflicts(client, host_root):
    (host_root / "wp-config.php").unlink()

    response = client.post("/api/page-cache/activation", json={"enabled": True})

    assert response.status_code == 409
    assert response.json()["success"] is False
    assert "wp-config.php" in response.json()["error"]


def test_enabling_writes_both_artifacts_whatever_is_stored(client, settings):
    response = client.post("/api/page-cache/activation", json={"enabled": True})

    assert response.status_code == 200
    assert response.json()["state"]["boot_flag_enabled"] is True
    assert response.json()["state"]["dropin_valid"] is True
    assert settings.dropin_path.read_text(encoding="utf-8") != ""


def test_disabling_empties_dropin_and_clears_flag(file_based_site, settings):
    client = file_based_site
    client.post("/api/page-cache/activation", json={"enabled": True})

    response = client.post("/api/page-cache/activation", json={"enabled": False})

    assert response.status_code == 200
    assert response.json()["rewritten"] is True
    assert response.json()["state"]["boot_flag_enabled"] is False
    assert response.json()["state"]["dropin_valid"] is False
    assert settings.dropin_path.read_text(encoding="utf-8") == ""


def test_fix_repairs_deleted_dropin(file_based_site, settings):
    client = file_based_site
    client.post("/api/page-cache/activation", json={"enabled": True})
    settings.dropin_path.unlink()

    assert client.get("/api/page-cache/status").json()["problems"] == [
        "advanced-cache.php was edited or deleted."
    ]

    response = client.post("/api/page-cache/fix")

    assert response.status_code == 200
    assert response.json()["rewritten"] is False
    assert response.json()["state"]["problems"] == []


def test_clean_up(client, settings, cached_page):
    client.post("/api/page-cache/activation", json={"enabled": False})
    cached_page("example.org/hello")

    response = client.delete("/api/page-cache/")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert not settings.dropin_path.exists()
    assert not settings.cache_root.exists()


def test_config_reload(client, save_cache_config):
    assert client.get("/api/page-cache/status").json()["page_caching_enabled"] is False
    save_cache_config(FILE_BASED)

    response = client.post("/api/page-cache/config/reload")

    assert response.status_code == 200
    assert response.json()["config"]["enable_page_caching"] is True
    assert client.get("/api/page-cache/status").json()["page_caching_enabled"] is True


def test_approved_comment_purges_and_sets_cookie(file_based_site, cached_page):
    client = file_based_site
    page = cached_page("example.org/hello")

    response = client.post("/api/page-cache/events", json={
        "event": {
            "type": "comment_posted",
            "comment_id": 7,
            "post_id": 42,
            "approved": 1,
            "permalink": PERMALINK,
        }
    })

    assert response.status_code == 200
    body = response.json()
    assert body["actions"] == [{"action": "purge_paths", "paths": [str(page)]}]
    assert body["cookies"][0]["name"] == "sc_commented_posts[42]"
    assert not any((page / name).exists() for name in ARTIFACT_NAMES)

    cookies = response.headers.get_list("set-cookie")
    assert len(cookies) == 1
    assert cookies[0].startswith("sc_commented_posts[42]=/hello/;")


def test_autosave_event_does_nothing(file_based_site, cached_page):
    client = file_based_site
    page = cached_page("example.org/hello")

    response = client.post("/api/page-cache/events", json={
        "event": {"type": "post_updated", "post_id": 42},
        "context": {"is_autosave": True},
    })

    assert response.status_code == 200
    assert response.json()["actions"] == [{"action": "none"}]
    assert response.json()["cookies"] == []
    assert "set-cookie" not in response.headers
    assert (page / "index.html").exists()


def test_post_trash_purges_store(file_based_site, settings, cached_page):
    client = file_based_site
    cached_page("example.org/hello")

    response = client.post("/api/page-cache/events", json={
        "event": {"type": "post_trashed", "post_id": 42},
    })

    assert response.json()["actions"] == [
        {"action": "purge_all", "cache_root": str(settings.cache_root)}
    ]
    assert not settings.cache_root.exists()


def test_unknown_event_type_rejected(client):
    response = client.post("/api/page-cache/events", json={"event": {"type": "post_exploded"}})

    assert response.status_code == 422
