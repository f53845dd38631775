"""Cache purge tests."""

from pathlib import Path

from services.page_cache.models import NoAction, PurgeAll, PurgePaths
from services.page_cache.purger import ARTIFACT_NAMES


def test_purge_of_missing_page_succeeds(purger, settings):
    result = purger.purge(settings.cache_root / "example.org" / "never-cached")

    assert result.ok
    assert result.removed == 0


def test_purge_removes_exactly_the_page_renderings(purger, cached_page):
    page = cached_page("example.org/hello")
    sibling = cached_page("example.org/other-post")
    (page / "notes.txt").write_text("keep", encoding="utf-8")

    result = purger.purge(page)

    assert result.removed == len(ARTIFACT_NAMES)
    assert result.ok
    assert not any((page / name).exists() for name in ARTIFACT_NAMES)
    assert (page / "notes.txt").exists()
    assert all((sibling / name).exists() for name in ARTIFACT_NAMES)


def test_purge_tolerates_partial_renderings(purger, cached_page):
    page = cached_page("example.org/hello")
    (page / "index.gzip.html").unlink()

    result = purger.purge(page)

    assert result.ok
    assert result.removed == 1


def test_purge_refuses_paths_outside_cache_root(purger, settings, tmp_path):
    outside = tmp_path / "elsewhere"
    outside.mkdir()
    (outside / "index.html").write_text("precious", encoding="utf-8")

    purger.purge(settings.cache_root / ".." / ".." / ".." / ".." / "elsewhere")

    assert (outside / "index.html").exists()


def test_purge_reports_unexpected_errors_without_raising(purger, cached_page, monkeypatch):
    page = cached_page("example.org/hello")
    original_unlink = Path.unlink

    def unlink(self, *args, **kwargs):
        if self.name == "index.html":
            raise PermissionError(13, "Permission denied", str(self))
        return original_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", unlink)

    result = purger.purge(page)

    assert result.failed == 1
    assert result.removed == 1
    assert not result.ok


def test_purge_all_removes_every_page(purger, settings, cached_page):
    cached_page("example.org/hello")
    cached_page("example.org/2024/05/deep/post")
    cached_page("example.org")

    result = purger.purge_all()

    assert result.ok
    assert result.removed == 3 * len(ARTIFACT_NAMES)
    assert not settings.cache_root.exists()


def test_purge_all_of_missing_store_succeeds(purger, settings):
    assert not settings.cache_root.exists()

    assert purger.purge_all().ok


def test_purge_all_continues_past_failures(purger, settings, cached_page, monkeypatch):
    cached_page("example.org/a")
    cached_page("example.org/b")
    original_unlink = Path.unlink

    def unlink(self, *args, **kwargs):
        if self.parent.name == "a" and self.name == "index.html":
            raise OSError(5, "Input/output error", str(self))
        return original_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", unlink)

    result = purger.purge_all()

    assert result.failed == 1
    assert result.removed == 2 * len(ARTIFACT_NAMES) - 1
    assert not (settings.cache_root / "example.org" / "b").exists()
    assert (settings.cache_root / "example.org" / "a" / "index.html").exists()


def test_apply_dispatches_on_action(purger, settings, cached_page):
    hello = cached_page("example.org/hello")
    other = cached_page("example.org/other")

    assert purger.apply(NoAction()).removed == 0
    assert hello.joinpath("index.html").exists()

    purger.apply(PurgePaths(frozenset([hello])))
    assert not hello.joinpath("index.html").exists()
    assert other.joinpath("index.html").exists()

    purger.apply(PurgeAll(settings.cache_root))
    assert not settings.cache_root.exists()


def test_comment_approval_purges_only_its_post(policy_for, file_based_store, purger, cached_page):
    hello = cached_page("example.org/hello")
    other = cached_page("example.org/other-post")
    policy = policy_for(file_based_store)

    action = policy.on_comment_status_changed(7, "approve", permalink="https://example.org/hello/")
    purger.apply(action)

    assert action == PurgePaths(frozenset([hello]))
    assert sorted(p.name for p in hello.iterdir()) == []
    assert sorted(p.name for p in other.iterdir()) == sorted(ARTIFACT_NAMES)


def test_post_edit_purges_whole_store(policy_for, file_based_store, purger, settings, cached_page):
    cached_page("example.org/hello")
    cached_page("example.org/category/news")
    policy = policy_for(file_based_store)

    purger.apply(policy.on_post_mutated(42, "post", False, True, False))

    assert not settings.cache_root.exists()
