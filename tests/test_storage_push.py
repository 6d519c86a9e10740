import io
import sys
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import patch
from urllib import error

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from feedpub.assets import BuildAsset, BuildAssetIndex, LocationRecorder  # noqa: E402
from feedpub.errors import FeedRequestError, FeedUnavailableError  # noqa: E402
from feedpub.feeds import parse_object_storage_feed_url  # noqa: E402
from feedpub.publish import (  # noqa: E402
    ObjectStorageClient,
    ObjectStoragePushEngine,
    StorageItem,
    StoragePushOptions,
    Throttle,
)

STORAGE_URL = "https://dotnetbuilds.blob.core.windows.net/public/index.json"


class _FakeStorage:
    def __init__(self) -> None:
        self.items: dict[str, bytes] = {}
        self.uploads: list[str] = []
        self.unavailable: set[str] = set()
        # Content another writer stores between our fetch and our upload.
        self.late_writers: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def fetch(self, relative_path: str):
        if relative_path in self.unavailable:
            raise FeedUnavailableError("storage 503")
        with self._lock:
            return self.items.get(relative_path)

    def upload(self, relative_path: str, data: bytes, *, overwrite: bool) -> bool:
        with self._lock:
            if relative_path in self.late_writers:
                self.items[relative_path] = self.late_writers.pop(relative_path)
            if not overwrite and relative_path in self.items:
                return False
            self.items[relative_path] = data
            self.uploads.append(relative_path)
            return True


class ObjectStoragePushEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self._temp_dir.cleanup)
        self.base = Path(self._temp_dir.name)
        self.storage = _FakeStorage()
        self.recorder = LocationRecorder(
            BuildAssetIndex(
                [
                    BuildAsset(asset_id=1, name="a.zip"),
                    BuildAsset(asset_id=2, name="b.zip"),
                    BuildAsset(asset_id=3, name="c.zip"),
                ]
            )
        )

    def _item(self, name: str, content: bytes | None = None) -> StorageItem:
        path = self.base / name
        if content is not None:
            path.write_bytes(content)
        return StorageItem(
            display_name=name,
            local_path=path,
            relative_path=f"assets/{name}",
            asset_name=name,
            asset_version=None,
            location_kind="container",
        )

    def _engine(self, **options) -> ObjectStoragePushEngine:
        return ObjectStoragePushEngine(
            self.storage,
            self.recorder,
            feed_url=STORAGE_URL,
            options=StoragePushOptions(**options),
        )

    def test_conflict_fails_only_that_item(self) -> None:
        self.storage.items["assets/b.zip"] = b"old"
        items = [self._item("a.zip", b"a"), self._item("b.zip", b"new"), self._item("c.zip", b"c")]

        results = self._engine(allow_overwrite=False).push_many(items, Throttle(2))

        self.assertEqual([result.outcome for result in results], ["published", "conflict", "published"])
        self.assertEqual(self.storage.items["assets/b.zip"], b"old")
        self.assertEqual(sorted(self.storage.uploads), ["assets/a.zip", "assets/c.zip"])
        self.assertEqual({fact.asset_id for fact in self.recorder.facts()}, {1, 3})
        self.assertTrue(all(fact.kind == "container" for fact in self.recorder.facts()))

    def test_identical_existing_is_skipped(self) -> None:
        self.storage.items["assets/a.zip"] = b"same"

        result = self._engine().push_item(self._item("a.zip", b"same"))

        self.assertEqual(result.outcome, "skipped_identical")
        self.assertEqual(self.storage.uploads, [])
        self.assertEqual(len(self.recorder.facts()), 1)

    def test_identical_without_pass_option_conflicts(self) -> None:
        self.storage.items["assets/a.zip"] = b"same"

        result = self._engine(pass_if_identical=False).push_item(self._item("a.zip", b"same"))

        self.assertEqual(result.outcome, "conflict")
        self.assertEqual(self.recorder.facts(), [])

    def test_overwrite_replaces_existing(self) -> None:
        self.storage.items["assets/a.zip"] = b"old"

        result = self._engine(allow_overwrite=True).push_item(self._item("a.zip", b"new"))

        self.assertEqual(result.outcome, "published")
        self.assertEqual(self.storage.items["assets/a.zip"], b"new")

    def test_item_created_after_fetch_conflicts(self) -> None:
        self.storage.late_writers["assets/a.zip"] = b"theirs"

        result = self._engine().push_item(self._item("a.zip", b"ours"))

        self.assertEqual(result.outcome, "conflict")
        self.assertEqual(self.storage.items["assets/a.zip"], b"theirs")
        self.assertEqual(self.storage.uploads, [])
        self.assertEqual(self.recorder.facts(), [])

    def test_identical_item_created_after_fetch_is_skipped(self) -> None:
        self.storage.late_writers["assets/a.zip"] = b"same"

        result = self._engine().push_item(self._item("a.zip", b"same"))

        self.assertEqual(result.outcome, "skipped_identical")
        self.assertEqual(len(self.recorder.facts()), 1)

    def test_unavailable_storage_is_transient(self) -> None:
        self.storage.unavailable.add("assets/a.zip")

        result = self._engine().push_item(self._item("a.zip", b"a"))

        self.assertEqual(result.outcome, "transient_failure")
        self.assertFalse(result.succeeded)

    def test_missing_local_file_is_fatal(self) -> None:
        result = self._engine().push_item(self._item("a.zip"))

        self.assertEqual(result.outcome, "fatal")
        self.assertEqual(self.storage.uploads, [])


class _FakeResponse:
    def __init__(self, payload: bytes) -> None:
        self._payload = payload

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def read(self):
        return self._payload


class ObjectStorageClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = ObjectStorageClient(
            parse_object_storage_feed_url(STORAGE_URL),
            "?sv=2020&sig=secret",
            timeout_s=7,
        )

    def test_upload_puts_block_blob(self) -> None:
        captured = {}

        def fake_urlopen(req, timeout):
            captured["url"] = req.full_url
            captured["method"] = req.get_method()
            captured["headers"] = dict(req.header_items())
            captured["data"] = req.data
            captured["timeout"] = timeout
            return _FakeResponse(b"")

        with patch("feedpub.publish.http.request.urlopen", side_effect=fake_urlopen):
            created = self.client.upload("assets/a.zip", b"content", overwrite=False)

        self.assertEqual(
            captured["url"],
            "https://dotnetbuilds.blob.core.windows.net/public/assets/a.zip?sv=2020&sig=secret",
        )
        self.assertEqual(captured["method"], "PUT")
        self.assertEqual(captured["headers"]["X-ms-blob-type"], "BlockBlob")
        self.assertEqual(captured["data"], b"content")
        self.assertEqual(captured["timeout"], 7)
        self.assertEqual(captured["headers"]["If-none-match"], "*")
        self.assertTrue(created)

    def test_overwrite_upload_is_unconditional(self) -> None:
        captured = {}

        def fake_urlopen(req, timeout):
            captured["headers"] = dict(req.header_items())
            return _FakeResponse(b"")

        with patch("feedpub.publish.http.request.urlopen", side_effect=fake_urlopen):
            self.assertTrue(self.client.upload("assets/a.zip", b"content", overwrite=True))
        self.assertNotIn("If-none-match", captured["headers"])

    def test_existing_blob_rejects_conditional_upload(self) -> None:
        for status in (409, 412):
            exists = error.HTTPError(url=STORAGE_URL, code=status, msg="exists", hdrs=None, fp=io.BytesIO(b""))
            with patch("feedpub.publish.http.request.urlopen", side_effect=exists):
                self.assertFalse(self.client.upload("assets/a.zip", b"content", overwrite=False))

    def test_forbidden_upload_still_raises(self) -> None:
        forbidden = error.HTTPError(url=STORAGE_URL, code=403, msg="denied", hdrs=None, fp=io.BytesIO(b""))
        with patch("feedpub.publish.http.request.urlopen", side_effect=forbidden):
            with self.assertRaises(FeedRequestError) as ctx:
                self.client.upload("assets/a.zip", b"content", overwrite=False)
        self.assertEqual(ctx.exception.status, 403)

    def test_fetch_missing_returns_none(self) -> None:
        not_found = error.HTTPError(url=STORAGE_URL, code=404, msg="nf", hdrs=None, fp=io.BytesIO(b""))
        with patch("feedpub.publish.http.request.urlopen", side_effect=not_found):
            self.assertIsNone(self.client.fetch("assets/a.zip"))

    def test_error_message_hides_token(self) -> None:
        forbidden = error.HTTPError(url=STORAGE_URL, code=403, msg="denied", hdrs=None, fp=io.BytesIO(b""))
        with patch("feedpub.publish.http.request.urlopen", side_effect=forbidden):
            with self.assertRaises(FeedRequestError) as ctx:
                self.client.fetch("assets/a.zip")
        self.assertNotIn("secret", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
