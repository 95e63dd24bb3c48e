"""GitHub push webhooks: signature check, relevance filter and deferred scan scheduling."""

import asyncio
import hashlib
import hmac
import unittest
from unittest.mock import MagicMock

from support import add_repository, add_user, memory_session_factory

from app.api.v1.webhooks import handle_push, has_scannable_changes, verify_signature
from app.models import Activity


def _push(github_id: str = "555", ref: str = "refs/heads/main", commits: list | None = None) -> dict:
    return {
        "ref": ref,
        "repository": {"id": int(github_id), "full_name": "alice/shop"},
        "commits": commits if commits is not None else [{"added": ["src/api.py"], "modified": []}],
    }


class TestVerifySignature(unittest.TestCase):
    def test_valid_and_invalid(self) -> None:
        body = b'{"zen": "Keep it logically awesome."}'
        good = "sha256=" + hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
        self.assertTrue(verify_signature("s3cret", body, good))
        self.assertFalse(verify_signature("other", body, good))
        self.assertFalse(verify_signature("s3cret", body, None))
        self.assertFalse(verify_signature("s3cret", body, "sha1=abc"))


class TestHasScannableChanges(unittest.TestCase):
    def test_relevance(self) -> None:
        self.assertTrue(has_scannable_changes([{"added": [], "modified": ["deploy/Dockerfile"]}]))
        self.assertTrue(has_scannable_changes([{"added": ["docs/a.md"]}, {"modified": ["app/main.go"]}]))
        self.assertFalse(has_scannable_changes([{"added": ["docs/a.md"], "modified": ["img/logo.svg"]}]))
        self.assertFalse(has_scannable_changes([]))


class TestHandlePush(unittest.TestCase):
    """handle_push schedules a WEBHOOK scan only for auto-scan repositories with relevant changes."""

    def setUp(self) -> None:
        self.db = memory_session_factory()()
        user = add_user(self.db)
        self.repository = add_repository(self.db, user, github_id="555", branch="main")
        self.repository_id = self.repository.id
        self.user_id = user.id
        self.orchestrator = MagicMock()

    def tearDown(self) -> None:
        self.db.close()

    def test_schedules_scan(self) -> None:
        result = asyncio.run(handle_push(_push(), self.db, self.orchestrator, 30))
        self.assertEqual(result, "scan_scheduled")
        self.orchestrator.schedule_trigger.assert_called_once_with(
            self.repository_id, self.user_id, "WEBHOOK", 30
        )
        activity = self.db.query(Activity).one()
        self.assertEqual(activity.type, "WEBHOOK_PUSH_RECEIVED")

    def test_unknown_repository(self) -> None:
        result = asyncio.run(handle_push(_push(github_id="999"), self.db, self.orchestrator, 30))
        self.assertEqual(result, "ignored")
        self.orchestrator.schedule_trigger.assert_not_called()

    def test_other_branch(self) -> None:
        result = asyncio.run(handle_push(_push(ref="refs/heads/feature"), self.db, self.orchestrator, 30))
        self.assertEqual(result, "ignored")

    def test_auto_scan_disabled(self) -> None:
        self.repository.auto_scan = False
        self.db.commit()
        result = asyncio.run(handle_push(_push(), self.db, self.orchestrator, 30))
        self.assertEqual(result, "ignored")
        self.orchestrator.schedule_trigger.assert_not_called()

    def test_no_relevant_changes(self) -> None:
        push = _push(commits=[{"added": ["README.md"], "modified": ["docs/guide.md"]}])
        result = asyncio.run(handle_push(push, self.db, self.orchestrator, 30))
        self.assertEqual(result, "no_relevant_changes")
        self.orchestrator.schedule_trigger.assert_not_called()
        self.assertEqual(self.db.query(Activity).count(), 0)
