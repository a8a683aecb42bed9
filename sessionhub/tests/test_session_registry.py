import json
import os
import tempfile
import unittest
from pathlib import Path

from sessionhub.path_keys import cwd_to_path_key
from sessionhub.registry.active_sessions import ActiveSessionTable
from sessionhub.registry.session_registry import SessionRegistry


def _entries(session_id: str, text: str, ts: str, cwd: str | None = "/work/app") -> list[dict]:
    user = {
        "type": "user",
        "sessionId": session_id,
        "uuid": f"{session_id}-u1",
        "parentUuid": None,
        "timestamp": ts,
        "message": {"role": "user", "content": text},
    }
    assistant = {
        "type": "assistant",
        "sessionId": session_id,
        "uuid": f"{session_id}-a1",
        "parentUuid": f"{session_id}-u1",
        "timestamp": ts,
        "message": {"role": "assistant", "content": [{"type": "text", "text": f"Reply to {text}"}]},
    }
    if cwd is not None:
        user["cwd"] = cwd
        assistant["cwd"] = cwd
    return [user, assistant]


class SessionRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.projects_dir = Path(tmpdir.name) / "projects"
        self.projects_dir.mkdir()
        self.table = ActiveSessionTable()
        self.registry = SessionRegistry(self.projects_dir, self.table, background_session_prefix="agent-")

    def _write_transcript(self, project_key: str, session_id: str, lines: list[dict]) -> Path:
        project_dir = self.projects_dir / project_key
        project_dir.mkdir(parents=True, exist_ok=True)
        path = project_dir / f"{session_id}.jsonl"
        path.write_text("\n".join(json.dumps(line) for line in lines) + "\n", encoding="utf-8")
        return path

    def test_live_session_on_disk_appears_once_with_disk_fields(self) -> None:
        self._write_transcript("-work-app", "S-1", _entries("S-1", "Fix the bug", "2024-01-01T00:00:00.000Z"))
        live = self.registry.register_session("S-1", "/work/app")

        response = self.registry.list_sessions()

        self.assertEqual(response.total, 1)
        info = response.sessions[0]
        self.assertEqual(info.id, "S-1")
        self.assertTrue(info.active)
        self.assertEqual(info.summary, "Fix the bug")
        self.assertEqual(info.messageCount, 2)
        self.assertEqual(info.lastUserMessage, "Fix the bug")
        self.assertEqual(info.lastAssistantMessage, "Reply to Fix the bug")
        self.assertNotEqual(info.lastActivity, "2024-01-01T00:00:00.000Z")
        self.assertTrue(info.lastActivity.startswith(live.lastActivity.strftime("%Y-%m-%dT%H:%M")))

    def test_live_session_without_transcript_uses_placeholder(self) -> None:
        self.registry.register_session("S-new", "/work/app")
        info = self.registry.list_sessions().sessions[0]
        self.assertEqual(info.summary, "Active session")
        self.assertEqual(info.messageCount, 0)
        self.assertEqual(info.project, "-work-app")
        self.assertTrue(info.active)

    def test_historical_session_fields(self) -> None:
        self._write_transcript("-work-app", "S-old", _entries("S-old", "Hello", "2024-01-01T00:00:00.000Z"))
        info = self.registry.list_sessions().sessions[0]
        self.assertFalse(info.active)
        self.assertEqual(info.project, "-work-app")
        self.assertEqual(info.cwd, "/work/app")
        self.assertEqual(info.lastActivity, "2024-01-01T00:00:00.000Z")

    def test_cwd_is_derived_from_directory_when_transcript_has_none(self) -> None:
        self._write_transcript("-home-me-my-tool", "S-1", _entries("S-1", "Hi", "2024-01-01T00:00:00.000Z", cwd=None))
        info = self.registry.list_sessions().sessions[0]
        self.assertEqual(info.cwd, "/home/me/my/tool")
        self.assertEqual(info.project, "-home-me-my-tool")

    def test_background_and_empty_transcripts_are_excluded(self) -> None:
        self._write_transcript("-work-app", "agent-1234", _entries("agent-1234", "Warm", "2024-01-03T00:00:00.000Z"))
        self._write_transcript("-work-app", "S-empty", [{"type": "summary", "summary": "x", "leafUuid": "y"}])
        self._write_transcript("-work-app", "S-keep", _entries("S-keep", "Keep me", "2024-01-01T00:00:00.000Z"))
        (self.projects_dir / "-work-app" / "notes.txt").write_text("ignore", encoding="utf-8")

        response = self.registry.list_sessions()

        self.assertEqual([s.id for s in response.sessions], ["S-keep"])
        self.assertEqual(response.total, 1)

    def test_sorted_by_last_activity_descending(self) -> None:
        self._write_transcript("-work-app", "S-older", _entries("S-older", "a", "2024-01-01T00:00:00Z"))
        self._write_transcript("-work-lib", "S-newer", _entries("S-newer", "b", "2024-01-02T00:00:00Z"))
        response = self.registry.list_sessions()
        self.assertEqual([s.id for s in response.sessions], ["S-newer", "S-older"])

    def test_pagination(self) -> None:
        for day in range(1, 26):
            session_id = f"S-{day:02d}"
            self._write_transcript("-work-app", session_id, _entries(session_id, "q", f"2024-01-{day:02d}T00:00:00.000Z"))

        tail = self.registry.list_sessions(limit=10, offset=20)
        self.assertEqual(len(tail.sessions), 5)
        self.assertFalse(tail.hasMore)
        self.assertEqual(tail.total, 25)
        self.assertEqual(tail.sessions[-1].id, "S-01")

        head = self.registry.list_sessions(limit=10, offset=0)
        self.assertEqual(len(head.sessions), 10)
        self.assertTrue(head.hasMore)
        self.assertEqual(head.total, 25)
        self.assertEqual(head.sessions[0].id, "S-25")

        beyond = self.registry.list_sessions(limit=10, offset=40)
        self.assertEqual(beyond.sessions, [])
        self.assertFalse(beyond.hasMore)

    def test_cwd_filter_limits_sources(self) -> None:
        self._write_transcript("-work-app", "S-app", _entries("S-app", "a", "2024-01-01T00:00:00Z"))
        self._write_transcript("-work-lib", "S-lib", _entries("S-lib", "b", "2024-01-02T00:00:00Z", cwd="/work/lib"))
        self.registry.register_session("S-live-app", "/work/app")
        self.registry.register_session("S-live-lib", "/work/lib")

        response = self.registry.list_sessions(cwd="/work/app")

        self.assertEqual(sorted(s.id for s in response.sessions), ["S-app", "S-live-app"])

    def test_empty_cwd_filter_does_not_scan_process_directory(self) -> None:
        workdir = Path(self.projects_dir.parent) / "workdir"
        workdir.mkdir()
        self.addCleanup(os.chdir, os.getcwd())
        os.chdir(workdir)
        self._write_transcript(cwd_to_path_key(str(workdir)), "S-x", _entries("S-x", "x", "2024-01-01T00:00:00Z"))

        response = self.registry.list_sessions(cwd="")

        self.assertEqual(response.total, 0)
        self.assertEqual(response.sessions, [])

    def test_missing_projects_dir_still_lists_live_sessions(self) -> None:
        registry = SessionRegistry(self.projects_dir / "absent", ActiveSessionTable())
        registry.register_session("S-1", "/work/app")
        response = registry.list_sessions()
        self.assertEqual(response.total, 1)
        self.assertEqual(registry.list_sessions(cwd="/nowhere").total, 0)

    def test_get_session_info_prefers_live_state(self) -> None:
        self._write_transcript("-work-app", "S-1", _entries("S-1", "On disk", "2024-01-01T00:00:00Z"))
        self.registry.register_session("S-1", "/work/app")
        info = self.registry.get_session_info("S-1")
        assert info is not None
        self.assertTrue(info.active)
        self.assertEqual(info.summary, "Active session")

    def test_get_session_info_from_disk(self) -> None:
        self._write_transcript("-srv-site", "S-2", _entries("S-2", "Deploy", "2024-01-01T00:00:00Z", cwd=None))
        info = self.registry.get_session_info("S-2")
        assert info is not None
        self.assertFalse(info.active)
        self.assertEqual(info.project, "-srv-site")
        self.assertEqual(info.cwd, "/srv/site")
        self.assertEqual(info.summary, "Deploy")

    def test_get_session_info_not_found(self) -> None:
        self.assertIsNone(self.registry.get_session_info("S-missing"))
        self.assertIsNone(self.registry.get_session_info("../etc/passwd"))

    def test_load_chat_items(self) -> None:
        self._write_transcript("-work-app", "S-1", _entries("S-1", "Hello", "2024-01-01T00:00:00Z"))
        messages = self.registry.load_chat_items("S-1")
        self.assertEqual([m.content for m in messages], ["Hello", "Reply to Hello"])
        self.assertEqual(self.registry.load_chat_items("S-none"), [])

    def test_lifecycle_delegates_to_table(self) -> None:
        self.registry.register_session("S-1", "/work/app", {"currentModeId": "default"})
        self.assertTrue(self.registry.is_session_active("S-1"))
        self.registry.update_modes("S-1", {"currentModeId": "plan"})
        self.assertEqual(self.registry.get_active_session("S-1").modes, {"currentModeId": "plan"})
        self.assertIsNotNone(self.registry.update_activity("S-1"))
        self.assertEqual(len(self.registry.get_active_sessions()), 1)
        self.assertTrue(self.registry.unregister_session("S-1"))
        self.assertFalse(self.table.contains("S-1"))


if __name__ == "__main__":
    unittest.main()
