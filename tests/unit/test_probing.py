import pytest

from sms_dispatch.gateway import Candidate, ProbeAttempt, ProbeVerdict, RequestShape, probe_sequentially
from sms_dispatch.gateway.probing import expand_candidates


def _scripted(verdicts: dict[str, ProbeVerdict]):
    calls: list[str] = []

    async def attempt(candidate: Candidate) -> ProbeAttempt:
        calls.append(candidate.path)
        return ProbeAttempt(candidate, verdicts.get(candidate.path, ProbeVerdict.RETRYABLE), body={"path": candidate.path})

    return attempt, calls


class TestProbeSequentially:
    @pytest.mark.asyncio
    async def test_stops_at_first_success(self):
        candidates = [Candidate(f"/c{i}") for i in range(1, 6)]
        attempt, calls = _scripted({"/c3": ProbeVerdict.SUCCESS, "/c4": ProbeVerdict.SUCCESS})

        report = await probe_sequentially(candidates, attempt)

        assert calls == ["/c1", "/c2", "/c3"]
        assert report.winner is not None
        assert report.winner.candidate.path == "/c3"
        assert [c.path for c in report.tried] == calls

    @pytest.mark.asyncio
    async def test_fatal_aborts(self):
        candidates = [Candidate("/a"), Candidate("/b"), Candidate("/c")]
        attempt, calls = _scripted({"/a": ProbeVerdict.FATAL})

        report = await probe_sequentially(candidates, attempt)

        assert calls == ["/a"]
        assert report.aborted is True
        assert report.winner is None

    @pytest.mark.asyncio
    async def test_exhaustion(self):
        candidates = [Candidate("/a"), Candidate("/b")]
        attempt, calls = _scripted({})

        report = await probe_sequentially(candidates, attempt)

        assert calls == ["/a", "/b"]
        assert report.winner is None
        assert report.aborted is False

    @pytest.mark.asyncio
    async def test_records_duration(self):
        attempt, _ = _scripted({"/a": ProbeVerdict.SUCCESS})
        report = await probe_sequentially([Candidate("/a")], attempt)
        assert report.attempts[0].duration_ms >= 0


def test_expand_candidates_is_path_major():
    shapes = (RequestShape.FORM_POST, RequestShape.JSON_POST, RequestShape.QUERY_GET)
    candidates = expand_candidates(["/x", "/y"], shapes)

    assert [(c.path, c.shape) for c in candidates] == [
        ("/x", RequestShape.FORM_POST),
        ("/x", RequestShape.JSON_POST),
        ("/x", RequestShape.QUERY_GET),
        ("/y", RequestShape.FORM_POST),
        ("/y", RequestShape.JSON_POST),
        ("/y", RequestShape.QUERY_GET),
    ]
