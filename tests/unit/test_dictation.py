import pytest

from streamfold.dictation import DictationSession, RecognitionResult, join_with_space


class FakeRecognizer:
    def __init__(self, session, fail=False):
        self.session = session
        self.fail = fail
        self.started = 0
        self.stopped = False
        self.aborted = False

    def start(self):
        if self.fail:
            raise RuntimeError("no microphone")
        self.started += 1

    def stop(self):
        self.stopped = True

    def abort(self):
        self.aborted = True


@pytest.fixture
def recognizers():
    return []


@pytest.fixture
def session(recognizers):
    def factory(s):
        recognizer = FakeRecognizer(s)
        recognizers.append(recognizer)
        return recognizer
    return DictationSession(factory)


class TestJoinWithSpace:
    @pytest.mark.parametrize("a, b, expected", [
        ("", "b", "b"),
        ("a", "", "a"),
        ("a", "b", "a b"),
        ("a ", "b", "a b"),
        ("a", " b", "a b"),
    ])
    def test_join(self, a, b, expected):
        assert join_with_space(a, b) == expected


class TestDictationSession:
    def test_start_records(self, session, recognizers):
        session.start("", lambda text: None)
        assert session.is_recording is True
        assert recognizers[0].started == 1

    def test_merges_base_final_and_interim(self, session):
        seen = []
        session.start("Hello", seen.append)
        session.on_result([
            RecognitionResult("there", is_final=True),
            RecognitionResult("gen", is_final=False),
        ])
        assert seen[-1] == "Hello there gen"
        session.on_result([
            RecognitionResult("there", is_final=True),
            RecognitionResult("general", is_final=True),
        ], result_index=1)
        assert seen[-1] == "Hello there general"

    def test_restarts_after_pause(self, session, recognizers):
        seen = []
        session.start("", seen.append)
        session.on_result([RecognitionResult("first", is_final=True)])
        session.on_end()
        assert len(recognizers) == 2
        session.on_result([RecognitionResult("second", is_final=True)])
        assert seen[-1] == "first second"

    def test_no_restart_after_stop(self, session, recognizers):
        session.start("", lambda text: None)
        session.stop()
        session.on_end()
        assert len(recognizers) == 1
        assert recognizers[0].stopped is True
        assert session.is_recording is False

    def test_aborted_error_is_ignored(self, session):
        session.start("", lambda text: None)
        session.on_error("aborted")
        assert session.error is None
        assert session.is_recording is True

    def test_other_errors_stop(self, session, recognizers):
        session.start("", lambda text: None)
        session.on_error("not-allowed")
        assert session.error == "Speech recognition error: not-allowed"
        assert session.is_recording is False
        session.on_end()
        assert len(recognizers) == 1

    def test_failed_start(self):
        session = DictationSession(lambda s: FakeRecognizer(s, fail=True))
        session.start("", lambda text: None)
        assert "no microphone" in session.error
        assert session.is_recording is False

    def test_restart_aborts_previous(self, session, recognizers):
        session.start("", lambda text: None)
        session.start("again", lambda text: None)
        assert recognizers[0].aborted is True
        assert session.final_text == ""
