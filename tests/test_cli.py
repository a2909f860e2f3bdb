"""Tests for the fsk-modem command line."""

import pytest
import numpy as np

from fskmodem.cli import main
from fskmodem.modem.fsk import FSKModulator


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ["MODEM_PROFILE", "MODEM_SAMPLE_RATE", "MODEM_BAUD", "MODEM_MARK_FREQ", "MODEM_SPACE_FREQ"]:
        monkeypatch.delenv(var, raising=False)


def run_roundtrip(tmp_path, data, encode_args=(), decode_args=()):
    message = tmp_path / "message.bin"
    pcm = tmp_path / "message.s16"
    decoded = tmp_path / "decoded.bin"
    message.write_bytes(data)

    assert main(["encode", "-i", str(message), "-o", str(pcm), *encode_args]) == 0
    assert main(["decode", "-i", str(pcm), "-o", str(decoded), *decode_args]) == 0
    return pcm, decoded.read_bytes()


class TestEncodeDecode:

    def test_roundtrip(self, tmp_path):
        pcm, decoded = run_roundtrip(tmp_path, b'hello')
        assert decoded == b'hello'

        # 12 bits of preamble/postamble plus 10 per byte, 2 bytes per sample
        samples = np.frombuffer(pcm.read_bytes(), dtype='<i2')
        assert abs(len(samples) - (12 + 50) * 36.75) <= 1

    def test_roundtrip_strategies(self, tmp_path):
        _, decoded = run_roundtrip(
            tmp_path, b'fm',
            decode_args=["--discriminator", "phase", "--sync", "counter",
                         "--start-window", "0.5", "--start-window-mode", "exact"],
        )
        assert decoded == b'fm'

    def test_profile(self, tmp_path):
        _, decoded = run_roundtrip(
            tmp_path, b'answer',
            encode_args=["--profile", "bell103-answer"],
            decode_args=["--profile", "bell103-answer"],
        )
        assert decoded == b'answer'

    def test_profile_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MODEM_PROFILE", "bell103-answer")
        pcm, decoded = run_roundtrip(tmp_path, b'env')
        assert decoded == b'env'

        # The default profile cannot hear the answer-side tones
        monkeypatch.delenv("MODEM_PROFILE")
        out = tmp_path / "other.bin"
        assert main(["decode", "-i", str(pcm), "-o", str(out)]) == 0
        assert out.read_bytes() != b'env'

    def test_empty_input(self, tmp_path):
        _, decoded = run_roundtrip(tmp_path, b'')
        assert decoded == b''

    def test_invalid_config(self, tmp_path, capsys):
        message = tmp_path / "m.bin"
        message.write_bytes(b'x')
        assert main(["encode", "-i", str(message), "-o", str(tmp_path / "o"), "--poles", "3"]) == 1
        assert "error" in capsys.readouterr().err

    def test_missing_input(self, tmp_path, capsys):
        assert main(["decode", "-i", str(tmp_path / "absent.s16"), "-o", str(tmp_path / "o")]) == 1
        assert "error" in capsys.readouterr().err
        assert not (tmp_path / "o").exists()


class FakeAudio:
    """Stands in for the sound card, returning a canned transmission."""

    durations = []

    def __init__(self, sample_rate):
        self.sample_rate = sample_rate

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def receive(self, duration):
        self.durations.append(duration)
        return FSKModulator().modulate(b'mic')


class TestListen:

    @pytest.fixture(autouse=True)
    def fake_audio(self, monkeypatch):
        FakeAudio.durations = []
        monkeypatch.setattr("fskmodem.modem.audio_io.AudioInterface", FakeAudio)

    def test_listen(self, tmp_path):
        out = tmp_path / "heard.bin"
        assert main(["decode", "--listen", "2", "-o", str(out)]) == 0
        assert out.read_bytes() == b'mic'
        assert FakeAudio.durations == [2.0]

    def test_listen_zero_seconds_still_records(self, tmp_path):
        out = tmp_path / "heard.bin"
        assert main(["decode", "--listen", "0", "-o", str(out)]) == 0
        assert FakeAudio.durations == [0.0]


class TestInfo:

    def test_info(self, capsys):
        assert main(["info"]) == 0
        out = capsys.readouterr().out
        assert "Samples per bit: 36.750" in out
        assert "mark filter at 1320 Hz, space filter at 1020 Hz" in out
        assert "filter at 1170 Hz" in out

    def test_info_profile(self, capsys):
        assert main(["info", "--profile", "bell202"]) == 0
        assert "Baud:            1200" in capsys.readouterr().out

    def test_no_command(self, capsys):
        assert main([]) == 0
        assert "fsk-modem" in capsys.readouterr().out
