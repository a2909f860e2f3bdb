"""Tests for Butterworth synthesis and the complex resonant filter."""

import cmath

import pytest
import numpy as np
from scipy import signal

from fskmodem.modem.filters import (
    BiquadStage,
    ComplexResonantFilter,
    butterworth_biquads,
    butterworth_response,
    cascade_response,
)


FS = 11025


class TestButterworthBiquads:
    """Test filter synthesis."""

    @pytest.mark.parametrize("poles", [2, 4, 6, 8])
    @pytest.mark.parametrize("corner", [50.0, 150.0, 600.0, 2500.0, 5000.0])
    def test_unity_gain_at_dc(self, poles, corner):
        """Each stage and the whole cascade pass DC unchanged."""
        stages = butterworth_biquads(poles, FS, corner)

        assert len(stages) == poles // 2
        gain = 1.0
        for stage in stages:
            assert stage.den[0] == pytest.approx(1.0)
            stage_gain = sum(stage.num) / sum(stage.den)
            assert stage_gain == pytest.approx(1.0, abs=1e-9)
            gain *= stage_gain
        assert gain == pytest.approx(1.0, abs=1e-9)

    def test_numerator_zeros_at_nyquist(self):
        """Both zeros of every stage sit at z = -1."""
        for stage in butterworth_biquads(4, FS, 150):
            b0, b1, b2 = stage.num
            assert b1 == pytest.approx(2 * b0)
            assert b2 == pytest.approx(b0)

    def test_poles_inside_unit_circle(self):
        """Synthesized sections are stable."""
        for stage in butterworth_biquads(8, FS, 150):
            assert np.all(np.abs(np.roots(stage.den)) < 1.0)

    @pytest.mark.parametrize("poles", [2, 4, 6])
    @pytest.mark.parametrize("corner", [150.0, 250.0, 1100.0])
    def test_matches_scipy_butter(self, poles, corner):
        """Cascade has the same response as scipy's bilinear Butterworth."""
        stages = butterworth_biquads(poles, FS, corner)
        freqs = np.linspace(0, FS / 2 - 1, 64)

        expected = np.ones(len(freqs), dtype=np.complex128)
        for section in signal.butter(poles, corner, fs=FS, output='sos'):
            _, h = signal.freqz(section[:3], section[3:], worN=freqs, fs=FS)
            expected *= h

        actual = cascade_response(stages, freqs, FS)
        np.testing.assert_allclose(actual, expected, rtol=1e-6, atol=1e-9)

    def test_corner_is_3db(self):
        """Power response is one half at the corner frequency."""
        stages = butterworth_biquads(4, FS, 150)
        h = cascade_response(stages, [150.0], FS)
        assert abs(h[0]) ** 2 == pytest.approx(0.5, rel=1e-6)

    @pytest.mark.parametrize("poles", [3, 5, 0, -2])
    def test_odd_or_missing_poles_rejected(self, poles):
        """Pole count must be positive and even."""
        with pytest.raises(ValueError):
            butterworth_biquads(poles, FS, 150)

    @pytest.mark.parametrize("corner", [0.0, -10.0, FS / 2, FS])
    def test_corner_out_of_range(self, corner):
        """Corner must lie strictly between DC and Nyquist."""
        with pytest.raises(ValueError):
            butterworth_biquads(4, FS, corner)


class TestButterworthResponse:
    """Test the analytic response formula."""

    def test_matches_designed_filter(self):
        """Analytic squared magnitude equals the synthesized one."""
        stages = butterworth_biquads(4, FS, 150)
        freqs = [0.0, 50.0, 150.0, 250.0, 1000.0]
        measured = np.abs(cascade_response(stages, freqs, FS)) ** 2

        for freq, power in zip(freqs, measured):
            assert butterworth_response(freq, 150, FS, 4) == pytest.approx(power, rel=1e-6, abs=1e-12)

    def test_dc_and_corner(self):
        assert butterworth_response(0.0, 150, FS, 4) == 1.0
        assert butterworth_response(150.0, 150, FS, 4) == pytest.approx(0.5)

    def test_symmetric(self):
        """Negative offsets see the same rejection."""
        assert butterworth_response(-250.0, 150, FS, 4) == pytest.approx(
            butterworth_response(250.0, 150, FS, 4)
        )


def complex_tone(freq, count, fs=FS):
    return [cmath.exp(2j * cmath.pi * freq * n / fs) for n in range(count)]


class TestComplexResonantFilter:
    """Test the frequency-shifted low-pass."""

    def test_unity_gain_at_carrier(self):
        """A tone at the centre frequency comes out unchanged once settled."""
        stages = butterworth_biquads(4, FS, 150)
        filt = ComplexResonantFilter(stages, 1270, FS)

        tone = complex_tone(1270, 3000)
        out = [filt(x) for x in tone]

        assert abs(out[-1]) == pytest.approx(1.0, abs=1e-4)
        assert abs(out[-1] - tone[-1]) < 1e-3

    def test_rejects_far_tone(self):
        """A tone far outside the passband is strongly attenuated."""
        stages = butterworth_biquads(4, FS, 150)
        filt = ComplexResonantFilter(stages, 1270, FS)

        out = [filt(x) for x in complex_tone(2270, 3000)]
        assert max(abs(y) for y in out[-500:]) < 1e-3

    def test_equals_heterodyne_filter_remix(self):
        """Rotating the memory equals mixing down, filtering, mixing back up."""
        stages = butterworth_biquads(4, FS, 150)
        center = 1070
        filt = ComplexResonantFilter(stages, center, FS)

        rng = np.random.default_rng(1234)
        x = rng.standard_normal(600)
        actual = np.array([filt(float(v)) for v in x])

        n = np.arange(len(x))
        rotation = np.exp(2j * np.pi * center * n / FS)
        baseband = x / rotation
        for stage in stages:
            baseband = signal.lfilter(stage.num, stage.den, baseband)
        expected = baseband * rotation

        np.testing.assert_allclose(actual, expected, rtol=1e-9, atol=1e-9)

    def test_real_input(self):
        """Real samples are accepted and produce complex output."""
        filt = ComplexResonantFilter(butterworth_biquads(4, FS, 150), 1270, FS)
        y = filt(1000)
        assert isinstance(y, complex)

    def test_reset_clears_state(self):
        filt = ComplexResonantFilter(butterworth_biquads(4, FS, 150), 1270, FS)
        for x in complex_tone(1270, 100):
            filt(x)
        assert any(cell != 0 for cell in filt.state)

        filt.reset()
        assert all(cell == 0 for cell in filt.state)
        assert len(filt.state) == 4

    def test_branches_own_their_memory(self):
        """Two filters built from the same stages never share state."""
        stages = butterworth_biquads(4, FS, 150)
        mark = ComplexResonantFilter(stages, 1320, FS)
        space = ComplexResonantFilter(stages, 1020, FS)

        for x in complex_tone(1270, 50):
            mark(x)

        assert any(cell != 0 for cell in mark.state)
        assert all(cell == 0 for cell in space.state)

    def test_stage_is_immutable(self):
        stage = BiquadStage(num=(1.0, 2.0, 1.0), den=(1.0, 0.0, 0.0))
        with pytest.raises(AttributeError):
            stage.num = (0.0, 0.0, 0.0)
