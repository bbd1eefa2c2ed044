
import numpy as np
from core.spectrum import SpectrumAnalyser

def test_silence_reads_as_zero():
    an = SpectrumAnalyser(fft_size=256)
    bins = an.get_byte_frequency_data()
    assert bins.dtype == np.uint8
    assert bins.shape == (128,)
    assert int(bins.max()) == 0

def test_loud_tone_raises_level():
    sr = 16000
    an = SpectrumAnalyser(fft_size=256, smoothing=0.0)
    t = np.arange(1024) / sr
    an.push(0.8 * np.sin(2 * np.pi * 1000 * t).astype(np.float32))
    bins = an.get_byte_frequency_data()
    # 1 kHz at 16 kHz / 256 -> bin 16
    assert int(np.argmax(bins)) in (15, 16, 17)
    assert int(bins.max()) > 200

def test_smoothing_decays_between_reads():
    an = SpectrumAnalyser(fft_size=256, smoothing=0.8)
    an.push(np.ones(256, dtype=np.float32) * 0.5)
    first = an.get_byte_frequency_data().astype(int).sum()
    an.push(np.zeros(256, dtype=np.float32))
    second = an.get_byte_frequency_data().astype(int).sum()
    assert first > 0
    assert second <= first

def test_short_pushes_roll_into_window():
    an = SpectrumAnalyser(fft_size=64)
    an.push(np.ones(10, dtype=np.float32))
    an.push(np.ones(10, dtype=np.float32) * 2)
    assert np.allclose(an._buffer[-10:], 2.0)
    assert np.allclose(an._buffer[-20:-10], 1.0)
    an.reset()
    assert not an._buffer.any()
