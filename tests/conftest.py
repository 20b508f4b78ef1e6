"""
Shared fixtures for O8 tests.
"""

import numpy as np
import pytest
import soundfile as sf

from o8.core.builder import DeclarationBuilder


CIDV0 = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
MISSING_CIDV0 = "QmT78zSuBmuS4z925WZfrqQ1qHaJ56DQaTfyMUF7F8ff5o"
WALLET = "0x" + "ab" * 20
SHA256 = "aa" * 32


def write_tone(path, seconds=1.0, samplerate=44100, subtype="PCM_16", frequency=440.0):
    """Write a mono sine tone and return its path."""
    t = np.arange(int(seconds * samplerate)) / samplerate
    data = 0.25 * np.sin(2 * np.pi * frequency * t)
    sf.write(str(path), data, samplerate, subtype=subtype)
    return path


@pytest.fixture
def wav_file(tmp_path):
    """One second, 44.1 kHz, 16-bit WAV."""
    return write_tone(tmp_path / "track.wav")


@pytest.fixture
def builder():
    """Builder with every field required by build() already set."""
    return (
        DeclarationBuilder()
        .set_artist("Producer X", wallet=WALLET, signature="0xsigned")
        .add_daw("Ableton Live 12")
        .set_methodology("AI-assisted composition with human arrangement")
        .set_audio_fingerprint({"sha256": SHA256, "duration_ms": 1000, "format": "wav"})
    )


@pytest.fixture
def declaration(builder):
    return builder.build()


@pytest.fixture
def declaration_dict(declaration):
    return declaration.to_dict()
