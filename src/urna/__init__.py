"""Urna Engine: núcleo operativo de votación electrónica.

English:
    Urna Engine: operational core of an electronic-voting platform
    (lifecycle, vote integrity, multi-authority tally, booth telemetry).
"""

__version__ = "0.1.0"
