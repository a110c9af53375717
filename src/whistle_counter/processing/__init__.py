"""Signal processing: spectrum analysis and feature extraction."""

from whistle_counter.processing.dsp import SpectrumAnalyser
from whistle_counter.processing.features import bin_frequencies, extract_features

__all__ = ["SpectrumAnalyser", "bin_frequencies", "extract_features"]
