"""AgriScan AI Service - Gemini-backed plant/animal diagnosis and farming chat."""

__version__ = "1.0.0"
