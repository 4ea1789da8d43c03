"""
FitScribe - Workout dictation with smart transcription routing.

This package provides:
- On-device and cloud (Deepgram / AssemblyAI) recognition engines
- Smart routing: on-device first, cloud fallback on low confidence
- Fitness vocabulary keyword boosting
- Personal corrections dictionary synced with the backend

Main entry point: python -m fitscribe
"""

__version__ = "1.0.0"
