"""SoundFX — notification sound playback service for the desktop shell."""

__version__ = "0.4.0"
