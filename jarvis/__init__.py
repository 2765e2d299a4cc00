"""Hands-free voice commands: rolling-chunk listener and key-tap executor."""
