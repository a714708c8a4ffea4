"""HTTP surface for the VoiceLog core."""
