"""Pipeline phases, sequencing and phase work."""
