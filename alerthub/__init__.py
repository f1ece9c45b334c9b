"""Scam Alert Hub: crowd-verified scam reports with proximity and identifier alerts."""
