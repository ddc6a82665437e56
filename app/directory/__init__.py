"""Actors, teams and projects referenced by tickets."""

from .models import Actor, Project, Registration, Team

__all__ = ["Actor", "Project", "Registration", "Team"]
