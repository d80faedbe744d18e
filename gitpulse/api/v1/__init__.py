from gitpulse.api.v1 import activities, auth, orgs, teams

__all__ = [
    "auth",
    "orgs",
    "activities",
    "teams",
]
