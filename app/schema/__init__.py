from .people import Follow, Person, PlanTier, ProfileAttributes

__all__ = [
    # people
    "PlanTier",
    "ProfileAttributes",
    "Person",
    "Follow",
]
