from gamelib.services.sync.matchers.identity_matcher import IdentityMatcher, best_candidate

__all__ = ["IdentityMatcher", "best_candidate"]
