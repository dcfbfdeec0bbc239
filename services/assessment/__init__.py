"""assessment service package: quiz catalog and the quiz-attempt lifecycle."""

__all__ = ["app", "routes", "service", "scorer", "repo", "models", "projections", "errors"]
