class RecommendationError(Exception):
    """Base class for failures raised by the recommendation core."""


class IndexNotReadyError(RecommendationError, RuntimeError):
    """Similarity query issued against an index that has not been trained."""


class TrainingInfeasibleError(RecommendationError):
    """Not enough catalog items to build a feature space."""


class InvalidRequestError(RecommendationError, ValueError):
    """Malformed caller input (e.g. a non-positive limit)."""


class CurrencyMismatchError(ValueError):
    pass


class IdentityAlreadyAssignedError(ValueError):
    pass
