# Constants for the recommendation pipeline.
DEFAULT_KNN_NEIGHBORS = 5        # k used when training the similarity index
MIN_TRAINING_ITEMS = 2           # below this there is no feature space worth building
DEFAULT_MIN_PRODUCTS_FOR_ML = 5  # catalog size under which we go straight to fallback
DEFAULT_LIMIT = 10

# Fallback strategies
STRATEGY_CATEGORY = "category_only"
STRATEGY_POPULARITY = "popularity_only"
STRATEGY_HYBRID = "hybrid"
ALL_STRATEGIES = {STRATEGY_CATEGORY, STRATEGY_POPULARITY, STRATEGY_HYBRID}

# Score bands (fallback stays strictly under the learned path's close neighbours)
CATEGORY_SCORE_MIN = 60.0
CATEGORY_SCORE_MAX = 70.0
POPULARITY_SCORE_MIN = 50.0
POPULARITY_SCORE_MAX = 60.0
FALLBACK_SCORE_STEP = 2.0
SIMILARITY_SCORE_MAX = 100.0

# Provenance tags (which path produced a result)
PROVENANCE_KNN = "knn_similarity"
PROVENANCE_CATEGORY = "category_match"
PROVENANCE_POPULARITY = "popular_product"

# Strategy labels attached to results
SOURCE_KNN = "knn"
SOURCE_CATEGORY = "category"
SOURCE_POPULARITY = "popularity"
SOURCE_HYBRID = "hybrid"

FALLBACK_REASON = "ml_insufficient_data_or_error"
