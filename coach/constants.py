# coach/constants.py

# Recommendation engine
MIN_LOGS_FOR_RECOMMENDATION = 2
SESSIONS_FOR_FULL_HISTORY = 3
DELOAD_INTERVAL_WEEKS = 4
DELOAD_FACTOR = 0.9
OVERLOAD_LOW_FACTOR = 1.05
OVERLOAD_HIGH_FACTOR = 1.10
SAME_WEIGHT_TOLERANCE = 0.1
ACCLIMATION_WINDOW = 3

# Progress metrics
WEEKLY_SET_GOAL = 12

# Medal targets
BRONZE_WORKOUT_DAYS_TARGET = 3
SILVER_VOLUME_INCREASE_TARGET = 10  # percent, week over week
GOLD_MONTHLY_PR_TARGET = 5
DIAMOND_STREAK_WEEKS = 4
DIAMOND_VOLUME_INCREASE_TARGET = 20  # percent, vs. the week 28 days back
DIAMOND_LOOKBACK_DAYS = 28

# Calculators (lbs)
STANDARD_PLATES_LBS = (45, 35, 25, 10, 5, 2.5)
BAR_WEIGHT_LBS = 45
ONE_REP_MAX_PERCENTAGES = (100, 95, 90, 85, 80, 75, 70, 65, 60)
CALCULATOR_OVERLOAD_FACTOR = 1.075
CALCULATOR_MAINTAIN_WINDOW_REPS = 2
CALCULATOR_DECREASE_STEP = 5
CALCULATOR_KG_TO_LBS = 2.205

# Social
USERNAME_MAX_LENGTH = 30
SLUG_BYTES = 5  # token_hex -> 10 characters
MAX_SLUG_GENERATION_ATTEMPTS = 5
SEARCH_MIN_QUERY_LENGTH = 2
SEARCH_RESULT_LIMIT = 10
FEED_WINDOW_DAYS = 7
FEED_RESULT_LIMIT = 50
