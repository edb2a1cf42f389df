from config.config import *  # noqa: F401,F403

SECRET_KEY = "test-secret"

DEBUG = False
TESTING = True

STORE = "memory"
RUN_SCHEDULER = False
AUTO_INIT_DB = False
AUTO_SEED_DB = False
LOCK_TIMEOUT_SECONDS = 2.0
