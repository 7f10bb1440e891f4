import os

# Never pick up a developer's personal settings file while testing
os.environ.pop("CAPTAIN_CONFIG", None)

from tests.fixtures import *  # noqa: E402,F401,F403
