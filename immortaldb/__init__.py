import os
from dotenv import find_dotenv, load_dotenv

# Settings are read from the environment at import time; a local .env
# file (or the one named by ENV_FILE) fills in for development runs.
try:
    load_dotenv(
        find_dotenv(
            filename=os.environ.get("ENV_FILE", ".env"),
            raise_error_if_not_found=True,
            usecwd=True,
        )
    )
except IOError:
    pass

__version__ = "0.1.0"
