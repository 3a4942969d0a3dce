import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME, DEFAULT_HOME_STATE

BASE_DIR = Path.cwd()
DATA_PATH = Path(os.environ.get("ANGADI_DATA_DIR", BASE_DIR / DATA_DIR))
DB_PATH = DATA_PATH / os.environ.get("ANGADI_DB_FILE", DB_FILE_NAME)

# Seller's home state; counterparties in the same state are billed CGST+SGST.
HOME_STATE = os.environ.get("ANGADI_HOME_STATE", DEFAULT_HOME_STATE)
