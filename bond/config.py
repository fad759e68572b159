import os

# Source custom resource
API_GROUP = "bond.ectobit.com"
API_VERSION = "v1alpha1"
KIND_SOURCE = "Source"
KIND_SECRET = "Secret"
PLURAL_SOURCE = "sources"

FINALIZER = os.getenv("BOND_FINALIZER", "bind.ectobit.com")

# Seconds
REQUEUE_INTERVAL = float(os.getenv("BOND_REQUEUE_INTERVAL", "300"))
ERROR_DELAY = float(os.getenv("BOND_ERROR_DELAY", "60"))

LOG_LEVEL = os.getenv("BOND_LOG_LEVEL", "INFO").upper()
