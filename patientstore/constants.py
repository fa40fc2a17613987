"""Shared constants for the Patient store."""

RESOURCE_TYPE = "Patient"

# Logical status of a row in the patient table
STATUS_CREATED = "created"
STATUS_DELETED = "deleted"

# First version number assigned to a new resource
BASE_VERSION = 1

# Search pagination
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
