"""Shared constants for wosync."""

import re

WO_NUMBER_PATTERN = re.compile(r'^\d{7}$')
CONTROL_NUMBER_PATTERN = re.compile(r'^\d{8}$')

# Note file tokens
PROCESSED_MARKER = "||"
CLOSE_TOKEN = "=|"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"

STACK_FILENAME = "service_stack.json"
REMOTE_CACHE_FILENAME = "remote_services.json"
CONFIG_FILENAME = "wosync.env"
