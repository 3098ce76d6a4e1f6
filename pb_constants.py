

import os


PB_HOME_PATH = os.getcwd()

OUTPUT_PATH = os.path.join(PB_HOME_PATH, 'privatebin_instances.json')
ERROR_PATH = os.path.join(PB_HOME_PATH, 'privatebin_errors.json')
LOG_PATH = os.path.join(PB_HOME_PATH, 'log_file')


DIRECTORY_URL = 'https://privatebin.info/directory/'


# Scraper options
CONCURRENCY = 50  # Num of concurrent worker tasks
GOOD_UPTIME = 99.0  # Disclosed uptime needed to be considered reliable
SITE_TIMEOUT = 15  # Seconds allowed for one request, including the body
PROGRESS_EVERY = 10  # Log progress after this many completed candidates
MAX_REDIRECTS = 10
CONN_LIMIT = 100
CONN_LIMIT_PER_HOST = 10
UA_INIT_TIMEOUT = 30  # Seconds allowed for the user agent data to load


# Directory page layout. Each version heading is followed by a table of instances
VERSION_HEADING = 'h5'
VERSION_PREFIX = 'Version '
MIN_COLUMNS = 8
ADDRESS_COLUMN = 0
UPTIME_COLUMN = 7


# Instance page layout
EXPIRATION_OPTION_SEL = 'select#pasteExpiration option'
NEVER_OPTION = 'never'
ALERT_SEL = "div.alert.alert-info[role='alert']"

# Alert text that means pastes may disappear. Must be lower case
SUSPICIOUS_PHRASES = ('test service', 'deleted anytime', 'long-term storage', 'testing purposes')


# Dispositions
RELIABLE = 'reliable'
LOW_UPTIME = 'low_uptime'
UNRELIABLE = 'unreliable'
DISCARD = 'discard'
FAILED = 'failed'

REPORT_BUCKETS = (RELIABLE, LOW_UPTIME, UNRELIABLE)


# Error codes written to the errorlog
ERROR_CODES = {
    'pb_error 1': 'Request timeout',
    'pb_error 2': 'HTTP status',
    'pb_error 3': 'Other request',
    'pb_error 4': 'Malformed body',
    'pb_error 5': 'HTML parse',
    'pb_error 6': 'Unexpected worker error',
}
