# ============================================================================
# CONSTANTS
# ============================================================================

# XML namespaces declared on every generated document
NAMESPACES = {
    'dc': 'http://purl.org/dc/elements/1.1/',
    'dcterms': 'http://purl.org/dc/terms/',
    'xsi': 'http://www.w3.org/2001/XMLSchema-instance',
}

# Only columns whose header starts with one of these are written out
VOCABULARY_PREFIXES = ('dc:', 'dcterms:')

METADATA_EXTENSION = '.metadata'
XML_PROLOG = '<?xml version="1.0" encoding="UTF-8"?>'

# Command line defaults
DEFAULT_FILE_COLUMN = 'filename'
DEFAULT_ROOT_ELEMENT = 'dc'
DEFAULT_ROOT_PREFIX = 'dc'
DEFAULT_ROOT_NAMESPACE = NAMESPACES['dc']


# ============================================================================
# PRESERVICA
# ============================================================================

# Identifier columns, matched on the start of the header
LEGACY_ID_PREFIX = 'fileref'
CURRENT_ID_PREFIX = 'assetid'

API_ROOT = 'https://{domain}/api'
LEGACY_FETCH_PATH = '/entity/entities/{ref}'
LEGACY_UPDATE_PATH = '/entity/digitalFiles/{ref}'
CURRENT_FETCH_PATH = '/entity/information-objects/{ref}'
CURRENT_UPDATE_PATH = '/entity/information-objects/{ref}/metadata'

XML_HEADERS = {'Content-Type': 'application/xml', 'Accept': 'application/xml'}

# Keys in the credentials properties file and their environment fallbacks
CREDENTIAL_KEYS = {
    'domain': ('preservica.domain', 'PRESERVICA_DOMAIN'),
    'username': ('preservica.username', 'PRESERVICA_USERNAME'),
    'password': ('preservica.password', 'PRESERVICA_PASSWORD'),
}
