APP_NAME = "Back Office"

DATA_DIR = "data"
DB_FILE_NAME = "backoffice.db"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0.0"

# money is kept to cents everywhere
MONEY_PLACES = 2

WALK_IN_CLIENT_NAME = "General Client"

PAYMENT_NUMBER_PREFIX = "PAY"
REFUND_NUMBER_PREFIX = "REF"
INVOICE_NUMBER_PREFIX = "INV"
