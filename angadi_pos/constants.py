DATA_DIR = "data"
DB_FILE_NAME = "angadi.db"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "5"

DEFAULT_HOME_STATE = "Tamil Nadu"

# Document number prefixes: <PREFIX>-<YYYYMM>-<seq>
PREFIX_SALES_INVOICE = "INV"
PREFIX_SALES_ORDER = "SO"
PREFIX_PURCHASE_INVOICE = "PI"
PREFIX_SALES_RETURN = "RET"
PREFIX_CREDIT_NOTE = "CN"
PREFIX_SALES_PAYMENT = "SP"
PREFIX_CREDIT_PAYMENT = "CP"
PREFIX_REFUND = "REF"
PREFIX_PURCHASE_PAYMENT = "PP"

CREDIT_NOTE_VALIDITY_MONTHS = 6

PAYMENT_METHODS: tuple[str, ...] = ("cash", "card", "upi", "netbanking", "credit", "credit_note")
REFUND_METHODS: tuple[str, ...] = ("cash", "card", "upi", "netbanking", "credit_note")
PURCHASE_PAYMENT_METHODS: tuple[str, ...] = ("cash", "card", "upi", "bank_transfer", "cheque")

EXPIRY_WARNING_DAYS = 30
