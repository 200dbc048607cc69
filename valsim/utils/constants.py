CONNECT_TIMEOUT_SECONDS = 10.0
KEEPALIVE_EXPIRY_SECONDS = 30.0

# Valid P/E window used when building and filtering P/E histories
PE_VALID_MIN = 0.0
PE_VALID_MAX = 200.0

MONTHS_PER_YEAR = 12
