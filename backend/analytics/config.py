import os


def _env_float(name, default):
    return float(os.environ.get(name, default))


def _env_int(name, default):
    return int(os.environ.get(name, default))


# Analytics Configuration
class Config:
    # Anomaly detection
    STD_DEV_THRESHOLD = _env_float("ANALYTICS_STD_DEV_THRESHOLD", 3)
    HISTORY_THRESHOLD = _env_int("ANALYTICS_HISTORY_THRESHOLD", 3)
    FIRST_TRANSACTION_THRESHOLD = _env_float("ANALYTICS_FIRST_TRANSACTION_THRESHOLD", 150_000)

    # Consistency validation
    BALANCE_TOLERANCE = _env_float("ANALYTICS_BALANCE_TOLERANCE", 0.01)
    MIN_CUSTOMER_AGE = _env_int("ANALYTICS_MIN_CUSTOMER_AGE", 18)
    MAX_CUSTOMER_AGE = _env_int("ANALYTICS_MAX_CUSTOMER_AGE", 120)
    DAYS_PER_YEAR = 365.25
    DAYS_PER_MONTH = 30.44

    # Reporting
    ERROR_SAMPLE_SIZE = _env_int("ANALYTICS_ERROR_SAMPLE_SIZE", 10)
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "temp_uploads")
    OUTPUT_FOLDER = os.environ.get("OUTPUT_FOLDER", "outputs")
    ALLOWED_EXTENSIONS = {'csv', 'tsv', 'txt'}
    REPORT_FORMATS = {'xlsx', 'csv', 'txt', 'text'}
    MAX_UPLOAD_MB = _env_int("MAX_UPLOAD_MB", 20)
    LOG_FILE = os.environ.get("LOG_FILE", "server.log")
