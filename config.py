import os


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in {"1", "true", "yes"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///expensechain.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = _env_flag("WTF_CSRF_ENABLED", "true")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # "sql" persists through SQLAlchemy; "memory" is the fixture store used for demos.
    EXPENSE_STORE = os.environ.get("EXPENSE_STORE", "sql")
    SEED_DEMO_DATA = _env_flag("SEED_DEMO_DATA", "false")

    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")
    RATE_PIVOT_CURRENCY = os.environ.get("RATE_PIVOT_CURRENCY", "USD")
    RATE_CACHE_SECONDS = int(os.environ.get("RATE_CACHE_SECONDS", 3600))
    COUNTRY_CACHE_SECONDS = int(os.environ.get("COUNTRY_CACHE_SECONDS", 24 * 3600))

    EXTERNAL_SERVICES_ENABLED = _env_flag("EXTERNAL_SERVICES_ENABLED", "true")
    HTTP_TIMEOUT_SECONDS = float(os.environ.get("HTTP_TIMEOUT_SECONDS", 10))
    EXCHANGE_API_URL = os.environ.get(
        "EXCHANGE_API_URL", "https://api.exchangerate-api.com/v4/latest/{base}"
    )
    REST_COUNTRIES_URL = os.environ.get(
        "REST_COUNTRIES_URL", "https://restcountries.com/v3.1/all?fields=name,currencies"
    )
    OCR_API_URL = os.environ.get("OCR_API_URL", "https://api.ocr.space/parse/image")
    OCR_SPACE_API_KEY = os.environ.get("OCR_SPACE_API_KEY")
    OCR_SEED = int(os.environ["OCR_SEED"]) if os.environ.get("OCR_SEED") else None


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    EXPENSE_STORE = "memory"
    SEED_DEMO_DATA = False
    EXTERNAL_SERVICES_ENABLED = False
    OCR_SPACE_API_KEY = None
    OCR_SEED = 7


class ProductionConfig(Config):
    DEBUG = False


config_by_name = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}
