"""Constants used in the project."""


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration defaults; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    # Abbreviated packument first; it still carries per-version dependencies.
    NPM_ACCEPT_HEADER = (
        "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"
    )
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "DEPPLAN_LOG_LEVEL"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    REQUEST_DELAY_SEC = 0.1  # Pause before each registry request to avoid rate limiting
    MAX_CONCURRENCY = 16  # Concurrent registry requests in async mode

    CONFIG_ENV = "DEPPLAN_CONFIG"
    REGISTRY_URL_ENV = "DEPPLAN_REGISTRY_URL"
    CACHE_FILE_ENV = "DEPPLAN_CACHE_FILE"
    DEFAULT_CONFIG_PATHS = (
        "depplan.yml",
        "depplan.yaml",
        "~/.config/depplan/depplan.yml",
    )
