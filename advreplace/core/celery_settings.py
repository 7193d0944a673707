import os


def is_test_env() -> bool:
    return os.getenv("ENV", "local") == "test"


def test_env_overrides() -> dict:
    """
    ENV=test: run tasks eagerly in-process with in-memory transports,
    so the API can be exercised without a broker.
    """
    if not is_test_env():
        return {}
    return {
        "task_always_eager": True,
        "broker_url": "memory://",
        "result_backend": "cache+memory://",
    }
