import os
import sys
import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()


@pytest.fixture(autouse=True)
def _isolate_config_env():
    """Ensure configuration variables from the developer's shell or a loaded .env
    do not leak into tests; restore them afterwards.
    """
    prefixes = ('SPOTIFY_', 'TOMORROWIFY_')
    keys = [k for k in os.environ if k.startswith(prefixes)] + ['LOG_LEVEL']
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k in [k for k in os.environ if k.startswith(prefixes)] + ['LOG_LEVEL']:
            os.environ.pop(k, None)
        for k, v in backup.items():
            if v is not None:
                os.environ[k] = v
