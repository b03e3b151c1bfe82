import pytest

import syncfx.observable as _obs_mod


@pytest.fixture(autouse=True)
def _direct_mode():
    """Every test starts and ends without an owning-thread scheduler."""
    _obs_mod.set_scheduler(None)
    yield
    _obs_mod.set_scheduler(None)
