import pytest

from sgturbo.sg_simulator import SgConfig, create_sg_state


@pytest.fixture
def make_cfg():
    """SgConfig factory pinned to the CPU backend."""
    def _make(**kw):
        kw.setdefault("backend", "cpu")
        return SgConfig(**kw)
    return _make


@pytest.fixture
def make_state(make_cfg):
    states = []

    def _make(**kw):
        S = create_sg_state(make_cfg(**kw), verbose=False)
        states.append(S)
        return S

    yield _make
    for S in states:
        S.release()
