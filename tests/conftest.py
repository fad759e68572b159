from unittest.mock import MagicMock

import pytest

from bond.index import DesiredMappingIndex
from bond.kube import Context


@pytest.fixture
def ctx():
    """A context with mocked cluster APIs and an empty, ready index."""
    index = DesiredMappingIndex()
    index.mark_ready()
    return Context(core_api=MagicMock(), custom_api=MagicMock(), index=index)
