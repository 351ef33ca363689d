from typing import Any, List

import pytest

from evalkernel.domain.context.context import Context
from evalkernel.domain.context.context_manager import ContextManager
from evalkernel.domain.dispatch.dispatcher import Dispatcher


@pytest.fixture
def sent() -> List[Any]:
    """Everything written to the outbound channel"""
    return []


@pytest.fixture
def faults() -> List[BaseException]:
    """Everything reported on the process fault channel"""
    return []


@pytest.fixture
def context(sent) -> Context:
    return Context("ctx1", sent.append)


@pytest.fixture
def context_manager(sent) -> ContextManager:
    return ContextManager(sent.append)


@pytest.fixture
def dispatcher(context_manager, faults) -> Dispatcher:
    return Dispatcher(context_manager, faults.append)
