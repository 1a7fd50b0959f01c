"""
Shared fixtures for unit tests.
"""

import logging

import pytest

from shared.helper.HelperConfig import HelperConfig
from tests.factories import FakeCMSClient, FakeVectorClient, make_book, make_qa, make_section


@pytest.fixture
def helper_config():
    return HelperConfig(logger=logging.getLogger("handbook_vector.tests"))


@pytest.fixture
def cms_client():
    return FakeCMSClient(
        books=[make_book()],
        sections=[make_section()],
        qas=[make_qa(100), make_qa(101, question_en="How is scope 3 measured?", question_vi="Đo phạm vi 3 thế nào?")],
    )


@pytest.fixture
def vector_client():
    return FakeVectorClient()
