import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def negotiation_bed():
    from negotiation.domain import negotiation

    bed = DomainFixture(negotiation)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(negotiation_bed):
    with negotiation_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
